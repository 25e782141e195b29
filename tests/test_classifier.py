"""Tests for termrelay.output.classifier."""

from __future__ import annotations

from termrelay.models import OutputKind
from termrelay.output.classifier import (
    DEFAULT_PROMPT,
    classify,
    detect_bracket_confirm,
    detect_selection,
    is_error,
)

PERMISSION_SCREEN = (
    "Do you want to proceed?\n"
    "❯ Yes, proceed\n"
    "  No, abort\n"
    "\n"
    "Enter to confirm · Esc to cancel\n"
)


# ---------------------------------------------------------------------------
# Empty / normal / error
# ---------------------------------------------------------------------------


class TestPlainOutput:
    def test_empty_bytes(self) -> None:
        assert classify(b"") == []

    def test_only_escapes(self) -> None:
        assert classify(b"\x1b[2J\x1b[0m\x1b[?25h") == []

    def test_whitespace_only(self) -> None:
        assert classify("  \r\n\t ") == []

    def test_normal(self) -> None:
        units = classify(b"\x1b[32mAll tests passed\x1b[0m\r\n")
        assert len(units) == 1
        assert units[0].kind == OutputKind.NORMAL
        assert units[0].content == "All tests passed"

    def test_accepts_str(self) -> None:
        units = classify("hello world")
        assert units[0].content == "hello world"

    def test_invalid_utf8_is_replaced(self) -> None:
        units = classify(b"bad \xff byte")
        assert units[0].kind == OutputKind.NORMAL
        assert "�" in units[0].content

    def test_error_prefix(self) -> None:
        units = classify(b"Error: file not found")
        assert units[0].kind == OutputKind.ERROR

    def test_error_on_later_line(self) -> None:
        units = classify(b"building...\nERROR: compile failed")
        assert units[0].kind == OutputKind.ERROR

    def test_error_case_sensitive_prefix(self) -> None:
        # Only "Error:" / "ERROR:" count as prefixes
        assert classify(b"error: lowercase")[0].kind == OutputKind.NORMAL

    def test_command_not_found(self) -> None:
        assert classify(b"zsh: command not found: foo")[0].kind == OutputKind.ERROR

    def test_permission_denied(self) -> None:
        assert classify(b"cat: /etc/shadow: Permission denied")[0].kind == OutputKind.ERROR

    def test_exception(self) -> None:
        assert classify(b"Unhandled Exception: boom")[0].kind == OutputKind.ERROR

    def test_failed_to(self) -> None:
        assert classify(b"Failed to: connect")[0].kind == OutputKind.ERROR


class TestIsError:
    def test_patterns(self) -> None:
        assert is_error("Error: x")
        assert is_error("  Error: indented by redraw")
        assert not is_error("no problems here")
        assert not is_error("the word Error: appears mid-line")


# ---------------------------------------------------------------------------
# Bracketed confirms
# ---------------------------------------------------------------------------


class TestBracketConfirm:
    def test_y_n(self) -> None:
        units = classify(b"Overwrite file? [Y/N]")
        assert len(units) == 1
        assert units[0].kind == OutputKind.CONFIRM
        assert units[0].options == ("Y", "N")
        assert units[0].confirm_id

    def test_y_n_lowercase(self) -> None:
        assert detect_bracket_confirm("continue? [y/n]") == ["Y", "N"]

    def test_bare_y_n(self) -> None:
        units = classify(b"[Y/N]")
        assert len(units) == 1
        assert units[0].options == ("Y", "N")

    def test_yes_no(self) -> None:
        assert detect_bracket_confirm("Apply? [Yes/No]") == ["Yes", "No"]

    def test_range(self) -> None:
        units = classify(b"[2-4]")
        assert len(units) == 1
        assert units[0].kind == OutputKind.CONFIRM
        assert units[0].options == ("2", "3", "4")

    def test_reversed_range_rejected(self) -> None:
        assert detect_bracket_confirm("[5-1]") is None

    def test_huge_range_rejected(self) -> None:
        assert detect_bracket_confirm("[1-100000]") is None

    def test_continue_cancel(self) -> None:
        assert detect_bracket_confirm("Ready [Continue/Cancel]") == ["Continue", "Cancel"]

    def test_proceed_abort(self) -> None:
        assert detect_bracket_confirm("Deploy [Proceed/Abort]") == ["Proceed", "Abort"]

    def test_no_brackets(self) -> None:
        assert detect_bracket_confirm("Y/N without brackets") is None

    def test_confirm_excludes_other_units(self) -> None:
        """A confirm chunk that also looks like an error yields only the confirm."""
        units = classify(b"Error: disk almost full. Continue? [Y/N]")
        assert len(units) == 1
        assert units[0].kind == OutputKind.CONFIRM

    def test_requires_confirm_only_for_prompts(self) -> None:
        assert classify(b"Apply? [Y/N]")[0].requires_confirm
        assert not classify(b"Error: nope")[0].requires_confirm
        assert not classify(b"plain text")[0].requires_confirm

    def test_content_is_cleaned_text(self) -> None:
        units = classify(b"\x1b[1mDelete? [Yes/No]\x1b[0m  ")
        assert units[0].content == "Delete? [Yes/No]"

    def test_ids_are_fresh_per_detection(self) -> None:
        first = classify(b"[Y/N]")[0]
        second = classify(b"[Y/N]")[0]
        assert first.confirm_id != second.confirm_id


# ---------------------------------------------------------------------------
# Interactive selections
# ---------------------------------------------------------------------------


class TestSelection:
    def test_marker_with_hint(self) -> None:
        units = classify(PERMISSION_SCREEN)
        assert len(units) == 1
        unit = units[0]
        assert unit.kind == OutputKind.CONFIRM
        assert unit.options == ("Yes, proceed", "No, abort")
        assert unit.prompt == "Do you want to proceed?"
        assert unit.selected_index == 0
        assert unit.confirm_id.startswith("interactive_")

    def test_rendered_content_lists_options(self) -> None:
        unit = classify(PERMISSION_SCREEN)[0]
        assert "Do you want to proceed?" in unit.content
        assert "▶ 1. Yes, proceed" in unit.content
        assert "2. No, abort" in unit.content

    def test_numbered_marker_options(self) -> None:
        text = (
            "Do you trust the files in this folder?\n"
            "❯ 1. Yes, I trust this folder\n"
            "  2. No, exit\n"
        )
        sel = detect_selection(text)
        assert sel is not None
        assert sel.options == ["Yes, I trust this folder", "No, exit"]
        assert sel.prompt == "Do you trust the files in this folder?"

    def test_highlight_on_second_option(self) -> None:
        text = "Pick a model\n  1. Sonnet\n❯ 2. Opus\nEnter to confirm"
        sel = detect_selection(text)
        assert sel is not None
        assert sel.options == ["Sonnet", "Opus"]
        assert sel.selected_index == 1

    def test_numbered_list_with_hint(self) -> None:
        text = "Select a theme:\n1. Dark\n2. Light\nPress Enter to confirm"
        sel = detect_selection(text)
        assert sel is not None
        assert sel.options == ["Dark", "Light"]
        assert sel.prompt == "Select a theme:"

    def test_numbered_prose_without_hint_rejected(self) -> None:
        text = "Steps I took:\n1. Read the file\n2. Fixed the bug\n"
        assert detect_selection(text) is None
        assert classify(text)[0].kind == OutputKind.NORMAL

    def test_single_option_rejected(self) -> None:
        assert detect_selection("Question\n❯ Yes\nEnter to confirm") is None

    def test_marker_without_hint_needs_confirm_words(self) -> None:
        assert detect_selection("List\n> apples\n  pears\n") is None
        sel = detect_selection("Continue?\n> Yes\n  No\n")
        assert sel is not None
        assert sel.options == ["Yes", "No"]

    def test_free_text_input_hint_rejected(self) -> None:
        text = "❯ Yes\n  No\n? for shortcuts · shift+tab to cycle"
        assert detect_selection(text) is None

    def test_hint_lines_not_taken_as_options(self) -> None:
        text = "Proceed?\n❯ Yes\n  No\n  Enter to confirm · Esc to cancel"
        sel = detect_selection(text)
        assert sel is not None
        assert sel.options == ["Yes", "No"]

    def test_default_prompt(self) -> None:
        sel = detect_selection("❯ Yes\n  No\n")
        assert sel is not None
        assert sel.prompt == DEFAULT_PROMPT

    def test_selection_from_cursor_redraw(self) -> None:
        raw = (
            b"\x1b[1;1H\x1b[1mAllow this edit?\x1b[22m"
            b"\x1b[3;1H\x1b[36m\xe2\x9d\xaf\x1b[39m Yes"
            b"\x1b[4;3HNo, and tell Claude what to do differently"
            b"\x1b[6;1H\x1b[2mEsc to cancel\x1b[22m"
        )
        units = classify(raw)
        assert len(units) == 1
        assert units[0].options == (
            "Yes",
            "No, and tell Claude what to do differently",
        )
        assert units[0].prompt == "Allow this edit?"

    def test_selection_wins_over_bracket(self) -> None:
        text = "Proceed? [Y/N]\n❯ Yes\n  No\nEnter to confirm"
        unit = classify(text)[0]
        assert unit.options == ("Yes", "No")
