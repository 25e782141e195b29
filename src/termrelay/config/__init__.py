"""Configuration: Pydantic models for termrelay settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from termrelay.errors import UnknownTool


class SessionSettings(BaseModel):
    """Per-session limits and timings."""

    max_sessions: int = Field(default=10, description="Max concurrent sessions")
    buffer_size: int = Field(
        default=100_000, description="Output buffer cap in estimated bytes"
    )
    idle_timeout: float = Field(
        default=3.0, description="Seconds of silence before Processing -> Idle"
    )
    startup_delay: float = Field(
        default=2.0,
        description="Warm-up period; an exit inside it is a startup failure",
    )
    close_grace: float = Field(
        default=1.0, description="Seconds between SIGTERM and SIGKILL on close"
    )
    cols: int = Field(default=120)
    rows: int = Field(default=40)


class FilterSettings(BaseModel):
    """Noise filtering for normal output."""

    enabled: bool = Field(default=True)
    min_length: int = Field(
        default=5, description="Drop output shorter than this (whitespace ignored)"
    )
    prefixes: list[str] = Field(
        default_factory=list, description="Drop output starting with any of these"
    )


class ToolSettings(BaseModel):
    """Launch settings for one CLI tool kind."""

    executable: str = Field(
        default="", description="Executable path; defaults to the tool kind name"
    )
    extra_args: list[str] = Field(default_factory=list)
    skip_permissions: bool = Field(
        default=False, description="Pass the tool's permission-bypass flags"
    )
    env: dict[str, str] = Field(default_factory=dict)


class CliSettings(BaseModel):
    """Which tools can be launched and how."""

    default: str = Field(default="claude", description="Default tool kind")
    env: dict[str, str] = Field(
        default_factory=dict, description="Environment added to every tool"
    )
    claude: ToolSettings = Field(
        default_factory=lambda: ToolSettings(executable="claude")
    )
    opencode: ToolSettings = Field(
        default_factory=lambda: ToolSettings(executable="opencode")
    )

    def tool(self, kind: str) -> ToolSettings:
        settings = getattr(self, kind, None)
        if not isinstance(settings, ToolSettings):
            raise UnknownTool(kind, ["claude", "opencode"])
        return settings


class RelayConfig(BaseModel):
    """Top-level termrelay configuration."""

    session: SessionSettings = Field(default_factory=SessionSettings)
    filter: FilterSettings = Field(default_factory=FilterSettings)
    cli: CliSettings = Field(default_factory=CliSettings)

    @classmethod
    def load(cls, config_path: str | None = None) -> RelayConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults. Files ending in
        ``.yml``/``.yaml`` are read as YAML, anything else as JSON.

        Env vars:
            TERMRELAY_MAX_SESSIONS      - Override session.max_sessions
            TERMRELAY_BUFFER_SIZE       - Override session.buffer_size
            TERMRELAY_IDLE_TIMEOUT      - Override session.idle_timeout (seconds)
            TERMRELAY_DEFAULT_TOOL      - Override cli.default
            TERMRELAY_SKIP_PERMISSIONS  - "1"/"true" enables skip_permissions for claude
        """
        load_dotenv()

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            path = Path(config_path)
            with path.open() as f:
                if path.suffix in (".yml", ".yaml"):
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = json.load(f)

        session = config_data.setdefault("session", {})
        cli = config_data.setdefault("cli", {})

        env_max = os.environ.get("TERMRELAY_MAX_SESSIONS")
        if env_max:
            session["max_sessions"] = int(env_max)

        env_buffer = os.environ.get("TERMRELAY_BUFFER_SIZE")
        if env_buffer:
            session["buffer_size"] = int(env_buffer)

        env_idle = os.environ.get("TERMRELAY_IDLE_TIMEOUT")
        if env_idle:
            session["idle_timeout"] = float(env_idle)

        env_tool = os.environ.get("TERMRELAY_DEFAULT_TOOL")
        if env_tool:
            cli["default"] = env_tool.lower()

        env_skip = os.environ.get("TERMRELAY_SKIP_PERMISSIONS")
        if env_skip:
            claude = cli.setdefault("claude", {})
            claude["skip_permissions"] = env_skip.lower() in ("1", "true", "yes")

        return cls.model_validate(config_data)
