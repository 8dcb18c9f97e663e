"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) without polluting the CLI.
- Lets the scan engine and the dialers read options consistently.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "protoscope"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "protoscope"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "protoscope"
    return Path.home() / ".config" / "protoscope"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


class ScanSettings(BaseSettings):
    """Scan-wide options.

    Why pydantic-settings:
    - Typed and validated at the edge (env vars, CLI) so the engine can trust it.
    - Frozen: one settings object is shared by every stage of a scan and by
      concurrent scans, and nobody may change it mid-scan.

    The proxy string is stored as given; it is validated by the dialer, before
    any connection is attempted.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROTOSCOPE_",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    default_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Per-probe timeout (seconds).",
    )
    dial_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Connect/handshake timeout for every dial (seconds).",
    )
    fast_mode: bool = Field(
        default=False,
        description="Only try plugins whose default port matches the target port.",
    )
    verbose: bool = Field(
        default=False,
        description="Log every probe start/end and swallowed probe errors.",
    )
    udp: bool = Field(
        default=False,
        description="Scan targets over UDP instead of TCP/TLS.",
    )
    proxy: str = Field(
        default="",
        description="SOCKS5 proxy URL (socks5://host:port); empty for direct connections.",
    )
    max_concurrency: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Maximum probes in flight while racing plugins for one target.",
    )
    target_concurrency: int = Field(
        default=1,
        ge=1,
        le=1000,
        description="Maximum targets scanned at once by the batch entry point.",
    )
