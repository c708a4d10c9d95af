"""Resolve the desktop application's configuration file for the current OS."""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Mapping

from src.utils.errors import UnsupportedPlatformError

CONFIG_FILENAME = "claude_desktop_config.json"


def locate_target_config(
    system: str | None = None,
    home: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Return the OS-conventional config path; unknown platforms raise ``UnsupportedPlatformError``."""

    system_name = system if system is not None else platform.system()
    home_dir = Path(home) if home is not None else Path.home()
    env = os.environ if environ is None else environ

    if system_name == "Darwin":
        return home_dir / "Library" / "Application Support" / "Claude" / CONFIG_FILENAME
    if system_name == "Linux":
        return home_dir / ".config" / "Claude" / CONFIG_FILENAME
    if system_name == "Windows":
        appdata = env.get("APPDATA")
        if not appdata:
            raise UnsupportedPlatformError("APPDATA is not set; cannot locate the Windows configuration directory")
        return Path(appdata) / "Claude" / CONFIG_FILENAME
    raise UnsupportedPlatformError(f"Unsupported platform: {system_name or '<unknown>'}")


def resolve_target_path(override: str | os.PathLike[str] | None = None, **kwargs) -> Path:
    """Use an explicit operator override when given, otherwise fall back to the OS lookup."""

    if override:
        return Path(override).expanduser()
    return locate_target_config(**kwargs)


__all__ = ["CONFIG_FILENAME", "locate_target_config", "resolve_target_path"]
