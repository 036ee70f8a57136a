"""
Platform providers for the parser.

Provides:
- The current user's home directory (or None when it cannot be found)
- The current process user
- The default per-user SSH config location

These are plain callables so they can be swapped out in tests.
"""
from __future__ import annotations

import getpass
import os
import sys
from pathlib import Path


def is_windows() -> bool:
    """Check if running on Windows."""
    return sys.platform == "win32"


def home_dir() -> Path | None:
    """
    Get the current user's home directory.

    Returns:
        ~ on Unix, %USERPROFILE% on Windows, or None if it cannot be found
    """
    if is_windows():
        userprofile = os.environ.get("USERPROFILE")
        if userprofile:
            return Path(userprofile)

    home = os.environ.get("HOME")
    if home:
        return Path(home)

    try:
        return Path.home()
    except (RuntimeError, KeyError):
        # No HOME and no passwd entry
        return None


def current_user() -> str:
    """Return the login name of the current process user."""
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return ""


def get_ssh_dir(home: Path) -> Path:
    """Get the SSH directory under a home directory."""
    return home / ".ssh"


def get_config_path(home: Path) -> Path:
    """Get the per-user SSH config file under a home directory."""
    return get_ssh_dir(home) / "config"
