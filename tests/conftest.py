"""
Pytest fixtures for ssh-profile tests.

Provides:
- Fixed home directory and user providers so parsing is deterministic
- A helper for writing config files into tmp_path
"""
from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

FAKE_HOME = Path("/home/bob")
FAKE_USER = "bob"


@pytest.fixture
def fake_home() -> Callable[[], Path]:
    """Home provider returning /home/bob."""
    return lambda: FAKE_HOME


@pytest.fixture
def no_home() -> Callable[[], None]:
    """Home provider for an environment without a home directory."""
    return lambda: None


@pytest.fixture
def fake_user() -> Callable[[], str]:
    """User provider returning bob."""
    return lambda: FAKE_USER


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write config text to a file under tmp_path and return its path."""

    def _write(text: str, name: str = "config") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
