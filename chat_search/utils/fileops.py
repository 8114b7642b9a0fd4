"""Filesystem helpers for config and store files."""

from __future__ import annotations

from pathlib import Path


def secure_mkdir(path: Path) -> None:
    """Create directory with 0o700 permissions (owner-only access).

    Chat history is private; an existing directory has its permissions
    tightened as well. Parent directories are created as needed.
    """
    path.mkdir(parents=True, exist_ok=True)
    path.chmod(0o700)
