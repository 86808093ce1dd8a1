"""Filesystem helpers that create directories with owner-only permissions."""

from __future__ import annotations

import os
import stat
from pathlib import Path

SECURE_DIR_MODE = stat.S_IRWXU  # 0o700


def secure_mkdir(path: Path, parents: bool = True) -> None:
    """Create directory with secure permissions (0o700).

    Unlike Path.mkdir(), this ensures the final directory has secure
    permissions even when it already exists.

    Args:
        path: Directory path to create.
        parents: If True, create parent directories as needed.
    """
    if parents:
        for parent in reversed(list(path.parents)):
            if not parent.exists():
                parent.mkdir(mode=SECURE_DIR_MODE)
                os.chmod(parent, SECURE_DIR_MODE)

    if not path.exists():
        path.mkdir(mode=SECURE_DIR_MODE)

    os.chmod(path, SECURE_DIR_MODE)
