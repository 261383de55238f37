"""Shared file utilities for m365-copilot-mcp.

- set_secure_permissions: Owner-only file/directory permissions
- ensure_private_dir: Create a directory with owner-only permissions
- atomic_write_text: Write-to-temp-then-rename with 0o600 permissions
"""

from __future__ import annotations

__all__ = [
    "atomic_write_text",
    "ensure_private_dir",
    "set_secure_permissions",
]

import os
import sys
import tempfile
from pathlib import Path


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def ensure_private_dir(path: Path) -> None:
    """Create directory (and parents) if missing, restricting a new one to the owner.

    Args:
        path: Directory to create.

    Raises:
        OSError: If the directory cannot be created.
    """
    if path.is_dir():
        return
    path.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(path, is_directory=True)


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to path atomically with 0o600 permissions.

    Content goes to a temporary file in the same directory, is fsynced and
    then renamed over the target, so readers never observe a partial file.
    The temporary file is removed on any failure.

    Args:
        path: Destination file.
        text: Content to write.

    Raises:
        OSError: If the file cannot be written (permissions, disk full, etc.).
    """
    ensure_private_dir(path.parent)

    fd = None
    tmp_path: str | None = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        # Restrict before any content is written
        set_secure_permissions(Path(tmp_path))
        fd.write(text)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise
