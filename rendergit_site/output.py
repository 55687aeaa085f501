"""
Writing pages to disk.

Every file lands at its final path complete or not at all: content goes to a
temporary file in the same directory, is flushed to disk, then renamed over
the target in one step.
"""

from __future__ import annotations

import os
import tempfile
from typing import Union


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _file_mode() -> int:
    # mkstemp creates 0600; pages should get the usual umask-derived mode
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def atomic_write(path: str, data: Union[str, bytes]) -> None:
    if isinstance(data, str):
        data = data.encode("utf-8")
    directory = os.path.dirname(os.path.abspath(path))
    ensure_dir(directory)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), _file_mode())
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def write_once(path: str, data: Union[str, bytes]) -> bool:
    """Write path unless it already exists. Returns True if written."""
    if os.path.exists(path):
        return False
    atomic_write(path, data)
    return True


class OutputDir:
    """The output tree of one run; all paths are relative to root."""

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)
        ensure_dir(self.root)

    def path(self, rel: str) -> str:
        return os.path.join(self.root, *rel.split("/"))

    def exists(self, rel: str) -> bool:
        return os.path.exists(self.path(rel))

    def write(self, rel: str, data: Union[str, bytes]) -> None:
        atomic_write(self.path(rel), data)

    def write_once(self, rel: str, data: Union[str, bytes]) -> bool:
        return write_once(self.path(rel), data)
