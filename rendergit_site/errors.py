"""Exception taxonomy for a render run."""

from __future__ import annotations

from typing import List


class RenderError(Exception):
    """Base class for failures reported to the operator."""


class GitError(RenderError):
    """A git object or command could not be used."""


class GitCommandError(GitError):
    """git exited non-zero."""

    def __init__(self, args: List[str], returncode: int, stderr: str = "") -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        msg = f"git command failed ({returncode}): {' '.join(self.args_list)}"
        if self.stderr:
            msg += f"\n{self.stderr}"
        super().__init__(msg)


class ObjectNotFoundError(GitError):
    """A revision, object or reference does not resolve."""

    def __init__(self, name: str, expected: str = "object") -> None:
        self.name = name
        self.expected = expected
        super().__init__(f"{expected} not found: {name}")


class CacheFormatError(RenderError):
    """The cache file exists but its boundary hash is missing or invalid.

    Treating this as an empty cache would force a full re-render, so it is
    fatal and left for the operator to fix (delete or repair the file).
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
