"""
Read-only views over repository objects, shaped for rendering.

CommitInfo, DiffStats and TreeEntry are transient: each is built by the step
that needs it and dropped once the page for it has been written.
"""

from __future__ import annotations

import dataclasses
import enum
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple


# ---- signatures --------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Signature:
    name: str
    email: str
    time: int    # seconds since the epoch
    offset: int  # UTC offset in minutes

    def when(self) -> datetime:
        tz = timezone(timedelta(minutes=self.offset))
        return datetime.fromtimestamp(self.time, tz)


# ---- diff statistics ---------------------------------------------------------

class DeltaKind(enum.Enum):
    ADDED = "A"
    DELETED = "D"
    MODIFIED = "M"
    RENAMED = "R"
    COPIED = "C"
    TYPE_CHANGED = "T"

    @property
    def title(self) -> str:
        return {
            "A": "Added",
            "D": "Deleted",
            "M": "Modified",
            "R": "Renamed",
            "C": "Copied",
            "T": "Type change",
        }[self.value]


@dataclasses.dataclass
class Hunk:
    header: str
    lines: List[Tuple[str, str]]  # (origin, text); origin is "+", "-" or " "


@dataclasses.dataclass
class DeltaInfo:
    old_path: str
    new_path: str
    kind: DeltaKind
    binary: bool = False
    addcount: int = 0
    delcount: int = 0
    hunks: List[Hunk] = dataclasses.field(default_factory=list)

    @property
    def renamed(self) -> bool:
        return self.old_path != self.new_path


@dataclasses.dataclass(frozen=True)
class DiffLimits:
    """Past any of these the diff body is suppressed; the summary counts stay."""
    max_files: int = 1000
    max_deltas: int = 1000
    max_additions: int = 100000
    max_deletions: int = 100000


@dataclasses.dataclass
class DiffStats:
    filecount: int = 0
    addcount: int = 0
    delcount: int = 0
    deltas: List[DeltaInfo] = dataclasses.field(default_factory=list)
    degraded: bool = False
    error: str = ""

    @classmethod
    def from_deltas(cls, deltas: List[DeltaInfo]) -> "DiffStats":
        return cls(
            filecount=len(deltas),
            addcount=sum(d.addcount for d in deltas),
            delcount=sum(d.delcount for d in deltas),
            deltas=deltas,
        )

    @classmethod
    def unavailable(cls, reason: str) -> "DiffStats":
        """Zeroed stats for a commit whose diff could not be collected."""
        return cls(degraded=True, error=reason)

    @property
    def ndeltas(self) -> int:
        return len(self.deltas)

    def exceeds(self, limits: DiffLimits) -> bool:
        return (
            self.filecount > limits.max_files
            or self.ndeltas > limits.max_deltas
            or self.addcount > limits.max_additions
            or self.delcount > limits.max_deletions
        )

    def drop_hunks(self) -> None:
        for d in self.deltas:
            d.hunks = []


# ---- commits -----------------------------------------------------------------

@dataclasses.dataclass
class CommitInfo:
    id: str
    parent_id: str  # "" for a root commit
    parent_ids: List[str]
    tree_id: str
    author: Optional[Signature]
    committer: Optional[Signature]
    summary: str
    message: str
    stats: Optional[DiffStats] = None

    @property
    def is_merge(self) -> bool:
        return len(self.parent_ids) > 1


# ---- cache -------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class CacheState:
    boundary: Optional[str] = None
    fragment: bytes = b""

    @property
    def empty(self) -> bool:
        return self.boundary is None


# ---- trees -------------------------------------------------------------------

class EntryKind(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SUBMODULE = "submodule"


SUBMODULE_MODE = 0o160000


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    path: str
    mode: int
    kind: EntryKind
    size: Optional[int] = None
    line_count: Optional[int] = None

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


# ---- references --------------------------------------------------------------

class RefKind(enum.IntEnum):
    BRANCH = 0
    TAG = 1


@dataclasses.dataclass
class ReferenceInfo:
    name: str
    kind: RefKind
    commit: CommitInfo

    @property
    def is_tag(self) -> bool:
        return self.kind is RefKind.TAG

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        # branches first, newest first, then name
        t = self.commit.author.time if self.commit.author else 0
        return (int(self.kind), -t, self.name)
