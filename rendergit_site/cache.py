"""
Incremental log cache.

The cache file holds one line with the hash of the newest commit already
rendered, followed by the rendered log rows of that commit and everything
older, byte for byte. A run only walks and renders the commits in front of
that boundary, then replays the stored rows after them.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, List, Optional

from .diffstats import stats_for_commit
from .errors import CacheFormatError
from .models import CacheState, CommitInfo
from .output import atomic_write
from .vcs import Repository, is_hex_id
from .walker import load_commit, walk

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class CacheRun:
    """What one render pass did; used for progress output and by tests."""
    visited: int = 0
    diffs_computed: int = 0
    reused_bytes: int = 0


def load(path: str) -> CacheState:
    """Read the cache file; a missing file is an empty cache."""
    try:
        with open(path, "rb") as f:
            first = f.readline()
            fragment = f.read()
    except FileNotFoundError:
        return CacheState()
    oid = first.rstrip(b"\r\n").decode("ascii", errors="replace")
    if not oid or not first.endswith(b"\n"):
        raise CacheFormatError(path, "no object id")
    if not is_hex_id(oid):
        raise CacheFormatError(path, f"invalid object id: {oid[:80]!r}")
    logger.debug("cache %s: boundary %s, %d bytes of rows", path, oid, len(fragment))
    return CacheState(boundary=oid, fragment=fragment)


def render(
    repo: Repository,
    head: str,
    state: CacheState,
    emit: Callable[[bytes], None],
    render_row: Callable[[CommitInfo], str],
    on_commit: Optional[Callable[[CommitInfo], None]] = None,
    run: Optional[CacheRun] = None,
) -> CacheState:
    """Render the commits between head and the cached boundary.

    Each new commit's row goes to emit and into the new fragment, then
    on_commit is called with it (the commit page writer). When the walk is
    done the previous fragment follows verbatim. Returns the state to store.
    """
    run = run if run is not None else CacheRun()
    rows: List[bytes] = []
    last_parent: Optional[str] = None

    for oid in walk(repo, head, first_parent_only=True, stop_at=state.boundary):
        ci = load_commit(repo, oid)
        stats_for_commit(repo, ci)
        run.visited += 1
        run.diffs_computed += 1

        row = render_row(ci).encode("utf-8")
        emit(row)
        rows.append(row)
        if on_commit is not None:
            on_commit(ci)
        last_parent = ci.parent_id

    if state.boundary and run.visited and last_parent != state.boundary:
        logger.warning("cache boundary %s is not on the mainline of %s; keeping the cached rows anyway",
                       state.boundary, head)
    if state.fragment:
        emit(state.fragment)
        run.reused_bytes = len(state.fragment)

    return CacheState(boundary=head, fragment=b"".join(rows) + state.fragment)


def commit(state: CacheState, path: str) -> None:
    """Replace the cache file with state in a single rename."""
    if state.boundary is None:
        raise ValueError("cannot store a cache without a boundary commit")
    atomic_write(path, state.boundary.encode("ascii") + b"\n" + state.fragment)
    logger.debug("cache %s: stored boundary %s", path, state.boundary)
