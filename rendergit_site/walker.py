"""
Revision walking: newest-first commit sequences starting from one tip.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Iterator, List, Optional, Tuple

from .errors import ObjectNotFoundError
from .models import CommitInfo
from .vcs import RawCommit, Repository

logger = logging.getLogger(__name__)


def summary_of(message: str) -> str:
    """First paragraph of a commit message, folded onto one line."""
    lines: List[str] = []
    for line in message.lstrip().split("\n"):
        if not line.strip():
            break
        lines.append(line.strip())
    return " ".join(lines)


def commit_info(raw: RawCommit) -> CommitInfo:
    return CommitInfo(
        id=raw.id,
        parent_id=raw.parents[0] if raw.parents else "",
        parent_ids=list(raw.parents),
        tree_id=raw.tree,
        author=raw.author,
        committer=raw.committer,
        summary=summary_of(raw.message),
        message=raw.message,
    )


def load_commit(repo: Repository, oid: str) -> CommitInfo:
    return commit_info(repo.commit(oid))


def _commit_time(raw: RawCommit) -> int:
    if raw.committer is not None:
        return raw.committer.time
    return raw.author.time if raw.author is not None else 0


def walk(
    repo: Repository,
    start: str,
    first_parent_only: bool = True,
    stop_at: Optional[str] = None,
) -> Iterator[str]:
    """Yield commit ids reachable from start, newest first.

    With first_parent_only, only the first parent of each commit is followed,
    which gives the linear mainline. Otherwise commits are popped by
    committer time (ties in discovery order), each at most once.

    The walk ends as soon as the next commit is stop_at; that commit and
    everything behind it are not yielded. A commit that cannot be loaded
    raises ObjectNotFoundError; ids already yielded remain valid.
    """
    if first_parent_only:
        yield from _walk_first_parent(repo, start, stop_at)
    else:
        yield from _walk_by_time(repo, start, stop_at)


def _walk_first_parent(repo: Repository, start: str, stop_at: Optional[str]) -> Iterator[str]:
    oid: Optional[str] = repo.resolve(start)
    seen = set()
    while oid and oid != stop_at and oid not in seen:
        seen.add(oid)
        raw = repo.commit(oid)
        yield oid
        oid = raw.parents[0] if raw.parents else None


def _walk_by_time(repo: Repository, start: str, stop_at: Optional[str]) -> Iterator[str]:
    tip = repo.resolve(start)
    order = itertools.count()
    queue: List[Tuple[int, int, str, RawCommit]] = []
    seen = {tip}

    raw = repo.commit(tip)
    heapq.heappush(queue, (-_commit_time(raw), next(order), tip, raw))
    while queue:
        _, _, oid, raw = heapq.heappop(queue)
        if oid == stop_at:
            return
        yield oid
        for parent in raw.parents:
            if parent in seen:
                continue
            seen.add(parent)
            try:
                praw = repo.commit(parent)
            except ObjectNotFoundError:
                logger.error("cannot load parent %s of %s", parent, oid)
                raise
            heapq.heappush(queue, (-_commit_time(praw), next(order), parent, praw))
