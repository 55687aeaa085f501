"""
Per-commit diff statistics.

Line counts come from the classified hunk lines of each delta; binary deltas
are counted as changed files but never contribute lines. Collection is
all-or-nothing: if any lookup fails the commit gets degraded stats instead of
partial numbers.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import GitError
from .models import CommitInfo, DeltaInfo, DiffStats
from .vcs import FileDelta, Repository

logger = logging.getLogger(__name__)


def delta_info(fd: FileDelta) -> DeltaInfo:
    di = DeltaInfo(
        old_path=fd.old_path,
        new_path=fd.new_path,
        kind=fd.status,
        binary=fd.binary,
        hunks=fd.hunks,
    )
    if fd.binary:
        return di
    for hunk in fd.hunks:
        for origin, _ in hunk.lines:
            if origin == "+":
                di.addcount += 1
            elif origin == "-":
                di.delcount += 1
    return di


def compute_stats(repo: Repository, parent_tree: Optional[str], commit_tree: str) -> DiffStats:
    """Diff parent_tree (None for a root commit) against commit_tree."""
    try:
        deltas: List[DeltaInfo] = [delta_info(fd) for fd in repo.diff_trees(parent_tree, commit_tree)]
    except GitError as e:
        return DiffStats.unavailable(str(e))
    return DiffStats.from_deltas(deltas)


def stats_for_commit(repo: Repository, ci: CommitInfo) -> DiffStats:
    """Compute and attach the stats of ci against its first parent."""
    parent_tree: Optional[str] = None
    if ci.parent_id:
        try:
            parent_tree = repo.commit(ci.parent_id).tree
        except GitError as e:
            # an unreadable parent is treated as absent, like a root commit
            logger.warning("commit %s: parent %s unavailable (%s); diffing against empty tree",
                           ci.id, ci.parent_id, e)
    stats = compute_stats(repo, parent_tree, ci.tree_id)
    if stats.degraded:
        logger.warning("commit %s: diff statistics unavailable: %s", ci.id, stats.error)
    ci.stats = stats
    return stats
