"""
Branches and tags, resolved to commits and put in display order.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import GitError
from .models import ReferenceInfo, RefKind
from .vcs import RawReference, Repository
from .walker import load_commit

logger = logging.getLogger(__name__)


def _resolve(repo: Repository, ref: RawReference) -> Optional[ReferenceInfo]:
    if ref.is_branch:
        kind = RefKind.BRANCH
    elif ref.is_tag:
        kind = RefKind.TAG
    else:
        return None
    try:
        target = repo.resolve_reference(ref)
        commit = load_commit(repo, repo.peel_to_commit(target))
    except GitError as e:
        logger.debug("skipping %s: %s", ref.name, e)
        return None
    return ReferenceInfo(name=ref.shorthand, kind=kind, commit=commit)


def collect_references(repo: Repository) -> List[ReferenceInfo]:
    """All branches and tags that peel to a commit.

    Order: branches before tags, then newest target commit first (author
    time), then short name. Failure to enumerate refs propagates; a ref that
    does not peel is skipped.
    """
    refs = []
    for raw in repo.references():
        info = _resolve(repo, raw)
        if info is not None:
            refs.append(info)
    return sorted(refs, key=lambda r: r.sort_key)


def tags_only(refs: List[ReferenceInfo]) -> List[ReferenceInfo]:
    return [r for r in refs if r.is_tag]
