"""
One render run: log, commit pages, files, refs and feeds for a repository.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
from typing import Iterator, List, Optional

from . import cache
from .atom import commits_feed, tags_feed
from .config import RenderConfig, RepoMeta, load_repo_meta
from .models import CacheState, CommitInfo
from .output import OutputDir
from .pages import (
    FILES_TABLE_CLOSE,
    FILES_TABLE_OPEN,
    LOG_TABLE_CLOSE,
    LOG_TABLE_OPEN,
    commit_page,
    files_row,
    highlight_css,
    log_row,
    page_footer,
    page_header,
    refs_tables,
)
from .refs import collect_references, tags_only
from .tree import TreeRenderer
from .vcs import Repository
from .walker import load_commit, walk

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class BuildResult:
    head: Optional[str] = None
    commits_rendered: int = 0
    commit_pages_written: int = 0
    diffs_computed: int = 0
    files_listed: int = 0
    refs_listed: int = 0
    cache_written: bool = False


def commit_page_path(oid: str) -> str:
    return f"commit/{oid}.html"


def write_commit_page(out: OutputDir, meta: RepoMeta, ci: CommitInfo, config: RenderConfig) -> bool:
    """Write commit/<id>.html unless it exists; existing pages are never redone."""
    return out.write_once(commit_page_path(ci.id), commit_page(meta, ci, config.limits))


def build_log(
    repo: Repository,
    out: OutputDir,
    meta: RepoMeta,
    config: RenderConfig,
    head: Optional[str],
    state: CacheState,
    result: BuildResult,
) -> Optional[CacheState]:
    chunks: List[bytes] = [(page_header(meta, "Log", "") + LOG_TABLE_OPEN).encode("utf-8")]
    new_state = None

    def on_commit(ci: CommitInfo) -> None:
        if write_commit_page(out, meta, ci, config):
            result.commit_pages_written += 1
        if ci.stats is not None:
            ci.stats.drop_hunks()

    if head is not None:
        run = cache.CacheRun()
        new_state = cache.render(
            repo,
            head,
            state,
            emit=chunks.append,
            render_row=lambda ci: log_row(ci, config.summary_length),
            on_commit=on_commit,
            run=run,
        )
        result.commits_rendered = run.visited
        result.diffs_computed = run.diffs_computed

    chunks.append((LOG_TABLE_CLOSE + page_footer()).encode("utf-8"))
    out.write("log.html", b"".join(chunks))
    return new_state


def build_files(repo: Repository, out: OutputDir, meta: RepoMeta, config: RenderConfig,
                head: Optional[str]) -> int:
    parts = [page_header(meta, "Files", ""), FILES_TABLE_OPEN]
    count = 0
    if head is not None:
        renderer = TreeRenderer(repo, out, meta, config)
        for entry in renderer.render(repo.commit(head).tree):
            parts.append(files_row(entry, ""))
            count += 1
    parts.append(FILES_TABLE_CLOSE)
    parts.append(page_footer())
    out.write("files.html", "".join(parts))
    return count


def recent_commits(repo: Repository, head: Optional[str], limit: int) -> Iterator[CommitInfo]:
    if head is None:
        return
    for oid in itertools.islice(walk(repo, head, first_parent_only=True), limit):
        yield load_commit(repo, oid)


def build_site(
    repo: Repository,
    out_dir: str,
    config: Optional[RenderConfig] = None,
    cache_file: Optional[str] = None,
) -> BuildResult:
    """Render every page for repo into out_dir.

    With cache_file, only commits newer than the cached boundary are walked
    and the cache is replaced after all pages were written.
    """
    config = config or RenderConfig()
    out = OutputDir(out_dir)
    head = repo.head()
    result = BuildResult(head=head)
    if head is None and cache_file:
        logger.info("repository has no HEAD; not using cache %s", cache_file)
        cache_file = None

    meta = load_repo_meta(repo, head)
    state = cache.load(cache_file) if cache_file else CacheState()

    new_state = build_log(repo, out, meta, config, head, state, result)
    logger.info("log: %d new commits, %d commit pages written", result.commits_rendered,
                result.commit_pages_written)

    result.files_listed = build_files(repo, out, meta, config, head)
    logger.info("files: %d entries", result.files_listed)

    refs = collect_references(repo)
    result.refs_listed = len(refs)
    out.write("refs.html", page_header(meta, "Refs", "") + refs_tables(refs) + page_footer())
    out.write("tags.xml", tags_feed(meta, tags_only(refs)))
    out.write("atom.xml", commits_feed(meta, recent_commits(repo, head, config.atom_entries)))
    out.write("highlight.css", highlight_css())

    if cache_file and new_state is not None:
        cache.commit(new_state, cache_file)
        result.cache_written = True
    return result
