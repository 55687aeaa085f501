"""
Recursive file listing of one tree, writing a page per blob on the way.
"""

from __future__ import annotations

import logging
from typing import Iterator, Tuple

from .config import RenderConfig, RepoMeta
from .models import SUBMODULE_MODE, EntryKind, TreeEntry
from .output import OutputDir
from .pages import blob_page
from .vcs import Repository, is_binary

logger = logging.getLogger(__name__)


def count_lines(data: bytes) -> int:
    """Lines in a listing: a final newline does not open a new line."""
    if not data:
        return 0
    return data.count(b"\n", 0, len(data) - 1) + 1


def file_page_path(path: str) -> str:
    return f"file/{path}.html"


def relpath_for(page_path: str) -> str:
    """Prefix leading from page_path back to the output root."""
    return "../" * page_path.count("/")


class TreeRenderer:
    """Lists the blobs and submodules of a tree, depth first, in tree order.

    Directories are not listed themselves; they are implied by the paths of
    what they contain.
    """

    def __init__(self, repo: Repository, out: OutputDir, meta: RepoMeta, config: RenderConfig) -> None:
        self.repo = repo
        self.out = out
        self.meta = meta
        self.config = config

    def render(self, tree_id: str, prefix: Tuple[str, ...] = ()) -> Iterator[TreeEntry]:
        for entry in self.repo.tree(tree_id):
            segments = prefix + (entry.name,)
            path = "/".join(segments)
            if entry.kind == "tree":
                yield from self.render(entry.oid, segments)
            elif entry.kind == "commit":
                yield TreeEntry(path=path, mode=SUBMODULE_MODE, kind=EntryKind.SUBMODULE)
            else:
                yield self._render_blob(path, entry.mode, entry.oid)

    def _render_blob(self, path: str, mode: int, oid: str) -> TreeEntry:
        data = self.repo.blob(oid)
        binary = is_binary(data)
        page = file_page_path(path)
        self.out.write(page, blob_page(self.meta, path, data, binary, relpath_for(page),
                                       use_highlight=self.config.highlight))
        logger.debug("wrote %s", page)

        lines = 0 if binary else count_lines(data)
        if self.config.show_line_count and lines > 0:
            return TreeEntry(path=path, mode=mode, kind=EntryKind.FILE, line_count=lines)
        return TreeEntry(path=path, mode=mode, kind=EntryKind.FILE, size=len(data))
