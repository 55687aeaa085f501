"""
Render settings and per-repository metadata.
"""

from __future__ import annotations

import dataclasses
import os
from typing import Optional

from .models import DiffLimits
from .vcs import Repository, index_by_name, read_repo_file

# ---- defaults ----------------------------------------------------------------

DEFAULT_SUMMARY_LENGTH = 70   # characters of the summary shown in the log
DEFAULT_ATOM_ENTRIES = 100    # newest commits in atom.xml
DEFAULT_SHOW_LINE_COUNT = True


@dataclasses.dataclass(frozen=True)
class RenderConfig:
    summary_length: int = DEFAULT_SUMMARY_LENGTH
    show_line_count: bool = DEFAULT_SHOW_LINE_COUNT
    atom_entries: int = DEFAULT_ATOM_ENTRIES
    limits: DiffLimits = DiffLimits()
    highlight: bool = True


@dataclasses.dataclass(frozen=True)
class RepoMeta:
    name: str
    stripped_name: str
    description: str = ""
    clone_url: str = ""
    has_readme: bool = False
    has_license: bool = False
    has_submodules: bool = False


def repo_name(repo_path: str) -> str:
    return os.path.basename(os.path.abspath(repo_path).rstrip("/"))


def strip_git_suffix(name: str) -> str:
    return name[:-4] if name.endswith(".git") else name


def load_repo_meta(repo: Repository, head: Optional[str]) -> RepoMeta:
    name = repo_name(repo.path)
    description = read_repo_file(repo.path, "description") or ""
    url = read_repo_file(repo.path, "url") or ""

    top = {}
    if head is not None:
        top = index_by_name(repo.tree(repo.commit(head).tree))

    def is_blob(n: str) -> bool:
        return n in top and top[n].kind == "blob"

    return RepoMeta(
        name=name,
        stripped_name=strip_git_suffix(name),
        description=description.rstrip("\n"),
        clone_url=url.strip(),
        has_readme=is_blob("README"),
        has_license=is_blob("LICENSE"),
        has_submodules=is_blob(".gitmodules"),
    )
