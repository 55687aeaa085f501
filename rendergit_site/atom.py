"""
Atom feeds: recent mainline commits (atom.xml) and tags (tags.xml).
"""

from __future__ import annotations

from typing import Iterable, List

from .config import RepoMeta
from .models import CommitInfo, ReferenceInfo
from .pages import esc, fmt_time, fmt_time_z


def feed_open(meta: RepoMeta, title: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"<title>{esc(meta.stripped_name)}, {esc(title)}</title>\n"
        f"<subtitle>{esc(meta.description)}</subtitle>\n"
    )


FEED_CLOSE = "</feed>\n"


def atom_entry(ci: CommitInfo, tag: str = "") -> str:
    out: List[str] = ["<entry>\n", f"<id>{ci.id}</id>\n"]
    if ci.author:
        out.append(f"<published>{fmt_time_z(ci.author)}</published>\n")
    if ci.committer:
        out.append(f"<updated>{fmt_time_z(ci.committer)}</updated>\n")
    if ci.summary:
        title = f"[{tag}] {ci.summary}" if tag else ci.summary
        out.append(f'<title type="text">{esc(title)}</title>\n')
    out.append(f'<link rel="alternate" type="text/html" href="commit/{ci.id}.html" />\n')
    if ci.author:
        out.append(
            f"<author>\n<name>{esc(ci.author.name)}</name>\n"
            f"<email>{esc(ci.author.email)}</email>\n</author>\n"
        )
    out.append(f'<content type="text">commit {ci.id}\n')
    if ci.parent_id:
        out.append(f"parent {ci.parent_id}\n")
    if ci.author:
        out.append(
            f"Author: {esc(ci.author.name)} &lt;{esc(ci.author.email)}&gt;\n"
            f"Date:   {fmt_time(ci.author)}\n"
        )
    if ci.message:
        out.append(f"\n{esc(ci.message)}")
    out.append("\n</content>\n</entry>\n")
    return "".join(out)


def commits_feed(meta: RepoMeta, commits: Iterable[CommitInfo]) -> str:
    return feed_open(meta, "branch HEAD") + "".join(atom_entry(ci) for ci in commits) + FEED_CLOSE


def tags_feed(meta: RepoMeta, tags: Iterable[ReferenceInfo]) -> str:
    return feed_open(meta, "tags") + "".join(atom_entry(r.commit, tag=r.name) for r in tags) + FEED_CLOSE
