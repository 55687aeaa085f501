"""
HTML fragments for the log, commit, file, files and refs pages.

Every function takes the relative path prefix of the page it is writing
(`relpath`, e.g. "../../") instead of reading any shared state, so links
are right regardless of the order pages are produced in.
"""

from __future__ import annotations

import html
import stat
from datetime import datetime, timezone
from typing import Iterable, List
from urllib.parse import quote

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

from .config import RepoMeta
from .models import (
    SUBMODULE_MODE,
    CommitInfo,
    DeltaInfo,
    DiffLimits,
    DiffStats,
    EntryKind,
    ReferenceInfo,
    Signature,
    TreeEntry,
)

DIFFSTAT_WIDTH = 78  # columns of the +/- graph in the diffstat table
SUPPRESSED_NOTICE = "Diff is too large, output suppressed.\n"
BINARY_FILE_NOTICE = "<p>Binary file.</p>\n"


def esc(s: str) -> str:
    return html.escape(s, quote=True)


def href_path(path: str) -> str:
    return quote(path, safe="/")


def plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


# ---- time formats ------------------------------------------------------------

def fmt_time(sig: Signature) -> str:
    """Local time of the signature with its offset, e.g. "Mon Jan  2 15:04:05 +0200"."""
    dt = sig.when()
    sign = "-" if sig.offset < 0 else "+"
    off = abs(sig.offset)
    return f"{dt:%a %b} {dt.day:2d} {dt:%H:%M:%S} {sign}{off // 60:02d}{off % 60:02d}"


def fmt_time_short(sig: Signature) -> str:
    return _utc(sig).strftime("%Y-%m-%d %H:%M")


def fmt_time_z(sig: Signature) -> str:
    return _utc(sig).strftime("%Y-%m-%dT%H:%M:%SZ")


def _utc(sig: Signature) -> datetime:
    return datetime.fromtimestamp(sig.time, timezone.utc)


# ---- page frame --------------------------------------------------------------

def page_header(meta: RepoMeta, title: str, relpath: str) -> str:
    parts: List[str] = []
    full_title = esc(title)
    if title and meta.stripped_name:
        full_title += " - "
    full_title += esc(meta.stripped_name)
    if meta.description:
        full_title += " - " + esc(meta.description)

    parts.append(
        "<!DOCTYPE html>\n<html>\n<head>\n"
        '<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />\n'
        f"<title>{full_title}</title>\n"
        f'<link rel="icon" type="image/png" href="{relpath}favicon.png" />\n'
        f'<link rel="alternate" type="application/atom+xml" title="{esc(meta.name)} Atom Feed" href="{relpath}atom.xml" />\n'
        f'<link rel="alternate" type="application/atom+xml" title="{esc(meta.name)} Atom Feed (tags)" href="{relpath}tags.xml" />\n'
        f'<link rel="stylesheet" type="text/css" href="{relpath}style.css" />\n'
        f'<link rel="stylesheet" type="text/css" href="{relpath}highlight.css" />\n'
        "</head>\n<body>\n<table><tr><td>"
        f'<a href="../{relpath}"><img src="{relpath}logo.png" alt="" width="32" height="32" /></a>'
        f"</td><td><h1>{esc(meta.stripped_name)}</h1>"
        f'<span class="desc">{esc(meta.description)}</span></td></tr>'
    )
    if meta.clone_url:
        url = esc(meta.clone_url)
        parts.append(f'<tr class="url"><td></td><td>git clone <a href="{url}">{url}</a></td></tr>')
    nav = [
        f'<a href="{relpath}log.html">Log</a>',
        f'<a href="{relpath}files.html">Files</a>',
        f'<a href="{relpath}refs.html">Refs</a>',
    ]
    if meta.has_submodules:
        nav.append(f'<a href="{relpath}file/.gitmodules.html">Submodules</a>')
    if meta.has_readme:
        nav.append(f'<a href="{relpath}file/README.html">README</a>')
    if meta.has_license:
        nav.append(f'<a href="{relpath}file/LICENSE.html">LICENSE</a>')
    parts.append("<tr><td></td><td>\n" + " | ".join(nav) + "</td></tr></table>\n<hr/>\n<div id=\"content\">\n")
    return "".join(parts)


def page_footer() -> str:
    return "</div>\n</body>\n</html>\n"


# ---- log ---------------------------------------------------------------------

LOG_TABLE_OPEN = (
    '<table id="log"><thead>\n<tr><td>Date</td><td>Commit message</td>'
    '<td>Author</td><td class="num">Files</td><td class="num">+</td>'
    '<td class="num">-</td></tr>\n</thead><tbody>\n'
)
LOG_TABLE_CLOSE = "</tbody></table>"


def truncate_summary(summary: str, length: int) -> str:
    if len(summary) > length:
        return summary[: length - 1] + "…"
    return summary


def log_row(ci: CommitInfo, summary_length: int) -> str:
    """One <tr> of log.html; these exact bytes are what the cache keeps."""
    stats = ci.stats or DiffStats()
    cls = ' class="degraded"' if stats.degraded else ""
    date = fmt_time_short(ci.author) if ci.author else ""
    summary = ""
    if ci.summary:
        summary = f'<a href="commit/{ci.id}.html">{esc(truncate_summary(ci.summary, summary_length))}</a>'
    author = esc(ci.author.name) if ci.author else ""
    return (
        f"<tr{cls}><td>{date}</td><td>{summary}</td><td>{author}</td>"
        f'<td class="num">{stats.filecount}</td>'
        f'<td class="num">+{stats.addcount}</td>'
        f'<td class="num">-{stats.delcount}</td></tr>\n'
    )


# ---- commit page -------------------------------------------------------------

def status_badge(di: DeltaInfo) -> str:
    label = di.kind.value
    return f'<span class="badge badge-{label}" title="{esc(di.kind.title)}">{label}</span>'


def diffstat_graph(add: int, dele: int, width: int = DIFFSTAT_WIDTH) -> str:
    changed = add + dele
    if changed > width:
        if add:
            add = int(width / changed * add) + 1
        if dele:
            dele = int(width / changed * dele) + 1
    return f'<span class="i">{"+" * add}</span><span class="d">{"-" * dele}</span>'


def commit_header(ci: CommitInfo, relpath: str) -> str:
    out = [f'<b>commit</b> <a href="{relpath}commit/{ci.id}.html">{ci.id}</a>\n']
    if ci.parent_id:
        out.append(f'<b>parent</b> <a href="{relpath}commit/{ci.parent_id}.html">{ci.parent_id}</a>\n')
    for extra in ci.parent_ids[1:]:
        out.append(f'<b>merge</b> <a href="{relpath}commit/{extra}.html">{extra}</a>\n')
    if ci.author:
        email = esc(ci.author.email)
        out.append(
            f"<b>Author:</b> {esc(ci.author.name)} &lt;<a href=\"mailto:{email}\">{email}</a>&gt;\n"
            f"<b>Date:</b>   {fmt_time(ci.author)}\n"
        )
    if ci.message:
        out.append(f"\n{esc(ci.message)}\n")
    return "".join(out)


def diffstat_summary(stats: DiffStats) -> str:
    return (
        f"{plural(stats.filecount, 'file')} changed, "
        f"{stats.addcount} insertion{'' if stats.addcount == 1 else 's'}(+), "
        f"{stats.delcount} deletion{'' if stats.delcount == 1 else 's'}(-)\n"
    )


def diffstat_table(stats: DiffStats) -> str:
    rows = []
    for i, di in enumerate(stats.deltas):
        name = esc(di.old_path)
        if di.renamed:
            name += " -&gt; " + esc(di.new_path)
        rows.append(
            f"<tr><td>{status_badge(di)}</td><td><a href=\"#h{i}\">{name}</a></td><td> | </td>"
            f'<td class="num">{di.addcount + di.delcount}</td>'
            f"<td>{diffstat_graph(di.addcount, di.delcount)}</td></tr>\n"
        )
    return "<b>Diffstat:</b>\n<table>" + "".join(rows) + "</table>" + diffstat_summary(stats)


def diff_body(stats: DiffStats, relpath: str) -> str:
    out: List[str] = []
    for i, di in enumerate(stats.deltas):
        old, new = esc(di.old_path), esc(di.new_path)
        out.append(
            f'<b>diff --git a/<a id="h{i}" href="{relpath}file/{href_path(di.old_path)}.html">{old}</a> '
            f'b/<a href="{relpath}file/{href_path(di.new_path)}.html">{new}</a></b>\n'
        )
        if di.binary:
            out.append("Binary files differ.\n")
            continue
        for j, hunk in enumerate(di.hunks):
            out.append(f'<a href="#h{i}-{j}" id="h{i}-{j}" class="h">{esc(hunk.header)}</a>\n')
            for k, (origin, text) in enumerate(hunk.lines):
                if origin == " ":
                    out.append(f" {esc(text)}\n")
                    continue
                cls = "i" if origin == "+" else "d"
                out.append(f'<a href="#h{i}-{j}-{k}" id="h{i}-{j}-{k}" class="{cls}">{origin}{esc(text)}</a>\n')
    return "".join(out)


def commit_page(meta: RepoMeta, ci: CommitInfo, limits: DiffLimits) -> str:
    relpath = "../"
    stats = ci.stats
    body = [commit_header(ci, relpath)]
    if stats is not None:
        if stats.degraded:
            body.append(f"Diff unavailable: {esc(stats.error)}\n")
        elif stats.exceeds(limits):
            body.append(diffstat_summary(stats))
            body.append(SUPPRESSED_NOTICE)
        elif stats.deltas:
            body.append(diffstat_table(stats))
            body.append("<hr/>")
            body.append(diff_body(stats, relpath))
    return (
        page_header(meta, ci.summary, relpath)
        + "<pre>"
        + "".join(body)
        + "</pre>\n"
        + page_footer()
    )


# ---- file pages --------------------------------------------------------------

def highlight_css() -> str:
    return HtmlFormatter().get_style_defs(".highlight")


def _plain_listing(text: str) -> str:
    n = text.count("\n", 0, len(text) - 1) + 1 if text else 0
    nums = "".join(f'<a href="#l{i}" id="l{i}">{i}</a>\n' for i in range(1, n + 1))
    return (
        '<table id="blob"><tr><td class="num"><pre>\n'
        + nums
        + "</pre></td><td><pre>\n"
        + esc(text)
        + "</pre></td></tr></table>\n"
    )


def _highlighted_listing(filename: str, text: str) -> str:
    try:
        lexer = get_lexer_for_filename(filename, text, stripnl=False)
    except ClassNotFound:
        lexer = TextLexer(stripnl=False)
    formatter = HtmlFormatter(linenos="table", anchorlinenos=True, lineanchors="l", cssclass="highlight")
    return highlight(text, lexer, formatter)


def blob_page(meta: RepoMeta, path: str, data: bytes, binary: bool, relpath: str, use_highlight: bool = True) -> str:
    filename = path.rsplit("/", 1)[-1]
    parts = [page_header(meta, filename, relpath), f"<p> {esc(filename)} ({len(data)}B)</p><hr/>"]
    if binary:
        parts.append(BINARY_FILE_NOTICE)
    else:
        text = data.decode("utf-8", errors="replace")
        parts.append(_highlighted_listing(filename, text) if use_highlight else _plain_listing(text))
    parts.append(page_footer())
    return "".join(parts)


# ---- files page --------------------------------------------------------------

FILES_TABLE_OPEN = (
    '<table id="files"><thead>\n<tr>'
    '<td>Mode</td><td>Name</td><td class="num">Size</td>'
    "</tr>\n</thead><tbody>\n"
)
FILES_TABLE_CLOSE = "</tbody></table>"


def file_mode(mode: int) -> str:
    if mode == SUBMODULE_MODE:
        return "m---------"
    return stat.filemode(mode)


def files_row(entry: TreeEntry, relpath: str) -> str:
    if entry.kind is EntryKind.SUBMODULE:
        return (
            f'<tr><td>{file_mode(entry.mode)}</td><td><a href="{relpath}file/.gitmodules.html">'
            f'{esc(entry.path)}</a></td><td class="num"></td></tr>\n'
        )
    if entry.line_count is not None:
        size = f"{entry.line_count}L"
    else:
        size = f"{entry.size or 0}B"
    return (
        f'<tr><td>{file_mode(entry.mode)}</td>'
        f'<td><a href="{relpath}file/{href_path(entry.path)}.html">{esc(entry.path)}</a></td>'
        f'<td class="num">{size}</td></tr>\n'
    )


# ---- refs page ---------------------------------------------------------------

def refs_tables(refs: Iterable[ReferenceInfo]) -> str:
    groups = (("Branches", "branches", False), ("Tags", "tags", True))
    refs = list(refs)
    out: List[str] = []
    for title, table_id, tags in groups:
        rows = [r for r in refs if r.is_tag == tags]
        if not rows:
            continue
        out.append(
            f'<h2>{title}</h2><table id="{table_id}"><thead>\n<tr><td>Name</td>'
            "<td>Last commit date</td><td>Author</td>\n</tr>\n</thead><tbody>\n"
        )
        for r in rows:
            author = r.commit.author
            out.append(
                f"<tr><td>{esc(r.name)}</td>"
                f"<td>{fmt_time_short(author) if author else ''}</td>"
                f"<td>{esc(author.name) if author else ''}</td></tr>\n"
            )
        out.append("</tbody></table><br/>")
    return "".join(out)
