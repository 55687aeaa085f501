"""
Command line entry point: render one repository into a directory of pages.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pathlib
import sys
from typing import List, Optional

from .config import DEFAULT_ATOM_ENTRIES, DEFAULT_SUMMARY_LENGTH, RenderConfig
from .errors import CacheFormatError, RenderError
from .models import DiffLimits
from .site import build_site
from .vcs import Repository

_LIMITS = DiffLimits()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rendergit-site",
        description="Render a git repository's history as static HTML pages and Atom feeds",
    )
    ap.add_argument("repodir", help="Path to the git repository (bare or with a work tree)")
    ap.add_argument("--out", "-o", default=".", help="Output directory (default: current directory)")
    ap.add_argument("-c", "--cache", dest="cachefile", help="Cache file for incremental log rendering")
    ap.add_argument("--show-size", action="store_true", help="List file sizes in bytes instead of line counts")
    ap.add_argument("--no-highlight", action="store_true", help="Plain line-numbered file listings")
    ap.add_argument("--summary-length", type=int, default=DEFAULT_SUMMARY_LENGTH,
                    help="Characters of the commit summary shown in the log")
    ap.add_argument("--atom-entries", type=int, default=DEFAULT_ATOM_ENTRIES,
                    help="Number of commits in atom.xml")
    ap.add_argument("--max-files", type=int, default=_LIMITS.max_files,
                    help="Suppress diff bodies touching more files than this")
    ap.add_argument("--max-additions", type=int, default=_LIMITS.max_additions,
                    help="Suppress diff bodies with more added lines than this")
    ap.add_argument("--max-deletions", type=int, default=_LIMITS.max_deletions,
                    help="Suppress diff bodies with more deleted lines than this")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def config_from_args(args: argparse.Namespace) -> RenderConfig:
    limits = dataclasses.replace(
        _LIMITS,
        max_files=args.max_files,
        max_deltas=args.max_files,
        max_additions=args.max_additions,
        max_deletions=args.max_deletions,
    )
    return RenderConfig(
        summary_length=args.summary_length,
        show_line_count=not args.show_size,
        atom_entries=args.atom_entries,
        limits=limits,
        highlight=not args.no_highlight,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    out_dir = pathlib.Path(args.out)

    try:
        with Repository(args.repodir) as repo:
            print(f"📜 Rendering {repo.path} → {out_dir.resolve()}", file=sys.stderr)
            result = build_site(repo, str(out_dir), config_from_args(args), cache_file=args.cachefile)
    except CacheFormatError as e:
        print(f"error: malformed cache file {e}; fix or remove it to re-render the full log",
              file=sys.stderr)
        return 1
    except (RenderError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if result.head is None:
        print("No commits found.", file=sys.stderr)
    print(
        f"✓ {result.commits_rendered} new commits ({result.commit_pages_written} pages), "
        f"{result.files_listed} files, {result.refs_listed} refs",
        file=sys.stderr,
    )
    if result.cache_written:
        print(f"💾 Cache updated: {args.cachefile}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
