"""
Thin access layer over a git repository, built on the git executable.

Object reads (commits, trees, blobs, tags) go through one long-lived
`git cat-file --batch` process owned by the Repository; everything else is
a one-shot plumbing command. Nothing here knows about HTML.
"""

from __future__ import annotations

import codecs
import dataclasses
import logging
import os
import re
import stat
import subprocess
from typing import Dict, List, Optional, Set, Tuple

from .errors import GitCommandError, GitError, ObjectNotFoundError
from .models import DeltaKind, Hunk, Signature

logger = logging.getLogger(__name__)

# ---- constants & utilities ---------------------------------------------------

EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
BINARY_PROBE_BYTES = 8000  # same window git uses for its NUL-byte check

_HEX_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")
_SIG_RE = re.compile(rb"^(.*?) <(.*)> (\d+) ([+-])(\d{2})(\d{2})$")

DIFF_OPTIONS = [
    "-r",
    "-p",
    "--no-color",
    "--no-ext-diff",
    "--no-textconv",
    "--full-index",
    # renames and copies are detected only when contents are byte-identical
    "-M100%",
    "-C100%",
    "--find-copies-harder",
]


def run(cmd: List[str], cwd: str | None = None, check: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=check, capture_output=True)


def is_hex_id(s: str) -> bool:
    return bool(_HEX_RE.match(s))


def is_binary(data: bytes) -> bool:
    return b"\0" in data[:BINARY_PROBE_BYTES]


def _decode(data: bytes, encoding: str = "utf-8") -> str:
    try:
        codecs.lookup(encoding)
    except LookupError:
        encoding = "utf-8"
    return data.decode(encoding, errors="replace")


def parse_signature(raw: bytes) -> Signature:
    m = _SIG_RE.match(raw.strip())
    if not m:
        return Signature(name=_decode(raw.strip()), email="", time=0, offset=0)
    name, email, secs, sign, hh, mm = m.groups()
    offset = int(hh) * 60 + int(mm)
    if sign == b"-":
        offset = -offset
    return Signature(name=_decode(name), email=_decode(email), time=int(secs), offset=offset)


# ---- raw objects -------------------------------------------------------------

@dataclasses.dataclass
class RawCommit:
    id: str
    tree: str
    parents: List[str]
    author: Optional[Signature]
    committer: Optional[Signature]
    message: str


@dataclasses.dataclass(frozen=True)
class RawTreeEntry:
    name: str
    mode: int
    oid: str
    kind: str  # "blob" | "tree" | "commit"


@dataclasses.dataclass(frozen=True)
class RawReference:
    name: str      # e.g. refs/heads/main
    shorthand: str
    symref: str    # target ref name for symbolic refs, "" otherwise
    oid: str

    @property
    def is_branch(self) -> bool:
        return self.name.startswith("refs/heads/")

    @property
    def is_tag(self) -> bool:
        return self.name.startswith("refs/tags/")


@dataclasses.dataclass
class FileDelta:
    old_path: str
    new_path: str
    status: DeltaKind
    binary: bool = False
    hunks: List[Hunk] = dataclasses.field(default_factory=list)


def parse_commit(oid: str, data: bytes) -> RawCommit:
    head, _, body = data.partition(b"\n\n")
    tree = ""
    parents: List[str] = []
    author = committer = None
    encoding = "utf-8"
    for line in head.split(b"\n"):
        if not line or line.startswith(b" "):
            continue  # continuation of a multi-line header (gpgsig, mergetag)
        key, _, value = line.partition(b" ")
        if key == b"tree":
            tree = value.decode("ascii")
        elif key == b"parent":
            parents.append(value.decode("ascii"))
        elif key == b"author":
            author = parse_signature(value)
        elif key == b"committer":
            committer = parse_signature(value)
        elif key == b"encoding":
            encoding = value.decode("ascii", errors="replace")
    if not tree:
        raise GitError(f"malformed commit object: {oid}")
    return RawCommit(
        id=oid,
        tree=tree,
        parents=parents,
        author=author,
        committer=committer,
        message=_decode(body, encoding),
    )


def parse_tree(data: bytes, hash_len: int = 20) -> List[RawTreeEntry]:
    entries: List[RawTreeEntry] = []
    pos = 0
    while pos < len(data):
        sp = data.index(b" ", pos)
        nul = data.index(b"\0", sp)
        mode = int(data[pos:sp], 8)
        name = data[sp + 1:nul].decode("utf-8", errors="surrogateescape")
        oid = data[nul + 1:nul + 1 + hash_len].hex()
        pos = nul + 1 + hash_len
        if stat.S_ISDIR(mode):
            kind = "tree"
        elif mode == 0o160000:
            kind = "commit"
        else:
            kind = "blob"
        entries.append(RawTreeEntry(name=name, mode=mode, oid=oid, kind=kind))
    return entries


# ---- patch parsing -----------------------------------------------------------

def unquote_path(s: str) -> str:
    """Undo git's C-style quoting of a path ("a/foo\\tbar")."""
    if len(s) < 2 or not (s.startswith('"') and s.endswith('"')):
        return s
    inner = s[1:-1]
    out = bytearray()
    i = 0
    simple = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}
    while i < len(inner):
        ch = inner[i]
        if ch != "\\" or i + 1 == len(inner):
            out += ch.encode("utf-8", errors="surrogateescape")
            i += 1
            continue
        nxt = inner[i + 1]
        if nxt in simple:
            out.append(simple[nxt])
            i += 2
        elif nxt in "01234567":
            out.append(int(inner[i + 1:i + 4], 8) & 0xFF)
            i += 4
        else:
            out += ("\\" + nxt).encode("utf-8")
            i += 2
    return out.decode("utf-8", errors="replace")


def _strip_prefix(path: str, prefix: str) -> str:
    path = unquote_path(path.rstrip("\t"))
    return path[len(prefix):] if path.startswith(prefix) else path


def _split_header(header: str) -> Tuple[str, str]:
    # "a/P b/P" when the path did not change; quoted forms when it needs escaping
    if header.startswith('"'):
        end = header.index('"', 1)
        while header[end - 1] == "\\":
            end = header.index('"', end + 1)
        old, new = header[:end + 1], header[end + 2:]
        return _strip_prefix(old, "a/"), _strip_prefix(new, "b/")
    n = len(header)
    mid = n // 2
    left, right = header[:mid], header[mid + 1:]
    if left.startswith("a/") and right.startswith("b/") and left[2:] == right[2:]:
        return left[2:], right[2:]
    old, _, new = header.partition(" b/")
    return _strip_prefix(old, "a/"), new


@dataclasses.dataclass
class _Section:
    header: str
    old_path: str = ""
    new_path: str = ""
    old_mode: int = 0
    new_mode: int = 0
    status: DeltaKind = DeltaKind.MODIFIED
    binary: bool = False
    hunks: List[Hunk] = dataclasses.field(default_factory=list)

    def finish(self) -> FileDelta:
        old, new = self.old_path, self.new_path
        if not old or not new:
            # binary and mode-only sections carry no ---/+++ lines
            h_old, h_new = _split_header(self.header)
            old = old or h_old
            new = new or h_new
        status = self.status
        if (status is DeltaKind.MODIFIED and self.old_mode and self.new_mode
                and stat.S_IFMT(self.old_mode) != stat.S_IFMT(self.new_mode)):
            status = DeltaKind.TYPE_CHANGED
        return FileDelta(old_path=old, new_path=new, status=status,
                         binary=self.binary, hunks=self.hunks)


def _merge_type_changes(deltas: List[FileDelta]) -> List[FileDelta]:
    # git prints a type change as a deletion and a creation of the same path
    out: List[FileDelta] = []
    for d in deltas:
        prev = out[-1] if out else None
        if (prev is not None and prev.new_path == d.new_path
                and {prev.status, d.status} == {DeltaKind.DELETED, DeltaKind.ADDED}):
            out[-1] = FileDelta(
                old_path=prev.old_path,
                new_path=d.new_path,
                status=DeltaKind.TYPE_CHANGED,
                binary=prev.binary or d.binary,
                hunks=prev.hunks + d.hunks,
            )
            continue
        out.append(d)
    return out


def parse_patch(text: str) -> List[FileDelta]:
    """Split `git diff -p` output into per-file deltas with classified lines."""
    deltas: List[FileDelta] = []
    cur: Optional[_Section] = None
    hunk: Optional[Hunk] = None

    for line in text.split("\n"):
        if line.startswith("diff --git "):
            if cur is not None:
                deltas.append(cur.finish())
            cur = _Section(header=line[len("diff --git "):])
            hunk = None
            continue
        if cur is None:
            continue
        if hunk is not None:
            if line[:1] in ("+", "-", " "):
                hunk.lines.append((line[0], line[1:]))
                continue
            if line.startswith("\\"):
                continue  # "\ No newline at end of file"
            hunk = None
        if line.startswith("@@"):
            hunk = Hunk(header=line, lines=[])
            cur.hunks.append(hunk)
        elif line.startswith("new file mode "):
            cur.status = DeltaKind.ADDED
            cur.new_mode = int(line.rsplit(" ", 1)[1], 8)
        elif line.startswith("deleted file mode "):
            cur.status = DeltaKind.DELETED
            cur.old_mode = int(line.rsplit(" ", 1)[1], 8)
        elif line.startswith("old mode "):
            cur.old_mode = int(line.rsplit(" ", 1)[1], 8)
        elif line.startswith("new mode "):
            cur.new_mode = int(line.rsplit(" ", 1)[1], 8)
        elif line.startswith("rename from "):
            cur.status = DeltaKind.RENAMED
            cur.old_path = unquote_path(line[len("rename from "):])
        elif line.startswith("rename to "):
            cur.new_path = unquote_path(line[len("rename to "):])
        elif line.startswith("copy from "):
            cur.status = DeltaKind.COPIED
            cur.old_path = unquote_path(line[len("copy from "):])
        elif line.startswith("copy to "):
            cur.new_path = unquote_path(line[len("copy to "):])
        elif line.startswith("--- "):
            if line.rstrip("\t") != "--- /dev/null" and not cur.old_path:
                cur.old_path = _strip_prefix(line[4:], "a/")
        elif line.startswith("+++ "):
            if line.rstrip("\t") != "+++ /dev/null" and not cur.new_path:
                cur.new_path = _strip_prefix(line[4:], "b/")
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            cur.binary = True

    if cur is not None:
        deltas.append(cur.finish())
    return _merge_type_changes(deltas)


# ---- repository --------------------------------------------------------------

class _ObjectReader:
    """A `git cat-file --batch` process answering object reads one at a time."""

    def __init__(self, cwd: str) -> None:
        try:
            self.proc = subprocess.Popen(
                ["git", "cat-file", "--batch"],
                cwd=cwd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise GitError("git is not installed or not found in PATH") from e

    def read(self, oid: str) -> Tuple[str, bytes]:
        if self.proc.stdin is None or self.proc.stdout is None or self.proc.poll() is not None:
            raise GitError("git cat-file is not running")
        self.proc.stdin.write(oid.encode("ascii") + b"\n")
        self.proc.stdin.flush()
        header = self.proc.stdout.readline()
        if not header:
            raise GitError("git cat-file exited unexpectedly")
        parts = header.rstrip(b"\n").split(b" ")
        if len(parts) != 3:
            raise ObjectNotFoundError(oid)
        size = int(parts[2])
        data = self.proc.stdout.read(size)
        self.proc.stdout.read(1)  # trailing LF
        return parts[1].decode("ascii"), data

    def close(self) -> None:
        if self.proc.stdin:
            self.proc.stdin.close()
        if self.proc.stdout:
            self.proc.stdout.close()
        self.proc.wait()


class Repository:
    """Read-only handle on one git repository (bare or with a work tree).

    Use as a context manager; the object reader process is released on exit.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)
        if not os.path.isdir(self.path):
            raise ObjectNotFoundError(path, "repository")
        self._reader: Optional[_ObjectReader] = None
        self._shallow: Optional[Set[str]] = None
        self._git(["rev-parse", "--git-dir"])

    def __enter__(self) -> "Repository":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def _git(self, args: List[str]) -> bytes:
        cmd = ["git", "-c", "core.quotepath=off"] + args
        try:
            cp = run(cmd, cwd=self.path)
        except subprocess.CalledProcessError as e:
            raise GitCommandError(cmd, e.returncode, e.stderr.decode("utf-8", errors="replace")) from e
        except FileNotFoundError as e:
            raise GitError("git is not installed or not found in PATH") from e
        return cp.stdout

    def _read(self, oid: str, expected: Optional[str] = None) -> Tuple[str, bytes]:
        if not is_hex_id(oid):
            raise ObjectNotFoundError(oid, expected or "object")
        if self._reader is None:
            self._reader = _ObjectReader(self.path)
        kind, data = self._reader.read(oid)
        if expected is not None and kind != expected:
            raise ObjectNotFoundError(oid, expected)
        return kind, data

    # -- revisions --

    def resolve(self, rev: str) -> str:
        if not rev or rev.startswith("-"):
            raise ObjectNotFoundError(rev, "revision")
        try:
            out = self._git(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        except GitCommandError as e:
            raise ObjectNotFoundError(rev, "revision") from e
        return out.decode("ascii").strip()

    def head(self) -> Optional[str]:
        try:
            return self.resolve("HEAD")
        except ObjectNotFoundError:
            return None

    # -- objects --

    def object_type(self, oid: str) -> str:
        return self._read(oid)[0]

    def shallow_commits(self) -> Set[str]:
        """Commits whose parents were cut off by a shallow clone."""
        if self._shallow is None:
            rel = self._git(["rev-parse", "--git-path", "shallow"]).decode("utf-8").strip()
            try:
                with open(os.path.join(self.path, rel), "r", encoding="ascii") as f:
                    self._shallow = {line.strip() for line in f if line.strip()}
            except FileNotFoundError:
                self._shallow = set()
        return self._shallow

    def commit(self, oid: str) -> RawCommit:
        _, data = self._read(oid, "commit")
        raw = parse_commit(oid, data)
        if raw.parents and oid in self.shallow_commits():
            # grafted boundary of a shallow clone: a root, as git log sees it
            logger.debug("commit %s is a shallow boundary; ignoring its parents", oid)
            raw.parents = []
        return raw

    def tree(self, oid: str) -> List[RawTreeEntry]:
        _, data = self._read(oid, "tree")
        return parse_tree(data, hash_len=len(oid) // 2)

    def blob(self, oid: str) -> bytes:
        return self._read(oid, "blob")[1]

    def peel_to_commit(self, oid: str) -> str:
        seen = set()
        while oid not in seen:
            seen.add(oid)
            kind = self.object_type(oid)
            if kind == "commit":
                return oid
            if kind != "tag":
                break
            first = self._read(oid, "tag")[1].split(b"\n", 1)[0]
            if not first.startswith(b"object "):
                break
            oid = first[len(b"object "):].decode("ascii")
        raise ObjectNotFoundError(oid, "commit")

    # -- diffs --

    def diff_trees(self, old_tree: Optional[str], new_tree: str) -> List[FileDelta]:
        """Deltas from old_tree (None for the empty tree) to new_tree, in diff order."""
        for oid in (old_tree, new_tree):
            if oid is not None and not is_hex_id(oid):
                raise ObjectNotFoundError(oid, "tree")
        out = self._git(["diff-tree"] + DIFF_OPTIONS + [old_tree or EMPTY_TREE_SHA, new_tree])
        return parse_patch(out.decode("utf-8", errors="replace"))

    # -- references --

    def references(self) -> List[RawReference]:
        fmt = "%(refname)%00%(refname:short)%00%(symref)%00%(objectname)"
        out = self._git(["for-each-ref", f"--format={fmt}", "refs/heads", "refs/tags"])
        refs: List[RawReference] = []
        for line in out.split(b"\n"):
            if not line:
                continue
            fields = [f.decode("utf-8", errors="replace") for f in line.split(b"\0")]
            if len(fields) != 4:
                logger.debug("unexpected for-each-ref record: %r", line)
                continue
            refs.append(RawReference(*fields))
        return refs

    def resolve_reference(self, ref: RawReference) -> str:
        """Direct target of ref; symbolic refs are followed to their target."""
        if not ref.symref:
            return ref.oid
        try:
            out = self._git(["rev-parse", "--verify", "--quiet", ref.symref])
        except GitCommandError as e:
            raise ObjectNotFoundError(ref.symref, "reference") from e
        return out.decode("ascii").strip()


def read_repo_file(repo_path: str, name: str) -> Optional[str]:
    """First line of <repo>/<name> or <repo>/.git/<name>, if either exists."""
    for candidate in (os.path.join(repo_path, name), os.path.join(repo_path, ".git", name)):
        try:
            with open(candidate, "r", encoding="utf-8", errors="replace") as f:
                return f.readline()
        except OSError:
            continue
    return None


def index_by_name(entries: List[RawTreeEntry]) -> Dict[str, RawTreeEntry]:
    return {e.name: e for e in entries}
