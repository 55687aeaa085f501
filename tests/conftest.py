"""Shared fixtures: an in-memory stand-in for Repository and a real git helper."""

import os
import shutil
import subprocess
from typing import Dict, List, Optional, Tuple

import pytest

from rendergit_site.errors import GitCommandError, ObjectNotFoundError
from rendergit_site.models import Signature
from rendergit_site.vcs import FileDelta, RawCommit, RawReference, RawTreeEntry


def oid(n: int) -> str:
    return f"{n:040x}"


EMPTY_TREE = oid(0xE)


class FakeRepo:
    """Object store with the same read surface as rendergit_site.vcs.Repository."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.commits: Dict[str, RawCommit] = {}
        self.trees: Dict[str, List[RawTreeEntry]] = {EMPTY_TREE: []}
        self.blobs: Dict[str, bytes] = {}
        self.tag_objects: Dict[str, str] = {}
        self.refs: List[RawReference] = []
        self.diffs: Dict[Tuple[Optional[str], str], object] = {}
        self.head_id: Optional[str] = None
        self.diff_calls = 0
        self.fail_references = False

    # -- building --

    def add_commit(self, cid: str, parents=(), time: int = 1_600_000_000, tree: str = EMPTY_TREE,
                   message: str = "subject\n", author: str = "Alice") -> str:
        sig = Signature(name=author, email=f"{author.lower()}@example.com", time=time, offset=120)
        self.commits[cid] = RawCommit(id=cid, tree=tree, parents=list(parents), author=sig,
                                      committer=sig, message=message)
        return cid

    def add_ref(self, name: str, target: str, symref: str = "") -> None:
        short = name.split("/", 2)[-1]
        self.refs.append(RawReference(name=name, shorthand=short, symref=symref, oid=target))

    # -- Repository surface --

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        pass

    def head(self) -> Optional[str]:
        return self.head_id

    def resolve(self, rev: str) -> str:
        if rev == "HEAD" and self.head_id:
            return self.head_id
        if rev in self.commits:
            return rev
        raise ObjectNotFoundError(rev, "revision")

    def object_type(self, o: str) -> str:
        if o in self.commits:
            return "commit"
        if o in self.trees:
            return "tree"
        if o in self.blobs:
            return "blob"
        if o in self.tag_objects:
            return "tag"
        raise ObjectNotFoundError(o)

    def commit(self, o: str) -> RawCommit:
        if o not in self.commits:
            raise ObjectNotFoundError(o, "commit")
        return self.commits[o]

    def tree(self, o: str) -> List[RawTreeEntry]:
        if o not in self.trees:
            raise ObjectNotFoundError(o, "tree")
        return self.trees[o]

    def blob(self, o: str) -> bytes:
        if o not in self.blobs:
            raise ObjectNotFoundError(o, "blob")
        return self.blobs[o]

    def peel_to_commit(self, o: str) -> str:
        while o in self.tag_objects:
            o = self.tag_objects[o]
        if o not in self.commits:
            raise ObjectNotFoundError(o, "commit")
        return o

    def diff_trees(self, old_tree: Optional[str], new_tree: str) -> List[FileDelta]:
        self.diff_calls += 1
        result = self.diffs.get((old_tree, new_tree), [])
        if isinstance(result, Exception):
            raise result
        return result

    def references(self) -> List[RawReference]:
        if self.fail_references:
            raise GitCommandError(["git", "for-each-ref"], 128, "fatal: broken")
        return list(self.refs)

    def resolve_reference(self, ref: RawReference) -> str:
        if not ref.symref:
            return ref.oid
        for r in self.refs:
            if r.name == ref.symref:
                return r.oid
        raise ObjectNotFoundError(ref.symref, "reference")


@pytest.fixture
def fake_repo(tmp_path):
    repo_dir = tmp_path / "fake.git"
    repo_dir.mkdir()
    return FakeRepo(str(repo_dir))


# ---- real git ----------------------------------------------------------------

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


class GitRepo:
    """Scratch repository with deterministic identities and dates."""

    def __init__(self, path) -> None:
        self.path = str(path)
        self.tick = 1_700_000_000
        os.makedirs(self.path, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")

    def env(self) -> dict:
        env = dict(os.environ)
        for key in list(env):
            if key.startswith("GIT_"):
                del env[key]
        date = f"{self.tick} +0000"
        env.update({
            "GIT_AUTHOR_NAME": "Alice",
            "GIT_AUTHOR_EMAIL": "alice@example.com",
            "GIT_COMMITTER_NAME": "Alice",
            "GIT_COMMITTER_EMAIL": "alice@example.com",
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_DATE": date,
            "GIT_CONFIG_NOSYSTEM": "1",
            "HOME": self.path,
        })
        return env

    def git(self, *args: str) -> str:
        cp = subprocess.run(["git", *args], cwd=self.path, env=self.env(),
                            check=True, capture_output=True, text=True)
        return cp.stdout.strip()

    def write(self, rel: str, data) -> None:
        full = os.path.join(self.path, rel)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        mode = "wb" if isinstance(data, bytes) else "w"
        with open(full, mode) as f:
            f.write(data)

    def commit(self, message: str) -> str:
        self.tick += 60
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path):
    return GitRepo(tmp_path / "repo")
