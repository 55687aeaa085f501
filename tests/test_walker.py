"""Tests for revision walking."""

import pytest

from rendergit_site.errors import ObjectNotFoundError
from rendergit_site.walker import load_commit, summary_of, walk

from conftest import oid


@pytest.fixture
def merged(fake_repo):
    """
    a - b ------ m - n     (main)
         \\     /
          s1 - s2          (side, newer than b)
    """
    r = fake_repo
    a, b, s1, s2, m, n = (oid(i) for i in range(1, 7))
    r.add_commit(a, time=100)
    r.add_commit(b, [a], time=200)
    r.add_commit(s1, [b], time=300)
    r.add_commit(s2, [s1], time=400)
    r.add_commit(m, [b, s2], time=500)
    r.add_commit(n, [m], time=600)
    r.head_id = n
    return r, dict(a=a, b=b, s1=s1, s2=s2, m=m, n=n)


class TestFirstParentWalk:
    def test_merge_follows_mainline_parent(self, merged):
        repo, c = merged
        order = list(walk(repo, "HEAD"))
        assert order == [c["n"], c["m"], c["b"], c["a"]]
        assert c["s1"] not in order and c["s2"] not in order

    def test_stop_at_excludes_boundary_and_older(self, merged):
        repo, c = merged
        assert list(walk(repo, c["n"], stop_at=c["b"])) == [c["n"], c["m"]]

    def test_stop_at_head_yields_nothing(self, merged):
        repo, c = merged
        assert list(walk(repo, c["n"], stop_at=c["n"])) == []

    def test_is_lazy(self, merged):
        repo, c = merged
        it = walk(repo, c["n"])
        assert next(it) == c["n"]
        del repo.commits[c["a"]]
        assert next(it) == c["m"]
        assert next(it) == c["b"]
        with pytest.raises(ObjectNotFoundError):
            next(it)

    def test_unknown_start(self, merged):
        repo, _ = merged
        with pytest.raises(ObjectNotFoundError):
            list(walk(repo, "nope"))


class TestTimeOrderedWalk:
    def test_visits_side_branch_by_time(self, merged):
        repo, c = merged
        order = list(walk(repo, c["n"], first_parent_only=False))
        assert order == [c["n"], c["m"], c["s2"], c["s1"], c["b"], c["a"]]

    def test_each_commit_once(self, merged):
        repo, c = merged
        order = list(walk(repo, c["n"], first_parent_only=False))
        assert len(order) == len(set(order)) == 6

    def test_stop_at(self, merged):
        repo, c = merged
        order = list(walk(repo, c["n"], first_parent_only=False, stop_at=c["s2"]))
        assert order == [c["n"], c["m"]]


class TestCommitInfo:
    def test_load_commit(self, merged):
        repo, c = merged
        ci = load_commit(repo, c["m"])
        assert ci.parent_id == c["b"]
        assert ci.is_merge
        root = load_commit(repo, c["a"])
        assert root.parent_id == ""
        assert not root.is_merge

    def test_summary_is_first_paragraph(self):
        assert summary_of("\n  Fix the thing\nacross lines\n\nBody\n") == "Fix the thing across lines"
        assert summary_of("") == ""
