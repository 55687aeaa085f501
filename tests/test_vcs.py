"""Tests for the git object and patch parsers."""

import pytest

from rendergit_site.errors import GitError, ObjectNotFoundError
from rendergit_site.models import DeltaKind
from rendergit_site.vcs import (
    Repository,
    _ObjectReader,
    is_binary,
    is_hex_id,
    parse_commit,
    parse_patch,
    parse_signature,
    parse_tree,
    unquote_path,
)

from conftest import requires_git


MODIFIED = """\
diff --git a/src/app.py b/src/app.py
index 1111111111111111111111111111111111111111..2222222222222222222222222222222222222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@ def main():
 import os
-import sys
+import json
+import re
 print("hi")
"""

ADDED_AND_BINARY = """\
diff --git a/new.txt b/new.txt
new file mode 100644
index 0000000000000000000000000000000000000000..3333333333333333333333333333333333333333
--- /dev/null
+++ b/new.txt
@@ -0,0 +1,2 @@
+first
+second
\\ No newline at end of file
diff --git a/logo.png b/logo.png
index 4444444444444444444444444444444444444444..5555555555555555555555555555555555555555 100644
Binary files a/logo.png and b/logo.png differ
"""

RENAME = """\
diff --git a/old name.txt b/new name.txt
similarity index 100%
rename from old name.txt
rename to new name.txt
"""

TYPE_CHANGE = """\
diff --git a/link b/link
deleted file mode 120000
index 6666666666666666666666666666666666666666..0000000000000000000000000000000000000000
--- a/link
+++ /dev/null
@@ -1 +0,0 @@
-target
\\ No newline at end of file
diff --git a/link b/link
new file mode 100644
index 0000000000000000000000000000000000000000..7777777777777777777777777777777777777777
--- /dev/null
+++ b/link
@@ -0,0 +1 @@
+now a file
"""


class TestParsePatch:
    def test_modified_file_lines_are_classified(self):
        (d,) = parse_patch(MODIFIED)
        assert d.old_path == d.new_path == "src/app.py"
        assert d.status is DeltaKind.MODIFIED
        assert len(d.hunks) == 1
        origins = [o for o, _ in d.hunks[0].lines]
        assert origins == [" ", "-", "+", "+", " "]
        assert d.hunks[0].header.startswith("@@ -1,3 +1,4 @@")

    def test_added_file_and_binary_file(self):
        added, binary = parse_patch(ADDED_AND_BINARY)
        assert added.status is DeltaKind.ADDED
        assert added.old_path == added.new_path == "new.txt"
        assert [t for _, t in added.hunks[0].lines] == ["first", "second"]
        assert binary.binary
        assert binary.hunks == []
        assert binary.new_path == "logo.png"

    def test_exact_rename_has_no_hunks(self):
        (d,) = parse_patch(RENAME)
        assert d.status is DeltaKind.RENAMED
        assert d.old_path == "old name.txt"
        assert d.new_path == "new name.txt"
        assert d.hunks == []

    def test_type_change_is_one_delta(self):
        (d,) = parse_patch(TYPE_CHANGE)
        assert d.status is DeltaKind.TYPE_CHANGED
        assert d.new_path == "link"
        assert len(d.hunks) == 2

    def test_content_lines_looking_like_headers_stay_in_hunk(self):
        text = (
            "diff --git a/x b/x\n"
            "--- a/x\n+++ b/x\n"
            "@@ -1 +1 @@\n"
            "---- a/y\n"
            "++++ b/y\n"
        )
        (d,) = parse_patch(text)
        assert d.hunks[0].lines == [("-", "--- a/y"), ("+", "+++ b/y")]

    def test_empty_output(self):
        assert parse_patch("") == []


class TestObjectParsers:
    def test_parse_commit(self):
        raw = (
            b"tree " + b"a" * 40 + b"\n"
            b"parent " + b"b" * 40 + b"\n"
            b"parent " + b"c" * 40 + b"\n"
            b"author Jane Doe <jane@example.com> 1700000000 -0130\n"
            b"committer Bob <bob@example.com> 1700000100 +0000\n"
            b"gpgsig -----BEGIN PGP SIGNATURE-----\n"
            b" abc\n"
            b" -----END PGP SIGNATURE-----\n"
            b"\n"
            b"Subject line\n\nBody text\n"
        )
        c = parse_commit("d" * 40, raw)
        assert c.tree == "a" * 40
        assert c.parents == ["b" * 40, "c" * 40]
        assert c.author.name == "Jane Doe"
        assert c.author.offset == -90
        assert c.committer.time == 1700000100
        assert c.message == "Subject line\n\nBody text\n"

    def test_parse_tree(self):
        raw = (
            b"100644 README\0" + bytes(range(20))
            + b"40000 src\0" + bytes(20)
            + b"160000 vendor\0" + b"\xff" * 20
        )
        entries = parse_tree(raw)
        assert [(e.name, e.kind) for e in entries] == [
            ("README", "blob"), ("src", "tree"), ("vendor", "commit"),
        ]
        assert entries[0].oid == bytes(range(20)).hex()
        assert entries[0].mode == 0o100644

    def test_parse_signature_without_timestamp(self):
        sig = parse_signature(b"weird")
        assert sig.name == "weird"
        assert sig.time == 0

    def test_unquote_path(self):
        assert unquote_path('"a/tab\\there"') == "a/tab\there"
        assert unquote_path('"caf\\303\\251"') == "café"
        assert unquote_path("plain") == "plain"

    def test_is_binary(self):
        assert is_binary(b"abc\0def")
        assert not is_binary(b"plain text\n")
        assert not is_binary(b"x" * 9000 + b"\0")

    def test_is_hex_id(self):
        assert is_hex_id("a" * 40)
        assert is_hex_id("0" * 64)
        assert not is_hex_id("HEAD")
        assert not is_hex_id("A" * 40)


@requires_git
class TestRepository:
    def test_objects_and_refs(self, git_repo):
        git_repo.write("README", "hello\n")
        git_repo.write("bin/data", b"\0\1\2")
        first = git_repo.commit("first")
        git_repo.git("tag", "-a", "v1", "-m", "release")

        with Repository(git_repo.path) as repo:
            assert repo.head() == first
            c = repo.commit(first)
            assert c.parents == []
            assert c.message == "first\n"
            names = {e.name: e.kind for e in repo.tree(c.tree)}
            assert names == {"README": "blob", "bin": "tree"}
            refs = {r.shorthand: r for r in repo.references()}
            assert refs["main"].is_branch
            assert refs["v1"].is_tag
            tag_obj = repo.resolve_reference(refs["v1"])
            assert repo.object_type(tag_obj) == "tag"
            assert repo.peel_to_commit(tag_obj) == first

    def test_missing_objects(self, git_repo):
        git_repo.commit("empty")
        with Repository(git_repo.path) as repo:
            with pytest.raises(ObjectNotFoundError):
                repo.commit("f" * 40)
            with pytest.raises(ObjectNotFoundError):
                repo.resolve("no-such-branch")

    def test_empty_repository_has_no_head(self, git_repo):
        with Repository(git_repo.path) as repo:
            assert repo.head() is None
            assert repo.references() == []

    def test_peel_rejects_non_commits(self, git_repo):
        git_repo.write("README", "hello\n")
        first = git_repo.commit("first")
        with Repository(git_repo.path) as repo:
            tree = repo.commit(first).tree
            assert repo.object_type(tree) == "tree"
            with pytest.raises(ObjectNotFoundError):
                repo.peel_to_commit(tree)

    def test_shallow_boundary_has_no_parents(self, git_repo, tmp_path):
        for i in range(3):
            git_repo.write("n.txt", f"{i}\n")
            git_repo.commit(f"c{i}")
        clone = tmp_path / "shallow"
        git_repo.git("clone", "-q", "--depth", "1", f"file://{git_repo.path}", str(clone))
        with Repository(str(clone)) as repo:
            head = repo.head()
            assert repo.shallow_commits() == {head}
            assert repo.commit(head).parents == []
        with Repository(git_repo.path) as repo:
            assert repo.shallow_commits() == set()


@requires_git
def test_object_reader_refuses_reads_after_close(git_repo):
    reader = _ObjectReader(git_repo.path)
    reader.close()
    with pytest.raises(GitError):
        reader.read("0" * 40)
