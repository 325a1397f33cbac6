from dataclasses import FrozenInstanceError
from datetime import UTC, datetime
from pathlib import Path

import pytest
from IPython.lib.pretty import pretty

from mini_vcs.base import Commit, NothingToCommit, Snapshot, StorageError, WorkingFile
from mini_vcs.impl.disk import DiskArchiveSink, DiskContentProvider
from mini_vcs.impl.memory import (
    MemoryArchiveSink,
    MemoryContentProvider,
    MemoryHistoryStore,
)
from mini_vcs.repository import Repository


def test_working_file_transitions():
    f = WorkingFile("a.txt", b"hello")
    assert f.committed_content == f.staged_content == b"hello"
    assert f.dirty is False

    # Same content still counts as an edit
    f.stage(b"hello")
    assert f.dirty is True

    f.stage(b"hi")
    assert f.committed_content == b"hello"

    f.commit_apply()
    assert (f.committed_content, f.dirty) == (b"hi", False)
    assert f.snapshot() == Snapshot("a.txt", b"hi")

    f.stage(b"draft")
    f.restore(b"old")
    assert (f.committed_content, f.staged_content, f.dirty) == (b"old", b"old", False)


def test_commit_is_immutable_and_ordered():
    commit = Commit.build(
        1,
        "msg",
        datetime.now(UTC),
        [Snapshot("b.txt", b"b"), Snapshot("a.txt", b"a"), Snapshot("c.txt", b"c")],
    )
    assert list(commit.snapshots) == ["a.txt", "b.txt", "c.txt"]
    assert commit.get("b.txt") == b"b"
    assert commit.get("zzz") is None

    with pytest.raises(FrozenInstanceError):
        commit.message = "other"  # type: ignore[misc]
    with pytest.raises(TypeError):
        commit.snapshots["d.txt"] = Snapshot("d.txt", b"d")  # type: ignore[index]


def test_history_append_requires_files():
    store = MemoryHistoryStore([])
    with pytest.raises(NothingToCommit):
        store.append("empty", [])
    assert store.next_id == 1


def test_disk_archive_layout(tmp_path: Path):
    archive = DiskArchiveSink(tmp_path / ".vcs")
    repo = Repository(MemoryHistoryStore([]), DiskContentProvider(tmp_path), archive)
    with repo:
        assert (tmp_path / ".vcs").is_dir()
        for name in ["b.txt", "a.txt"]:
            f = WorkingFile(name)
            f.stage(name.encode())
            repo.add_file(f)
        repo.commit("two files")

        assert archive.entries(1) == ["a.txt", "b.txt"]
        assert (tmp_path / ".vcs" / "commit_1" / "b.txt").read_bytes() == b"b.txt"
        assert archive.entries(2) == []

        archive.discard(1)
        assert archive.entries(1) == []

    assert not (tmp_path / ".vcs").exists()
    # Canonical files stay after teardown
    assert (tmp_path / "a.txt").read_bytes() == b"a.txt"


def test_disk_content_provider(tmp_path: Path):
    content = DiskContentProvider(tmp_path)
    assert content.load("missing.txt") is None
    content.save("nested/file.txt", b"data")
    assert content.load("nested/file.txt") == b"data"


def test_pretty_repr():
    repo = Repository(
        MemoryHistoryStore([]), None, MemoryArchiveSink({})  # type: ignore[arg-type]
    )
    f = WorkingFile("a.txt", b"x")
    repo.add_file(f)

    text = pretty(repo)
    assert text.startswith("Repository(")
    assert "MemoryHistoryStore(" in text
    assert "name='a.txt'" in text
    assert pretty(Snapshot("a.txt", b"x")) == "Snapshot(name='a.txt', content=b'x')"


def test_disk_archive_keeps_entries_under_commit_dir(tmp_path: Path):
    work_path = tmp_path / "work"
    archive = DiskArchiveSink(work_path / ".vcs")
    repo = Repository(MemoryHistoryStore([]), MemoryContentProvider({}), archive)
    outside = tmp_path / "elsewhere" / "a.txt"

    with repo:
        absolute = WorkingFile(str(outside))
        absolute.stage(b"abs")
        repo.add_file(absolute)
        repo.commit("absolute name")

        entries = archive.entries(1)
        assert len(entries) == 1
        assert entries[0].endswith("elsewhere/a.txt")
        assert not outside.exists()

        climbing = WorkingFile("../../leak.txt")
        climbing.stage(b"leak")
        repo.add_file(climbing)
        repo.commit("relative name")

        assert archive.entries(2) == ["leak.txt"]
        assert (work_path / ".vcs" / "commit_2" / "leak.txt").read_bytes() == b"leak"
        assert not (tmp_path / "leak.txt").exists()

    assert not (work_path / ".vcs").exists()


def test_disk_archive_rejects_empty_entry_name(tmp_path: Path):
    archive = DiskArchiveSink(tmp_path / ".vcs")
    archive.open()
    with pytest.raises(StorageError):
        archive.write_entry(1, "..", b"x")
    assert archive.entries(1) == []
