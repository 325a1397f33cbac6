import pytest

from mini_vcs.base import (
    CheckoutIncomplete,
    CommitAborted,
    StorageError,
    WorkingFile,
)
from mini_vcs.impl.memory import (
    MemoryArchiveSink,
    MemoryContentProvider,
    MemoryHistoryStore,
)
from mini_vcs.repository import Repository


class FlakyContentProvider(MemoryContentProvider):
    def __init__(self, data, failing: set[str]):
        super().__init__(data)
        self.failing = failing

    def save(self, name, content):
        if name in self.failing:
            raise StorageError(name, "disk full")
        super().save(name, content)


class FlakyArchiveSink(MemoryArchiveSink):
    def __init__(self, data, failing: set[str]):
        super().__init__(data)
        self.failing = failing

    def write_entry(self, commit_id, name, content):
        if name in self.failing:
            raise StorageError(name, "read-only archive")
        super().write_entry(commit_id, name, content)


class BrokenHistoryStore(MemoryHistoryStore):
    def append(self, message, files):
        raise StorageError("history", "database is locked")


@pytest.fixture
def files():
    return {"a.txt": b"a0", "b.txt": b"b0", "c.txt": b"c0"}


def stage_all(repo: Repository, files: dict[str, bytes]) -> dict[str, WorkingFile]:
    working = {}
    for name, content in files.items():
        f = WorkingFile(name, content)
        f.stage(content + b"!")
        repo.add_file(f)
        working[name] = f
    return working


def test_disk_failure_aborts_whole_commit(files):
    archive = {}
    content = FlakyContentProvider(files, failing={"b.txt"})
    repo = Repository(MemoryHistoryStore([]), content, MemoryArchiveSink(archive))
    working = stage_all(repo, files)

    with pytest.raises(CommitAborted) as exc_info:
        repo.commit("partial")

    assert list(exc_info.value.failures) == ["b.txt"]
    # Every file was attempted, successful writes were reverted
    assert files == {"a.txt": b"a0", "b.txt": b"b0", "c.txt": b"c0"}
    assert archive == {}
    assert len(repo.history) == 0
    assert repo.history.next_id == 1
    for f in working.values():
        assert f.dirty is True
        assert f.committed_content + b"!" == f.staged_content
    assert len(repo.staged_files()) == 3


def test_archive_failure_reports_each_file(files):
    archive = {}
    repo = Repository(
        MemoryHistoryStore([]),
        MemoryContentProvider(files),
        FlakyArchiveSink(archive, failing={"a.txt", "c.txt"}),
    )
    stage_all(repo, files)

    with pytest.raises(CommitAborted) as exc_info:
        repo.commit("partial")

    assert sorted(exc_info.value.failures) == ["a.txt", "c.txt"]
    assert exc_info.value.failures["a.txt"].reason == "read-only archive"
    assert files["b.txt"] == b"b0"
    assert archive == {}


def test_history_failure_rolls_back(files):
    archive = {}
    repo = Repository(
        BrokenHistoryStore([]), MemoryContentProvider(files), MemoryArchiveSink(archive)
    )
    working = stage_all(repo, files)

    with pytest.raises(CommitAborted) as exc_info:
        repo.commit("lost")

    assert list(exc_info.value.failures) == ["history"]
    assert files["a.txt"] == b"a0"
    assert archive == {}
    assert working["a.txt"].committed_content == b"a0"
    assert working["a.txt"].dirty is True


def test_repository_usable_after_aborted_commit(files):
    content = FlakyContentProvider(files, failing={"b.txt"})
    repo = Repository(MemoryHistoryStore([]), content, MemoryArchiveSink({}))
    stage_all(repo, files)

    with pytest.raises(CommitAborted):
        repo.commit("first try")

    content.failing.clear()
    commit = repo.commit("second try")
    assert commit.id == 1
    assert files == {"a.txt": b"a0!", "b.txt": b"b0!", "c.txt": b"c0!"}


def test_checkout_reports_failed_restores(files):
    content = FlakyContentProvider(files, failing=set())
    repo = Repository(MemoryHistoryStore([]), content, MemoryArchiveSink({}))
    stage_all(repo, files)
    repo.commit("all")

    content.failing.add("c.txt")
    working_set = {}
    with pytest.raises(CheckoutIncomplete) as exc_info:
        repo.checkout(1, working_set)

    assert list(exc_info.value.failures) == ["c.txt"]
    # Working set is still rebuilt from the commit
    assert sorted(working_set) == ["a.txt", "b.txt", "c.txt"]
    assert working_set["c.txt"].committed_content == b"c0!"
