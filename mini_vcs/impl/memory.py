from datetime import UTC, datetime
from typing import Any, Iterator

from mini_vcs.base import (
    ArchiveSink,
    Blob,
    Commit,
    CommitNotFound,
    ContentProvider,
    HistoryStore,
    NothingToCommit,
    WorkingFile,
)

MemoryHistoryData = list[Commit]
MemoryFileData = dict[str, Blob]
MemoryArchiveData = dict[int, dict[str, Blob]]


class MemoryHistoryStore(HistoryStore):
    def __init__(self, data: MemoryHistoryData) -> None:
        self.data = data

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryHistoryStore(...)")
        else:
            with p.group(4, "MemoryHistoryStore(", ")"):
                p.breakable()
                p.text(f"commits={len(self.data)},")
                p.breakable()

    @property
    def next_id(self) -> int:
        return self.data[-1].id + 1 if self.data else 1

    def append(self, message: str, files: list[WorkingFile]) -> Commit:
        if not files:
            raise NothingToCommit()

        commit = Commit.build(
            self.next_id,
            message,
            datetime.now(UTC),
            [f.snapshot() for f in files],
        )
        self.data.append(commit)
        return commit

    def find(self, commit_id: int) -> Commit:
        for commit in self.data:
            if commit.id == commit_id:
                return commit
        raise CommitNotFound(commit_id)

    def iterate(self) -> Iterator[Commit]:
        return iter(list(self.data))

    def __len__(self) -> int:
        return len(self.data)


class MemoryContentProvider(ContentProvider):
    def __init__(self, data: MemoryFileData) -> None:
        self.data = data

    def load(self, name: str) -> Blob | None:
        return self.data.get(name)

    def save(self, name: str, content: Blob) -> None:
        self.data[name] = content


class MemoryArchiveSink(ArchiveSink):
    def __init__(self, data: MemoryArchiveData) -> None:
        self.data = data
        self.is_open = False

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.data.clear()
        self.is_open = False

    def write_entry(self, commit_id: int, name: str, content: Blob) -> None:
        self.data.setdefault(commit_id, {})[name] = content

    def discard(self, commit_id: int) -> None:
        self.data.pop(commit_id, None)

    def entries(self, commit_id: int) -> list[str]:
        return sorted(self.data.get(commit_id, {}))


def create_memory_history_store(data: MemoryHistoryData) -> MemoryHistoryStore:
    return MemoryHistoryStore(data)
