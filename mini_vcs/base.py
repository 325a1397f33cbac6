from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

Blob = bytes


class VcsError(Exception):
    """Base class for every outcome the repository reports as an error."""


class NothingToCommit(VcsError):
    def __init__(self) -> None:
        super().__init__("No edited files to commit")


class NotFound(VcsError):
    pass


class CommitNotFound(NotFound):
    def __init__(self, commit_id: int) -> None:
        super().__init__(f"Commit {commit_id} not found")
        self.commit_id = commit_id


class FileNotTracked(NotFound):
    def __init__(self, name: str) -> None:
        super().__init__(f"File '{name}' not found in working directory")
        self.name = name


class StorageError(VcsError):
    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class CommitAborted(VcsError):
    """
    Raised when at least one file of a commit could not be written.
    The commit is rolled back as a whole.
    """

    def __init__(self, failures: dict[str, StorageError]) -> None:
        super().__init__(f"Commit aborted, failed to write: {', '.join(failures)}")
        self.failures = failures


class CheckoutIncomplete(VcsError):
    def __init__(self, commit_id: int, failures: dict[str, StorageError]) -> None:
        super().__init__(
            f"Checked out commit {commit_id}, failed to restore on disk: "
            f"{', '.join(failures)}"
        )
        self.commit_id = commit_id
        self.failures = failures


@dataclass(frozen=True)
class Snapshot:
    """
    Frozen content of a single file inside a commit.
    """

    name: str
    content: Blob

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Snapshot(...)")
        else:
            p.text(f"Snapshot(name={self.name!r}, content={self.content!r})")


@dataclass(frozen=True)
class Commit:
    """
    Immutable, numbered, timestamped set of snapshots.

    Snapshots are iterated in file name order.
    """

    id: int
    message: str
    timestamp: datetime
    snapshots: Mapping[str, Snapshot]

    @classmethod
    def build(
        cls,
        commit_id: int,
        message: str,
        timestamp: datetime,
        snapshots: Iterable[Snapshot],
    ) -> "Commit":
        ordered = {s.name: s for s in sorted(snapshots, key=lambda s: s.name)}
        return cls(commit_id, message, timestamp, MappingProxyType(ordered))

    def get(self, name: str) -> Blob | None:
        snapshot = self.snapshots.get(name)
        return snapshot.content if snapshot else None

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Commit(...)")
        else:
            with p.group(4, "Commit(", ")"):
                p.breakable()
                p.text(f"id={self.id},")
                p.breakable()
                p.text(f"message={self.message!r},")
                p.breakable()
                p.text("snapshots=")
                p.pretty(list(self.snapshots.values()))
                p.breakable()


class WorkingFile:
    """
    Live file tracked by the tool.

    Keeps the content of the last commit apart from the staged edit.
    `dirty` is set by every edit, even one that restores the same content,
    and is cleared only by a commit or a restore.
    """

    def __init__(self, name: str, content: Blob = b"") -> None:
        self.name = name
        self.committed_content = content
        self.staged_content = content
        self.dirty = False

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("WorkingFile(...)")
        else:
            with p.group(4, "WorkingFile(", ")"):
                p.breakable()
                p.text(f"name={self.name!r},")
                p.breakable()
                p.text(f"staged={self.staged_content!r},")
                p.breakable()
                p.text(f"dirty={self.dirty},")
                p.breakable()

    @property
    def text(self) -> str:
        return self.staged_content.decode("utf-8", errors="replace")

    def stage(self, content: Blob) -> None:
        self.staged_content = content
        self.dirty = True

    def commit_apply(self) -> None:
        self.committed_content = self.staged_content
        self.dirty = False

    def snapshot(self) -> Snapshot:
        return Snapshot(self.name, self.committed_content)

    def restore(self, content: Blob) -> None:
        self.committed_content = content
        self.staged_content = content
        self.dirty = False


class HistoryStore:
    """
    Append-only sequence of commits.

    Commit ids start at 1 and grow by one per appended commit.
    """

    @property
    def next_id(self) -> int:
        """Id the next appended commit will receive."""
        raise NotImplementedError()

    def append(self, message: str, files: list[WorkingFile]) -> Commit:
        """Freeze the committed content of `files` into a new commit."""
        raise NotImplementedError()

    def find(self, commit_id: int) -> Commit:
        """Look up a commit by id, raising CommitNotFound when missing."""
        raise NotImplementedError()

    def iterate(self) -> Iterator[Commit]:
        """Iterate over all commits in append order."""
        raise NotImplementedError()

    def __len__(self) -> int:
        raise NotImplementedError()


class ContentProvider:
    """
    Canonical on-disk location of working files.
    """

    def load(self, name: str) -> Blob | None:
        """Read a file's content, None when it does not exist."""
        raise NotImplementedError()

    def save(self, name: str, content: Blob) -> None:
        """Write a file's content, raising StorageError on failure."""
        raise NotImplementedError()


class ArchiveSink:
    """
    Durability mirror of the content contributed by each commit.
    """

    def open(self) -> None:
        """Create the archive root."""
        raise NotImplementedError()

    def close(self) -> None:
        """Remove the archive root and everything in it."""
        raise NotImplementedError()

    def write_entry(self, commit_id: int, name: str, content: Blob) -> None:
        """Store one contributed file of a commit, raising StorageError on failure."""
        raise NotImplementedError()

    def discard(self, commit_id: int) -> None:
        """Drop every entry written for a commit."""
        raise NotImplementedError()

    def entries(self, commit_id: int) -> list[str]:
        """List the file names archived for a commit, sorted."""
        raise NotImplementedError()
