import logging
from pathlib import Path
from typing import Any, Iterator, MutableMapping

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mini_vcs.base import (
    ArchiveSink,
    CheckoutIncomplete,
    Commit,
    CommitAborted,
    ContentProvider,
    HistoryStore,
    NothingToCommit,
    StorageError,
    WorkingFile,
)
from mini_vcs.impl.disk import DEFAULT_ARCHIVE_DIR, DiskArchiveSink, DiskContentProvider
from mini_vcs.impl.memory import create_memory_history_store
from mini_vcs.impl.sql import Base, create_sql_history_store

logger = logging.getLogger(__name__)

WorkingSet = MutableMapping[str, WorkingFile]


class Repository:
    """
    Staging area plus commit history.

    The history store is the source of truth for checkout; the archive is a
    mirror of what each commit contributed. Commits are all-or-nothing: if
    any contributing file fails to reach the archive or the disk, nothing
    of that commit is kept.
    """

    def __init__(
        self,
        history: HistoryStore,
        content: ContentProvider,
        archive: ArchiveSink,
    ) -> None:
        self.history = history
        self.content = content
        self.archive = archive
        self.staged: dict[str, WorkingFile] = {}

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Repository(...)")
        else:
            with p.group(4, "Repository(", ")"):
                p.breakable()
                p.text("history=")
                p.pretty(self.history)
                p.text(",")
                p.breakable()
                p.text("staged=")
                p.pretty(list(self.staged.values()))
                p.text(",")
                p.breakable()

    def open(self) -> "Repository":
        self.archive.open()
        return self

    def close(self) -> None:
        self.archive.close()

    def __enter__(self) -> "Repository":
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    def add_file(self, f: WorkingFile) -> bool:
        if self.staged.get(f.name) is f:
            return False
        self.staged[f.name] = f
        logger.info("Added %s to staging", f.name)
        return True

    def staged_files(self) -> list[WorkingFile]:
        return [self.staged[name] for name in sorted(self.staged)]

    def commit(self, message: str) -> Commit:
        dirty = [f for f in self.staged_files() if f.dirty]
        if not dirty:
            raise NothingToCommit()

        commit_id = self.history.next_id
        failures: dict[str, StorageError] = {}
        saved: list[WorkingFile] = []

        for f in dirty:
            try:
                self.archive.write_entry(commit_id, f.name, f.staged_content)
                self.content.save(f.name, f.staged_content)
            except StorageError as e:
                logger.warning(
                    "Failed to write %s for commit %d: %s", f.name, commit_id, e.reason
                )
                failures[f.name] = e
            else:
                saved.append(f)

        if not failures:
            previous = {f.name: f.committed_content for f in dirty}
            for f in dirty:
                f.commit_apply()
            try:
                commit = self.history.append(message, dirty)
            except StorageError as e:
                for f in dirty:
                    f.committed_content = previous[f.name]
                    f.dirty = True
                failures[e.name] = e

        if failures:
            self._rollback(commit_id, saved)
            raise CommitAborted(failures)

        for f in dirty:
            del self.staged[f.name]

        logger.info("Committed %d file(s) as commit %d", len(dirty), commit.id)
        return commit

    def _rollback(self, commit_id: int, saved: list[WorkingFile]) -> None:
        self.archive.discard(commit_id)
        for f in saved:
            try:
                self.content.save(f.name, f.committed_content)
            except StorageError as e:
                logger.warning(
                    "Failed to restore %s after aborted commit: %s", f.name, e.reason
                )

    def log(self) -> Iterator[Commit]:
        return self.history.iterate()

    def format_log(self) -> str:
        blocks = []
        for commit in self.log():
            lines = [
                f"Commit {commit.id}: {commit.message} at "
                f"{commit.timestamp.astimezone():%a %b %d %H:%M:%S %Y}"
            ]
            for snapshot in commit.snapshots.values():
                text = snapshot.content.decode("utf-8", errors="replace")
                lines.append(f"  {snapshot.name}: {text}")
            blocks.append("\n".join(lines))

        if not blocks:
            return "No commits yet."
        return "\n--------------------\n".join(blocks)

    def checkout(self, commit_id: int, working_set: WorkingSet) -> Commit:
        commit = self.history.find(commit_id)

        working_set.clear()
        self.staged.clear()
        failures: dict[str, StorageError] = {}

        for name, snapshot in commit.snapshots.items():
            restored = WorkingFile(name)
            restored.restore(snapshot.content)
            working_set[name] = restored
            try:
                self.content.save(name, snapshot.content)
            except StorageError as e:
                logger.warning(
                    "Failed to restore %s from commit %d: %s", name, commit_id, e.reason
                )
                failures[name] = e

        if failures:
            raise CheckoutIncomplete(commit_id, failures)

        logger.info("Checked out commit %d", commit_id)
        return commit


def create_repository(
    work_path: str | Path,
    archive_path: str | Path | None = None,
    db_url: str | None = None,
) -> Repository:
    work_path = Path(work_path)
    if archive_path is None:
        archive_path = work_path / DEFAULT_ARCHIVE_DIR

    history: HistoryStore
    if db_url:
        engine = create_engine(db_url)
        Base.metadata.create_all(engine)
        history = create_sql_history_store(sessionmaker(bind=engine))
    else:
        history = create_memory_history_store([])

    return Repository(
        history,
        DiskContentProvider(work_path),
        DiskArchiveSink(archive_path),
    )
