import logging
import shutil
from pathlib import Path
from typing import Any

from mini_vcs.base import ArchiveSink, Blob, ContentProvider, StorageError

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_DIR = ".vcs"


class DiskContentProvider(ContentProvider):
    def __init__(self, work_path: str | Path) -> None:
        self.work_path = Path(work_path).absolute()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        p.text(f"DiskContentProvider(path={self.work_path})")

    def load(self, name: str) -> Blob | None:
        file_path = self.work_path / name
        if not file_path.is_file():
            return None
        try:
            return file_path.read_bytes()
        except OSError as e:
            raise StorageError(name, str(e)) from e

    def save(self, name: str, content: Blob) -> None:
        file_path = self.work_path / name
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content)
        except OSError as e:
            raise StorageError(name, str(e)) from e


class DiskArchiveSink(ArchiveSink):
    """
    Archive laid out as `<root>/commit_<id>/<name>`.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).absolute()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        p.text(f"DiskArchiveSink(root={self.root})")

    def _commit_path(self, commit_id: int) -> Path:
        return self.root / f"commit_{commit_id}"

    def _entry_path(self, commit_id: int, name: str) -> Path:
        # Entries always live under commit_<id>, whatever the file name looks like
        commit_path = self._commit_path(commit_id)
        name_path = Path(name)
        parts = [p for p in name_path.parts if p not in (name_path.anchor, "..")]
        if not parts:
            raise StorageError(name, "invalid archive entry name")

        entry_path = commit_path.joinpath(*parts)
        if not entry_path.resolve().is_relative_to(commit_path.resolve()):
            raise StorageError(name, "archive entry escapes commit directory")
        return entry_path

    def open(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def close(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)

    def write_entry(self, commit_id: int, name: str, content: Blob) -> None:
        entry_path = self._entry_path(commit_id, name)
        try:
            entry_path.parent.mkdir(parents=True, exist_ok=True)
            entry_path.write_bytes(content)
        except OSError as e:
            raise StorageError(name, str(e)) from e
        logger.debug("Archived %s for commit %d", name, commit_id)

    def discard(self, commit_id: int) -> None:
        commit_path = self._commit_path(commit_id)
        if commit_path.exists():
            shutil.rmtree(commit_path)

    def entries(self, commit_id: int) -> list[str]:
        commit_path = self._commit_path(commit_id)
        if not commit_path.is_dir():
            return []
        return sorted(
            p.relative_to(commit_path).as_posix()
            for p in commit_path.rglob("*")
            if p.is_file()
        )
