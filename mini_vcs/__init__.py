from .base import (
    ArchiveSink,
    Blob,
    CheckoutIncomplete,
    Commit,
    CommitAborted,
    CommitNotFound,
    ContentProvider,
    FileNotTracked,
    HistoryStore,
    NotFound,
    NothingToCommit,
    Snapshot,
    StorageError,
    VcsError,
    WorkingFile,
)
from .commands import VCS
from .repository import Repository, create_repository

__all__ = [
    "ArchiveSink",
    "Blob",
    "CheckoutIncomplete",
    "Commit",
    "CommitAborted",
    "CommitNotFound",
    "ContentProvider",
    "FileNotTracked",
    "HistoryStore",
    "NotFound",
    "NothingToCommit",
    "Snapshot",
    "StorageError",
    "VcsError",
    "WorkingFile",
    "VCS",
    "Repository",
    "create_repository",
]
