from datetime import UTC, datetime
from typing import Any, Callable, Iterator

from sqlalchemy import DateTime, ForeignKey, LargeBinary, String, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
    selectinload,
)

from mini_vcs.base import (
    Commit,
    CommitNotFound,
    HistoryStore,
    NothingToCommit,
    Snapshot,
    StorageError,
    WorkingFile,
)


class Base(DeclarativeBase):
    pass


class BlobModel(Base):
    __tablename__ = "blobs"
    id: Mapped[int] = mapped_column(primary_key=True)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class CommitModel(Base):
    __tablename__ = "commits"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    message: Mapped[str] = mapped_column(String, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    items: Mapped[list["SnapshotItemModel"]] = relationship(
        back_populates="commit", order_by="SnapshotItemModel.name"
    )


class SnapshotItemModel(Base):
    __tablename__ = "snapshot_items"
    commit_id: Mapped[int] = mapped_column(ForeignKey("commits.id"), primary_key=True)
    name: Mapped[str] = mapped_column(primary_key=True)
    blob_id: Mapped[int] = mapped_column(ForeignKey("blobs.id"))

    commit: Mapped[CommitModel] = relationship(back_populates="items")
    blob: Mapped[BlobModel] = relationship(BlobModel)


def _to_commit(model: CommitModel) -> Commit:
    timestamp = model.timestamp
    if timestamp.tzinfo is None:
        # SQLite drops the offset, values are always written in UTC
        timestamp = timestamp.replace(tzinfo=UTC)
    return Commit.build(
        model.id,
        model.message,
        timestamp,
        [Snapshot(item.name, item.blob.content) for item in model.items],
    )


class SqlHistoryStore(HistoryStore):
    """
    History store persisted with SQLAlchemy.

    Reopening a store on the same database yields the same history, so the
    database is the authoritative copy of every commit.
    """

    def __init__(self, session_maker: Callable[[], Session]) -> None:
        self.session_maker = session_maker

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SqlHistoryStore(...)")
        else:
            with p.group(4, "SqlHistoryStore(", ")"):
                p.breakable()
                p.text(f"commits={len(self)},")
                p.breakable()

    @staticmethod
    def _next_id(session: Session) -> int:
        last_id = session.execute(select(func.max(CommitModel.id))).scalar()
        return (last_id or 0) + 1

    @property
    def next_id(self) -> int:
        with self.session_maker() as session:
            return self._next_id(session)

    def append(self, message: str, files: list[WorkingFile]) -> Commit:
        if not files:
            raise NothingToCommit()

        try:
            with self.session_maker() as session:
                commit_model = CommitModel(
                    id=self._next_id(session),
                    message=message,
                    timestamp=datetime.now(UTC),
                )
                session.add(commit_model)

                for f in files:
                    snapshot = f.snapshot()
                    blob = BlobModel(content=snapshot.content)
                    session.add(blob)
                    session.flush()
                    session.add(
                        SnapshotItemModel(
                            commit_id=commit_model.id,
                            name=snapshot.name,
                            blob_id=blob.id,
                        )
                    )

                session.flush()
                session.refresh(commit_model)
                commit = _to_commit(commit_model)
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError("history", str(e)) from e

        return commit

    def find(self, commit_id: int) -> Commit:
        with self.session_maker() as session:
            stmt = (
                select(CommitModel)
                .where(CommitModel.id == commit_id)
                .options(
                    selectinload(CommitModel.items).selectinload(SnapshotItemModel.blob)
                )
            )
            model = session.execute(stmt).scalar_one_or_none()
            if model is None:
                raise CommitNotFound(commit_id)
            return _to_commit(model)

    def iterate(self) -> Iterator[Commit]:
        with self.session_maker() as session:
            ids = list(
                session.execute(select(CommitModel.id).order_by(CommitModel.id))
                .scalars()
                .all()
            )
        for commit_id in ids:
            yield self.find(commit_id)

    def __len__(self) -> int:
        with self.session_maker() as session:
            return session.execute(select(func.count(CommitModel.id))).scalar_one()


def create_sql_history_store(session_maker: Callable[[], Session]) -> SqlHistoryStore:
    return SqlHistoryStore(session_maker)
