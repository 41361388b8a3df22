import logging
from typing import Any, Callable

from sqlalchemy import LargeBinary, String, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from vcs_plane.base import (
    ObjectKind,
    ObjectStore,
    check_prefix,
    compress,
    frame,
    hash_object,
)
from vcs_plane.errors import AmbiguousPrefixError, NotFoundError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class ObjectModel(Base):
    __tablename__ = "objects"
    oid: Mapped[str] = mapped_column(String(40), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    size: Mapped[int] = mapped_column(nullable=False)
    # compressed framed bytes, same as a loose object file
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class SqlObjectStore(ObjectStore):
    """
    Objects stored as rows of the `objects` table. Locations are full hashes.
    """

    def __init__(self, session_maker: Callable[[], Session]) -> None:
        self.session_maker = session_maker

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SqlObjectStore(...)")
        else:
            with p.group(4, "SqlObjectStore(", ")"):
                p.breakable()
                p.text(f"session_maker={self.session_maker!r},")
                p.breakable()

    def put(self, kind: ObjectKind | str, payload: bytes) -> tuple[str, str]:
        kind = ObjectKind(kind)
        oid = hash_object(kind, payload)

        with self.session_maker() as session:
            existing = session.get(ObjectModel, oid)
            if existing is None:
                session.add(
                    ObjectModel(
                        oid=oid,
                        kind=kind.value,
                        size=len(payload),
                        content=compress(frame(kind, payload)),
                    )
                )
                session.commit()
                logger.debug("inserted object %s", oid)

        return oid, oid

    def find(self, prefix: str) -> str:
        prefix = check_prefix(prefix)
        stmt = (
            select(ObjectModel.oid)
            .where(ObjectModel.oid.startswith(prefix, autoescape=True))
            .order_by(ObjectModel.oid)
            .limit(2)
        )
        with self.session_maker() as session:
            matches = list(session.execute(stmt).scalars().all())

        if not matches:
            raise NotFoundError(f"no object matches {prefix!r}")
        if len(matches) > 1:
            raise AmbiguousPrefixError(f"more than one object matches {prefix!r}")
        return matches[0]

    def read_raw(self, location: str) -> bytes:
        stmt = select(ObjectModel.content).where(ObjectModel.oid == location)
        with self.session_maker() as session:
            content = session.execute(stmt).scalar_one_or_none()
        if content is None:
            raise NotFoundError(f"no object at {location!r}")
        return content

    def contains(self, oid: str) -> bool:
        with self.session_maker() as session:
            return session.get(ObjectModel, oid.lower()) is not None


def create_sql_object_store(session_maker: Callable[[], Session]) -> SqlObjectStore:
    return SqlObjectStore(session_maker)
