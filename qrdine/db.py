from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from qrdine.config import settings


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # sqlite connections are shared with the threadpool FastAPI runs sync handlers on
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


engine = create_engine(settings.DB_URL, connect_args=_connect_args(settings.DB_URL), pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    All-or-nothing scope for flows that write more than one entity.

    Everything flushed inside the block is committed together when the block
    exits normally; any exception rolls the whole session back and propagates.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
