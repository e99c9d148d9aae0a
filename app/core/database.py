"""Database engine, request-scoped sessions and transaction boundaries."""

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Run the enclosed block as one unit of work.

    Commits when the block exits normally; rolls back on any exception and
    re-raises it, so no caller ever observes a half-applied write.
    """
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
