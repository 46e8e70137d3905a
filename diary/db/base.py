from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from diary.core.config import settings
from diary.core.errors import TransientStoreError


def _normalize_database_url(database_url: str) -> str:
    url = str(database_url or "").strip()
    # Heroku / Railway still hand out the deprecated scheme.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Base(DeclarativeBase):
    pass


engine = create_engine(_normalize_database_url(settings.DATABASE_URL), pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transient_store_errors(db: Session, operation: str):
    """Roll back and re-raise lock/connection failures as TransientStoreError."""
    try:
        yield
    except OperationalError as exc:
        db.rollback()
        raise TransientStoreError(operation=operation, reason=str(exc.orig)) from exc
