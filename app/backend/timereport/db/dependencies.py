"""Database dependencies for FastAPI endpoints."""

from collections.abc import Generator

from sqlalchemy.orm import Session

from timereport.db.session import SessionLocal


def get_db_session() -> Generator[Session, None, None]:
    """Yield a request-scoped SQLAlchemy session, rolled back on failure."""

    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
