"""Database connection and session management."""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.session import close_all_sessions

from patient_compliance.config import Settings, get_settings
from patient_compliance.models import Base


def create_engine_from_settings(settings: Optional[Settings] = None) -> Engine:
    """Create a synchronous engine for the configured database."""
    settings = settings or get_settings()
    timeout = settings.collaborator_timeout_seconds

    if settings.is_sqlite:
        # SQLite doesn't support these pool settings
        return create_engine(
            settings.database_url,
            echo=settings.database_echo,
            connect_args={"timeout": timeout, "check_same_thread": False},
        )

    connect_args: Dict[str, Any] = {}
    if settings.database_url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": int(max(timeout, 1)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return create_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=timeout,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.database_echo,
        connect_args=connect_args,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        class_=Session,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    db = factory()
    try:
        yield db
        db.commit()
    except (DataError, IntegrityError, SQLAlchemyError):
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine) -> None:
    """Initialize database with tables."""
    Base.metadata.create_all(bind=engine)


def drop_db(engine: Engine) -> None:
    """Drop all database tables (use with caution)."""
    close_all_sessions()
    Base.metadata.drop_all(bind=engine)
