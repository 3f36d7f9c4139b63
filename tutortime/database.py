# TutorTime - Database Setup
# SQLAlchemy engine, session factory, and FastAPI dependencies

import logging
from typing import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from tutortime.config import get_settings
from tutortime.models.base import Base
from tutortime.services.errors import ConcurrencyConflict


logger = logging.getLogger(__name__)

# Get settings
settings = get_settings()
IS_SQLITE = settings.database_url.startswith("sqlite")

# Create engine with connection pooling
if IS_SQLITE:
    # Single shared connection so in-memory databases survive across sessions
    engine = create_engine(
        settings.database_url,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=settings.debug,
    )
else:
    engine = create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,  # Verify connections before using
        echo=settings.debug,  # Log SQL in debug mode
    )


# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Prevent lazy-load issues after commit
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    Usage in route handlers:

        @router.get("/time-entry/me")
        def list_days(db: Session = Depends(get_db)):
            ...

    The session is closed after the request completes, even if an
    exception occurs. Anything not committed is rolled back on close.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI requests.

    Usage in scripts and CLI commands:

        with get_db_context() as db:
            settings_rows = db.query(FranchisePayrollSettings).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def write_transaction(db: Session) -> Generator[None, None, None]:
    """
    Run one request's writes as a single transaction.

    Usage in route handlers:

        with write_transaction(db):
            state = service.clock_in(franchise_id, tutor_id)

    Commits when the block finishes. Any error rolls everything back, so a
    rejected request leaves the day exactly as it was. A lock timeout,
    deadlock victim or lost unique-constraint race, whether raised by a
    locking SELECT, a flush or the commit, surfaces as ConcurrencyConflict,
    which callers may retry.
    """
    try:
        yield
        db.commit()
    except (OperationalError, IntegrityError) as exc:
        db.rollback()
        logger.warning("Transaction rolled back after %s", exc.__class__.__name__)
        raise ConcurrencyConflict(
            "The entry was modified concurrently; please retry."
        ) from exc
    except Exception:
        db.rollback()
        raise


def init_db() -> None:
    """
    Initialize the database schema.

    Creates all tables defined in the models.

    WARNING: This is for development/testing only.
    In production, use Alembic migrations.
    """
    import tutortime.models  # noqa: F401  (register all tables)
    Base.metadata.create_all(bind=engine)


def drop_db() -> None:
    """
    Drop all tables.

    WARNING: Destroys all data. Only for development/testing.
    """
    Base.metadata.drop_all(bind=engine)


def check_connection() -> bool:
    """
    Test the database connection.

    Returns True if connection succeeds, raises exception otherwise.
    Useful for health checks and startup verification.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sqlite_options(dbapi_connection, connection_record):
        """
        Hand transaction control to SQLAlchemy.

        pysqlite defers BEGIN until the first DML statement, which breaks
        SAVEPOINT nesting; SQLAlchemy emits BEGIN itself instead.
        """
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def emit_sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")


if not IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sql_server_options(dbapi_connection, connection_record):
        """
        Set connection-level options for SQL Server.

        This runs once when a new connection is created.
        """
        cursor = dbapi_connection.cursor()

        # Set date format for consistency
        cursor.execute("SET DATEFORMAT ymd")

        cursor.close()
