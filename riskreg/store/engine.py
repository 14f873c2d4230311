"""SQLAlchemy engine configuration for the SQL-backed entity store."""

from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from riskreg.logging_config import get_logger
from riskreg.store.tables import Base

logger = get_logger(name=__name__)

# Cache size in pages (negative value = KB, so -65536 = 64MB)
SQLITE_CACHE_SIZE = -65536


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Set SQLite pragmas on each new connection.

    Args:
        dbapi_connection: The raw DBAPI connection.
        connection_record: The connection record (unused but required by event signature).
    """
    cursor = dbapi_connection.cursor()
    # Link and control rows cascade through foreign keys
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = NORMAL")
    cursor.execute(f"PRAGMA cache_size = {SQLITE_CACHE_SIZE}")
    cursor.execute("PRAGMA busy_timeout = 30000")
    cursor.close()


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """Create and configure the SQLAlchemy engine.

    SQLite URLs get the pragma listener; an in-memory SQLite database is
    pinned to a single shared connection so every session sees the same data.

    Returns:
        Configured SQLAlchemy Engine instance.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)

    if is_sqlite:
        event.listen(engine, "connect", _set_sqlite_pragmas)

    logger.info("Created entity store engine for {}", engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def init_database(engine: Engine) -> None:
    """Create all register tables that do not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Entity store tables initialized")
