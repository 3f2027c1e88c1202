"""
Engine and session handling for the costing database.

- One process-wide engine, rebuilt when the configured database URL changes
  (the CLI's --database-url flag relies on this)
- SQLite connections get foreign keys on; file databases also run in WAL mode
- session_scope() is the only way services touch the database
- init/verify/reset helpers for the CLI start-up path
"""

import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import close_all_sessions, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.base import Base
from ..utils.config import get_config

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_engine_url: Optional[str] = None
_SessionFactory: Optional[sessionmaker] = None


def _is_memory_url(database_url: str) -> bool:
    return ":memory:" in database_url or "mode=memory" in database_url


def _sqlite_pragmas(wal: bool):
    def apply(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # recipe lines use ON DELETE RESTRICT
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return apply


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build an engine for a database URL.

    Args:
        database_url: SQLAlchemy URL (configured database_url when None)
        echo: Log every SQL statement

    Returns:
        Engine; SQLite engines allow use from the bulk-update worker threads
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Creating database engine: {database_url}")

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    if _is_memory_url(database_url):
        # one shared connection, otherwise each connection sees an empty database
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _sqlite_pragmas(wal=False))
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        event.listen(engine, "connect", _sqlite_pragmas(wal=True))
    return engine


def get_engine(force_recreate: bool = False) -> Engine:
    """Process-wide engine for the configured database URL."""
    global _engine, _engine_url, _SessionFactory

    database_url = get_config().database_url
    if _engine is None or force_recreate or database_url != _engine_url:
        if _engine is not None:
            _engine.dispose()
        _engine = create_database_engine(database_url)
        _engine_url = database_url
        _SessionFactory = None

    return _engine


def get_session_factory() -> sessionmaker:
    """
    Session factory bound to the process-wide engine.

    Sessions keep loaded attributes after commit so services can return
    detached entities.
    """
    global _SessionFactory

    engine = get_engine()
    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)
    return _SessionFactory


@contextmanager
def session_scope():
    """
    Transactional scope: commit on success, roll back on any exception,
    always close.

    Example:
        with session_scope() as session:
            session.add(Ingredient(name="Flour", base_unit="g"))
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_database(engine: Optional[Engine] = None) -> None:
    """Create any missing tables. Existing tables are left alone."""
    if engine is None:
        engine = get_engine()

    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database tables initialized")


def missing_tables(engine: Optional[Engine] = None) -> List[str]:
    """Names of mapped tables absent from the database."""
    if engine is None:
        engine = get_engine()

    from .. import models  # noqa: F401

    existing = set(inspect(engine).get_table_names())
    return sorted(name for name in Base.metadata.tables if name not in existing)


def verify_database() -> bool:
    """True when every mapped table exists."""
    missing = missing_tables()
    if missing:
        logger.error(f"Database is missing tables: {', '.join(missing)}")
        return False
    return True


def reset_database(confirm: bool = False) -> None:
    """
    Drop and recreate every table. All costing data is lost.

    Raises:
        ValueError: Unless confirm=True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("Resetting database: dropping all tables")

    engine = get_engine()

    from .. import models  # noqa: F401

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Tables recreated")


def close_connections() -> None:
    """Close open sessions and dispose of the engine."""
    global _engine, _engine_url, _SessionFactory

    close_all_sessions()
    _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None

    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """
    Prepare the database for the CLI: data directory, tables, verification.
    """
    config = get_config()
    if config.database_url.startswith("sqlite:///") and not config.database_url_overridden:
        config.ensure_directories()
        if config.database_exists():
            logger.info(f"Using existing database at: {config.database_path}")
        else:
            logger.info(f"Creating new database at: {config.database_path}")

    init_database(get_engine())

    if not verify_database():
        logger.warning("Database verification failed - tables may not exist")
