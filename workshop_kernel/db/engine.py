"""
Engine and session factory for the workshop database.

One module-level engine per process, set up by ``init_engine_from_url()``
(directly, or through ``workshop_services.api.create_api``).  Everything else
asks for sessions through ``get_session_factory()``.

Two backends are supported:

PostgreSQL
    READ COMMITTED with a sized, pre-pinged pool.  The Stock Ledger's
    conditional UPDATE waits on the row lock and then re-checks its WHERE
    clause, which is all the isolation the reservation path needs.

SQLite (development and tests)
    pysqlite's own transaction handling is switched off and every
    transaction starts with ``BEGIN IMMEDIATE``.  Writers therefore queue
    on the database lock (up to ``busy_timeout`` seconds) instead of failing
    when a read transaction tries to upgrade, and SAVEPOINTs behave.

Kernel > DB: imports nothing from models/, services/ or outer layers, except
the ORM registry that create_tables/drop_tables load lazily.
"""

import atexit

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from workshop_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_immediate_transactions(engine: Engine, busy_timeout: float) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout * 1000)}")
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    busy_timeout: float = 30.0,
) -> Engine:
    """
    Create an engine for ``database_url`` without touching module state.

    ``pool_size`` / ``max_overflow`` apply to server databases,
    ``busy_timeout`` (seconds) to SQLite.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": busy_timeout},
        )
        _sqlite_immediate_transactions(engine, busy_timeout)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    busy_timeout: float = 30.0,
) -> Engine:
    """
    Install the process-wide engine and session factory.

    A second call replaces the first engine without disposing it; call
    reset_engine() in between when that matters (tests do).

    Sessions do not expire on commit: module services build their DTOs
    inside the transaction and return them after it closed.
    """
    global _engine, _SessionFactory

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        busy_timeout=busy_timeout,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name, "echo": echo})
    return _engine


def _require_initialized() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    _require_initialized()
    return _engine


def get_session() -> Session:
    return _require_initialized()()


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for callers that need one session per thread."""
    return _require_initialized()


def create_tables() -> None:
    """Create every kernel and module table that does not exist yet."""
    from workshop_kernel.db.base import Base
    from workshop_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every table.  Tests only."""
    from workshop_kernel.db.base import Base
    from workshop_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_sqlite() -> bool:
    return _engine is not None and _engine.dialect.name == "sqlite"


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
