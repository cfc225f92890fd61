'''
Database Engine file.
1- Engine: creates and manages the connection pool
2- AsyncSessionLocal: Session Creator (with engine as bind)
3- get_db_session: Dependency to create, yield and manage the life-cycle of a session.
'''
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator
from ..common.config import settings
from ..common.logger import log

# We define them as None. They will be created by the app's lifespan.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def build_engine(database_url: str) -> AsyncEngine:
    """
    Creates an async engine for the given URL.
    In-memory SQLite needs a single shared connection, every other backend gets a pool.
    """
    if database_url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

        # The sqlite driver manages transactions itself and breaks SAVEPOINTs,
        # so let SQLAlchemy emit BEGIN explicitly.
        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(sqlite_engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return sqlite_engine
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=-1,
        pool_pre_ping=True
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def create_db_engine_and_session_factory():
    """
    Creates the engine and session factory.
    This is called by the app's lifespan event.
    """
    global engine, AsyncSessionLocal

    log.info("Creating database engine for URL...")
    try:
        engine = build_engine(settings.database_url)
        AsyncSessionLocal = build_session_factory(engine)
        log.info("Async database engine and session factory created successfully.")
    except Exception as e:
        log.critical(f"Failed to create async database engine: {e}", exc_info=True)
        raise

async def dispose_db_engine():
    """Disposes of the engine. Called by the app's lifespan."""
    global engine, AsyncSessionLocal
    if engine:
        await engine.dispose()
        log.info("Database engine disposed.")
    engine = None
    AsyncSessionLocal = None

async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The session is committed if the request succeeds and rolled back if anything
    raises. Row locks taken by the scheduling services are held until this commit,
    which is what keeps conflict-check-then-write atomic for single-lesson writes.
    """
    if AsyncSessionLocal is None:
        log.error("AsyncSessionLocal is not initialized. App lifespan may not have run.")
        raise RuntimeError("Database session factory is not available.")

    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        log.error(f"Database session rolled back due to error: {e}")
        raise
    finally:
        await session.close()
