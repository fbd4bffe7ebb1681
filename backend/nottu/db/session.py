# backend/nottu/db/session.py
import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from nottu.core.config import settings

logger = logging.getLogger(__name__)

# --- Asynchronous Engine and Session Setup (for FastAPI) ---
fastapi_async_engine: AsyncEngine | None = None
FastAPISessionLocal: async_sessionmaker[AsyncSession] | None = None


def _create_engine_and_sessionmaker(
    *, pooled: bool = True
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Build an engine and session maker from settings. Unpooled engines open a
    fresh connection per session, for callers that run each job on a new
    event loop.
    """
    db_url_obj = settings.ASYNC_SQLALCHEMY_DATABASE_URL
    if not db_url_obj:
        raise ValueError("ASYNC_SQLALCHEMY_DATABASE_URL is empty or None after computation.")
    db_url_str = str(db_url_obj)

    if pooled:
        pool_options = {"pool_pre_ping": True, "pool_size": settings.DB_POOL_SIZE}
    else:
        pool_options = {"poolclass": NullPool}
    engine = create_async_engine(db_url_str, echo=settings.DB_ECHO, **pool_options)
    session_local = async_sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )
    logger.info(
        "Asynchronous database engine (%s@...) and session maker configured.",
        db_url_str.split("@")[0].rsplit(":", 1)[0],
    )
    return engine, session_local


def _initialize_fastapi_db_resources_sync():
    """
    Initialize FastAPI's async database engine and session maker.
    Called by the lifespan manager.
    """
    global fastapi_async_engine, FastAPISessionLocal

    if fastapi_async_engine is not None:
        logger.info("FastAPI: Asynchronous database resources already initialized.")
        return

    logger.info("FastAPI: Initializing asynchronous database engine and session maker.")
    try:
        fastapi_async_engine, FastAPISessionLocal = _create_engine_and_sessionmaker()
    except Exception as e:
        logger.critical(
            f"CRITICAL: FastAPI: Failed to initialize asynchronous database engine: {e}",
            exc_info=True,
        )
        fastapi_async_engine = None
        FastAPISessionLocal = None
        raise RuntimeError(
            f"FastAPI: Failed to initialize asynchronous database engine during startup: {e}"
        ) from e


async def _dispose_fastapi_db_resources_async():
    global fastapi_async_engine, FastAPISessionLocal
    if fastapi_async_engine:
        logger.info("FastAPI: Disposing FastAPI asynchronous database engine.")
        await fastapi_async_engine.dispose()
        fastapi_async_engine = None
        FastAPISessionLocal = None
    else:
        logger.info("FastAPI: No FastAPI asynchronous database engine to dispose.")


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    if FastAPISessionLocal is None:
        logger.critical("FastAPI: FastAPISessionLocal is not initialized.")
        raise RuntimeError(
            "FastAPI: FastAPISessionLocal is not initialized. "
            "Ensure DB resources are initialized via lifespan."
        )
    async with FastAPISessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.error(
                "FastAPI: Async DB session rolled back due to an exception.", exc_info=True
            )
            raise


# --- Resources for Celery Worker ---
worker_async_engine: AsyncEngine | None = None
WorkerSessionLocal: async_sessionmaker[AsyncSession] | None = None


def initialize_worker_db_resources():
    global worker_async_engine, WorkerSessionLocal
    if worker_async_engine is not None:
        logger.info("CELERY_WORKER: Database engine already initialized for this process.")
        return

    logger.info("CELERY_WORKER: Initializing database engine and session factory.")
    try:
        # Each Celery task runs on its own asyncio.run() loop; connections must not outlive it.
        worker_async_engine, WorkerSessionLocal = _create_engine_and_sessionmaker(pooled=False)
    except Exception as e:
        logger.critical(
            f"CRITICAL: CELERY_WORKER: Failed to initialize database engine: {e}", exc_info=True
        )
        worker_async_engine = None
        WorkerSessionLocal = None
        raise RuntimeError(f"CELERY_WORKER: Failed to initialize database engine: {e}") from e


def dispose_worker_db_resources_sync():
    global worker_async_engine, WorkerSessionLocal
    if not worker_async_engine:
        logger.info("CELERY_WORKER: No database engine to dispose for this worker process.")
        return

    logger.info("CELERY_WORKER: Disposing database engine (sync call).")
    try:
        asyncio.run(worker_async_engine.dispose())
    except RuntimeError as e:
        logger.warning(
            f"CELERY_WORKER: asyncio.run() failed during dispose: {e}. Common during shutdown."
        )
    finally:
        worker_async_engine = None
        WorkerSessionLocal = None


@contextlib.asynccontextmanager
async def get_worker_db_session() -> AsyncGenerator[AsyncSession, None]:
    if WorkerSessionLocal is None:
        raise RuntimeError(
            "Database session factory (WorkerSessionLocal) not initialized for Celery worker."
        )

    async with WorkerSessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.error(
                "CELERY_WORKER: Exception occurred while using a worker DB session.",
                exc_info=True,
            )
            raise


# --- FastAPI Lifespan Event Handler Integration ---
async def lifespan_db_manager(_app_instance, event_type: str):
    lifespan_logger = logging.getLogger("nottu.db.lifespan")

    if event_type == "startup":
        lifespan_logger.info("FastAPI Lifespan: Startup event - Initializing DB resources.")
        _initialize_fastapi_db_resources_sync()

        if fastapi_async_engine is None:
            raise RuntimeError(
                "FastAPI engine failed to initialize during startup and did not raise."
            )
        try:
            async with fastapi_async_engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            lifespan_logger.info("FastAPI Lifespan: Database connection successful on startup.")
        except Exception as e:
            lifespan_logger.error(
                f"FastAPI Lifespan: Database connection test failed: {e}", exc_info=True
            )
            await _dispose_fastapi_db_resources_async()
            raise RuntimeError(f"FastAPI: Database connection test failed on startup: {e}") from e

    elif event_type == "shutdown":
        lifespan_logger.info("FastAPI Lifespan: Shutdown event - Disposing DB resources.")
        await _dispose_fastapi_db_resources_async()
