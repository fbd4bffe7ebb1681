# /backend/alembic/env.py
import asyncio
import logging
import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

# --- BEGIN PATH MODIFICATION ---
alembic_dir = Path(__file__).resolve().parent
project_root = alembic_dir.parent

if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
# --- END PATH MODIFICATION ---

# --- Alembic Config ---
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

# --- Application Imports ---
try:
    from nottu.core.config import settings

    # nottu.db.base imports every model so they register with Base.metadata
    from nottu.db.base import Base

    logger.info("Successfully imported application settings, Base, and models.")
except ImportError as e:
    logger.error(f"Failed to import application modules. Error: {e}", exc_info=True)
    raise

# --- Target Metadata ---
target_metadata = Base.metadata

# --- Database URI ---
db_url_for_alembic_async = str(settings.ASYNC_SQLALCHEMY_DATABASE_URL)
log_db_url = db_url_for_alembic_async
if settings.POSTGRES_PASSWORD:
    log_db_url = db_url_for_alembic_async.replace(settings.POSTGRES_PASSWORD, "****")
logger.info(f"Database URI for Alembic: {log_db_url}")


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL for the configured URL."""
    context.configure(
        url=db_url_for_alembic_async.replace("+asyncpg", "", 1),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()
    logger.info("Offline migrations complete.")


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
    )
    logger.info("Beginning transaction and running migrations (online)...")
    with context.begin_transaction():
        context.run_migrations()
    logger.info("Online migration run completed within the transaction.")


async def run_migrations_online() -> None:
    """Run migrations in 'online' mode using an ASYNC engine."""
    connectable = create_async_engine(db_url_for_alembic_async, poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()
    logger.info("Async engine disposed. Online migrations fully complete.")


if context.is_offline_mode():
    logger.info("Alembic context is in OFFLINE mode.")
    run_migrations_offline()
else:
    logger.info("Alembic context is in ONLINE mode (async).")
    asyncio.run(run_migrations_online())
