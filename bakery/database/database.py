# bakery/database/database.py
import json
import asyncpg
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar
from ..config import Config
from ..errors import StorageConflict
from .repository import Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Unique constraints whose violation means "lost a race, try again"
RETRYABLE_CONSTRAINTS = {"orders_order_number_key"}


class TransientConflict(Exception):
    """The store aborted a transaction because of a concurrent writer"""


class Database:
    """Owns the connection pool and hands out transactional repositories"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or Config.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Open the pool and apply pending migrations"""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                init=self._init_connection
            )

            await self._run_migrations()

            logger.info("Connected to database")
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    async def close(self):
        if self.pool:
            await self.pool.close()
            logger.info("Database connection closed")

    @staticmethod
    async def _init_connection(conn: asyncpg.Connection):
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repository]:
        """Yield a repository whose statements run in one transaction"""
        async with self.pool.acquire() as conn:
            try:
                async with conn.transaction():
                    yield Repository(conn)
            except (asyncpg.exceptions.SerializationError,
                    asyncpg.exceptions.DeadlockDetectedError) as e:
                raise TransientConflict(str(e)) from e
            except asyncpg.exceptions.UniqueViolationError as e:
                if e.constraint_name in RETRYABLE_CONSTRAINTS:
                    raise TransientConflict(str(e)) from e
                raise

    async def _run_migrations(self):
        """Apply migrations/*.sql files that have not run yet"""
        try:
            migrations_path = Path(__file__).parent / "migrations"

            async with self.pool.acquire() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS migrations (
                        id SERIAL PRIMARY KEY,
                        name VARCHAR(255) NOT NULL,
                        applied_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                for migration_file in sorted(migrations_path.glob("*.sql")):
                    migration_name = migration_file.name

                    is_applied = await conn.fetchval(
                        "SELECT COUNT(*) FROM migrations WHERE name = $1",
                        migration_name
                    )

                    if not is_applied:
                        async with conn.transaction():
                            await conn.execute(migration_file.read_text())
                            await conn.execute(
                                "INSERT INTO migrations (name) VALUES ($1)",
                                migration_name
                            )

                        logger.info(f"Migration {migration_name} applied")

        except Exception as e:
            logger.error(f"Migration failed: {e}")
            raise


async def run_in_transaction(db, work: Callable[[Any], Awaitable[T]]) -> T:
    """Run ``work(repo)`` atomically, retrying once on a transient conflict.

    ``work`` must be safe to re-run from scratch: everything it did in the
    aborted attempt has been rolled back.
    """
    for attempt in (1, 2):
        try:
            async with db.transaction() as repo:
                return await work(repo)
        except TransientConflict as e:
            if attempt == 2:
                logger.error(f"Transaction conflicted twice, giving up: {e}")
                raise StorageConflict() from e
            logger.warning(f"Transaction conflict, retrying once: {e}")
