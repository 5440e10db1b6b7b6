"""SQLite engine and transactional sessions for the GitHub mirror."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..orm.base import Base

logger = logging.getLogger(__name__)


def _configure_sqlite(dbapi_connection, connection_record) -> None:
    # WAL lets webhook deliveries read while another delivery writes;
    # uniqueness constraints still serialize conflicting inserts.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class DatabaseService:
    """Owns the async engine and hands out transactional sessions.

    All mirrored GitHub state (organizations, repositories, pull requests,
    reviews) plus categories and AI settings live in one SQLite file.
    """

    def __init__(self, database_path: str | Path, busy_timeout: float = 30.0):
        """
        Args:
            database_path: SQLite file; ``~`` is expanded and parent
                directories are created.
            busy_timeout: Seconds a writer waits for a concurrent writer's lock.
        """
        self.path = Path(database_path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.path}",
            connect_args={"timeout": busy_timeout},
        )
        event.listen(self.engine.sync_engine, "connect", _configure_sqlite)

        # Rows stay readable after commit; services return them to callers
        self.sessions = async_sessionmaker(self.engine, expire_on_commit=False, autoflush=False)

    async def initialize(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Schema ready at %s", self.path)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Provide a transactional scope; commits on exit, rolls back on error.

        IntegrityError from a violated unique constraint propagates to the
        caller after rollback so reconcilers can fall back to an update.
        """
        async with self.sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self.engine.dispose()


# Process-wide instance used by the CLI entry point
_db_service: Optional[DatabaseService] = None


def get_db_service() -> DatabaseService:
    if _db_service is None:
        raise RuntimeError("Database service not initialized")
    return _db_service


async def init_db_service(database_path: str | Path) -> DatabaseService:
    """Open the database at database_path and make it the process-wide instance."""
    global _db_service
    _db_service = DatabaseService(database_path)
    await _db_service.initialize()
    return _db_service
