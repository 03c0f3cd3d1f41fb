"""
RadioTrack Backend — Database Session Management
==================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   A `Database` object owns the engine and the session factory. The app
       factory builds one per application and stores it on `app.state.db`;
       the session dependency reads it from there. The lifespan handler
       disposes it at shutdown, so no connection pool is created at import.

Connection Pooling:
    pool_size / max_overflow come from settings (PostgreSQL only).
    pool_pre_ping validates connections before use.
    pool_recycle=3600 recycles connections every hour.
    SQLite (tests, local runs) uses SQLAlchemy's default pool.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from radiotrack.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for migrations and
    `Database.create_all()` uses for tests and local runs.
    """
    pass


class Database:
    """
    Engine plus session factory for one application instance.

    Attributes:
        engine:           The AsyncEngine managing the connection pool
        session_factory:  async_sessionmaker producing per-request sessions
    """

    def __init__(self, settings: Settings):
        engine_kwargs = {
            "pool_pre_ping": settings.db_pool_pre_ping,
            "echo": settings.log_level == "DEBUG",
        }
        if not settings.database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                pool_recycle=3600,
            )

        self.engine: AsyncEngine = create_async_engine(settings.database_url, **engine_kwargs)

        # expire_on_commit=False: response models read attributes after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create every table known to `Base.metadata` (no-op for existing ones)."""
        # Model modules must be imported so their tables are registered
        from radiotrack.models import patient  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """
        What:  Gracefully closes all connections in the pool.
        When:  Called during application shutdown (lifespan handler).
        """
        await self.engine.dispose()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the application's Database
        2. Yields it to the route handler
        3. On success: commits whatever is still pending. Service commands
           commit their own writes before returning (this exit code runs
           after the response is sent), so this is usually a no-op
        4. On error: rolls back the transaction and re-raises
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/pacientes")
        async def list_patients(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
