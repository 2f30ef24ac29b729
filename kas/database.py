# kas/database.py
import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from kas.config import Settings
from kas.core.errors import NotReadyError

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the async engine (and its connection pool) for one app instance.

    Nothing touches the network until start(); sessions handed out before
    that raise NotReadyError.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self.is_ready = False

    def _engine_options(self) -> dict:
        options = {"echo": self.settings.DB_ECHO}
        # sqlite (dev/test) manages its own pool
        if not self.settings.effective_database_url.startswith("sqlite"):
            options.update(
                pool_size=self.settings.DB_POOL_SIZE,
                max_overflow=self.settings.DB_MAX_OVERFLOW,
                pool_timeout=self.settings.DB_POOL_TIMEOUT_SECONDS,
                pool_recycle=self.settings.DB_POOL_RECYCLE_SECONDS,
                pool_pre_ping=True,
            )
        return options

    async def start(self) -> None:
        if self.is_ready:
            return
        # tables are registered on Base.metadata on import
        from kas.models import report  # noqa: F401

        self.engine = create_async_engine(self.settings.effective_database_url, **self._engine_options())
        self.session_factory = async_sessionmaker(bind=self.engine, expire_on_commit=False, class_=AsyncSession)

        # create tables (use Alembic for managed deployments). ignore duplicate-object errors from concurrent workers.
        async with self.engine.begin() as conn:
            try:
                await conn.run_sync(Base.metadata.create_all)
            except sa_exc.IntegrityError as e:
                msg = str(getattr(e, "orig", e))
                if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                    logger.warning("Ignored duplicate DDL error during create_all: %s", msg)
                else:
                    raise

        self.is_ready = True
        logger.info("Database ready: %s", self.engine.url.render_as_string(hide_password=True))

    async def stop(self) -> None:
        self.is_ready = False
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connection pool closed")
        self.engine = None
        self.session_factory = None

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self.is_ready or self.session_factory is None:
            raise NotReadyError()
        # the pooled connection goes back on every exit path
        async with self.session_factory() as session:
            yield session


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.database
    async for session in database.session():
        yield session
