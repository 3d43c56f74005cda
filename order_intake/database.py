"""
Storage Gateway

Owns the pooled connection to the relational store (SQLAlchemy async engine)
and exposes the three primitives the rest of the application needs:
sessions (``acquire``), atomic units of work (``transaction``) and a
reachability probe (``ping``/``connect``).

The gateway is constructed once in the application lifespan, stored on
``app.state`` and passed into every service constructor.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timezone
from typing import Any, AsyncIterator, Awaitable, TypeVar, Union

from fastapi import Request
from sqlalchemy import DateTime, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import DBAPIError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql.expression import FunctionElement
from sqlalchemy.types import TypeDecorator

from order_intake.core.config import Settings
from order_intake.core.exceptions import StorageError, StorageConnectionError, QueryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Base class for all our models
class Base(DeclarativeBase):
    pass


# =============================================================================
# UTC TIMESTAMPS
# =============================================================================

class UTCDateTime(TypeDecorator):
    """
    Timestamp stored as naive UTC and read back as aware UTC.

    Aware values (including query bounds in any zone) are converted to UTC
    on the way in; naive values are taken to be UTC already.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class utcnow(FunctionElement):
    """The store's current time in UTC, as a naive timestamp."""
    type = UTCDateTime()
    inherit_cache = True


@compiles(utcnow)
def _utcnow_default(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(utcnow, "sqlite")
def _utcnow_sqlite(element, compiler, **kw):
    # UTC, in the same text layout SQLAlchemy stores so comparisons line up
    return "STRFTIME('%Y-%m-%d %H:%M:%f000', 'now')"


@compiles(utcnow, "postgresql")
def _utcnow_postgresql(element, compiler, **kw):
    return "TIMEZONE('utc', CURRENT_TIMESTAMP)"


@compiles(utcnow, "mssql")
def _utcnow_mssql(element, compiler, **kw):
    return "GETUTCDATE()"


def translate_error(exc: SQLAlchemyError) -> StorageError:
    """Map a SQLAlchemy failure onto the storage error taxonomy."""
    if isinstance(exc, PoolTimeoutError):
        return StorageConnectionError("Timed out waiting for a pooled connection", exc)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StorageConnectionError("Connection to the store was lost", exc)
    return QueryError("Statement failed", exc)


def _engine_options(
    url: URL,
    pool_size: int,
    max_overflow: int,
    pool_timeout: float,
    connect_timeout: int,
    request_timeout: int,
) -> dict[str, Any]:
    """Pool and timeout keyword arguments suited to the URL's backend."""
    options: dict[str, Any] = {"pool_pre_ping": True}
    backend = url.get_backend_name()

    if backend == "sqlite":
        # Busy timeout; SQLite has no server-side statement timeout
        options["connect_args"] = {"timeout": request_timeout}
        return options

    options.update(
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
    )
    if backend == "postgresql":
        options["connect_args"] = {
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={request_timeout * 1000}",
        }
    return options


class StorageGateway:
    """
    Pooled access to the order store.

    Args:
        url: Async SQLAlchemy URL (e.g. postgresql+psycopg://..., sqlite+aiosqlite:///...)
        echo: Log all SQL statements
        pool_size: Connections kept in the pool
        max_overflow: Extra connections allowed when the pool is exhausted
        pool_timeout: Seconds ``acquire`` waits for pool capacity
        connect_timeout: Seconds to wait when opening a connection
        request_timeout: Seconds a single statement may run
    """

    def __init__(
        self,
        url: Union[str, URL],
        *,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 0,
        pool_timeout: float = 30.0,
        connect_timeout: int = 30,
        request_timeout: int = 30,
    ):
        self.url = make_url(url)
        self.engine = create_async_engine(
            self.url,
            echo=echo,
            **_engine_options(
                self.url, pool_size, max_overflow, pool_timeout, connect_timeout, request_timeout
            ),
        )
        # Session factory - creates new database sessions
        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        # Units of work that must finish before the pool is closed
        self._in_flight: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageGateway":
        """Build a gateway from application settings."""
        return cls(
            settings.sqlalchemy_url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            connect_timeout=settings.db_connect_timeout,
            request_timeout=settings.db_request_timeout,
        )

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session for read-only work.

        Suspends until the pool has capacity. Store failures surface as
        ``StorageError`` subclasses.
        """
        async with self.session_maker() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                raise translate_error(e) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session inside a single database transaction.

        Everything issued through the session commits together when the
        block exits cleanly. Any exception rolls the whole unit back before
        it propagates, so a partial write is never visible to readers.
        """
        async with self.session_maker() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as e:
                raise translate_error(e) from e

    def run_detached(self, work: Awaitable[T]) -> "asyncio.Task[T]":
        """
        Run ``work`` in its own task that ``dispose`` waits for.

        Cancelling whoever awaits the returned task (through
        ``asyncio.shield``) does not stop the work itself.
        """
        task = asyncio.ensure_future(work)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    @property
    def in_flight(self) -> int:
        """Number of detached units of work still running."""
        return len(self._in_flight)

    async def drain(self) -> None:
        """Wait for every detached unit of work to finish."""
        if not self._in_flight:
            return
        logger.info(f"⏳ Waiting for {len(self._in_flight)} in-flight transaction(s)")
        await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def ping(self) -> None:
        """Round-trip a trivial statement; raises StorageError on failure."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StorageConnectionError("Store is unreachable", e) from e

    async def connect(self) -> None:
        """
        Verify the store is reachable at process start.

        Raises:
            StorageConnectionError: the store could not be reached. Callers
                treat this as fatal and refuse to serve traffic.
        """
        try:
            await self.ping()
        except StorageConnectionError as e:
            logger.error(f"❌ Database connection failed: {e.original_error}")
            raise
        logger.info(f"✅ Connected to {self.url.render_as_string(hide_password=True)}")

    async def init_schema(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Finish in-flight units of work, then close every pooled connection."""
        await self.drain()
        await self.engine.dispose()


def get_gateway(request: Request) -> StorageGateway:
    """
    Dependency injection for FastAPI routes.
    Returns the gateway created by the application lifespan.
    """
    return request.app.state.gateway
