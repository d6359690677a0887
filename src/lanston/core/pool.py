"""Connection pool management with SQLAlchemy."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from lanston.errors import LeaseError, LeaseTimeoutError, NotConnectedError
from lanston.models.config import DatabaseConfig

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Owns a bounded set of database connections and leases them out.

    The bound is ``pool_size + max_overflow``. A lease beyond the bound
    suspends the calling task (not the event loop) until a connection is
    released or ``pool_timeout`` expires.
    """

    def __init__(self, config: DatabaseConfig):
        """
        Initialize the pool manager. No connection is opened until connect().

        Args:
            config: Database configuration with connection URL and pool settings
        """
        self.config = config
        self.engine: Optional[AsyncEngine] = None
        self._leased: set[AsyncConnection] = set()

    async def connect(self) -> None:
        """Create the engine and its pool."""
        if self.engine is not None:
            logger.warning("Connection pool already initialized, ignoring connect()")
            return

        url = make_url(self.config.url)
        connect_args: dict[str, Any] = {}

        if self.config.dialect == "postgresql" and self.config.driver == "asyncpg":
            # asyncpg takes ssl as a connect argument, not a URL parameter
            for key in ("sslmode", "ssl"):
                if key in url.query:
                    value = url.query[key]
                    if value in ("disable", "false", "0"):
                        connect_args["ssl"] = False
                    else:
                        connect_args["ssl"] = value
                    url = url.difference_update_query([key])

            server_settings = {}
            if self.config.statement_timeout:
                server_settings["statement_timeout"] = str(
                    self.config.statement_timeout * 1000
                )
            if self.config.application_name:
                server_settings["application_name"] = self.config.application_name
            if server_settings:
                connect_args["server_settings"] = server_settings

        self.engine = create_async_engine(
            url,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_recycle=self.config.pool_recycle,
            pool_pre_ping=self.config.pool_pre_ping,
            echo=self.config.echo_sql,
            connect_args=connect_args,
        )
        logger.info(
            f"Connection pool created for {self.config.safe_url} "
            f"(size={self.config.pool_size}, overflow={self.config.max_overflow})"
        )

    async def disconnect(self) -> None:
        """Close all pooled connections. Safe to call more than once."""
        if self.engine is None:
            return
        if self._leased:
            logger.warning(
                f"Disconnecting with {len(self._leased)} connection(s) still leased"
            )
        await self.engine.dispose()
        self.engine = None
        logger.info("Connection pool disposed")

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise NotConnectedError()
        return self.engine

    async def lease(self) -> AsyncConnection:
        """
        Take exclusive ownership of one pooled connection.

        Returns:
            A connection that must be handed back with release()

        Raises:
            NotConnectedError: If connect() was not called
            LeaseTimeoutError: If no connection freed up within pool_timeout
        """
        engine = self._require_engine()
        try:
            conn = await engine.connect()
        except sa_exc.TimeoutError as e:
            raise LeaseTimeoutError(
                f"No connection available within {self.config.pool_timeout}s "
                f"(pool size {self.size})"
            ) from e

        self._leased.add(conn)
        return conn

    async def release(self, conn: AsyncConnection) -> None:
        """
        Return a leased connection to the pool.

        Any transaction still open on the connection is rolled back.

        Raises:
            LeaseError: If the connection is not currently leased from this pool
        """
        if conn not in self._leased:
            raise LeaseError("Connection is not leased from this pool or was already released")
        self._leased.discard(conn)
        await conn.close()

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[AsyncConnection, None]:
        """
        Lease a connection for the duration of the block.

        Yields:
            AsyncConnection, released when the block exits
        """
        conn = await self.lease()
        try:
            yield conn
        finally:
            await self.release(conn)

    @property
    def is_connected(self) -> bool:
        """Check if the pool is initialized."""
        return self.engine is not None

    @property
    def size(self) -> int:
        """Maximum number of simultaneously leased connections."""
        return self.config.pool_size + self.config.max_overflow

    @property
    def leased_count(self) -> int:
        """Connections currently leased out."""
        return len(self._leased)

    @property
    def idle_count(self) -> int:
        """Open connections sitting idle in the pool."""
        return self._require_engine().pool.checkedin()

    def status(self) -> str:
        """Pool status line from SQLAlchemy."""
        return self._require_engine().pool.status()

    async def __aenter__(self) -> "ConnectionPool":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
