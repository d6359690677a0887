"""Database handle tying the pool, executor and transactions together."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional, TypeVar

from lanston.core.executor import Params, Statement, StatementExecutor, StatsSink
from lanston.core.model import Model
from lanston.core.pool import ConnectionPool
from lanston.core.transaction import Transaction, TransactionCoordinator, TransactionFn
from lanston.errors import NotConnectedError
from lanston.models.config import DatabaseConfig
from lanston.models.query import QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """
    Entry point for queries, transactions and table models.

    One instance owns one connection pool. Create it, ``await connect()``
    once, pass it (or models built from it) to the code that needs database
    access, and ``await disconnect()`` at shutdown.
    """

    def __init__(
        self,
        config: Optional[DatabaseConfig] = None,
        stats_sink: Optional[StatsSink] = None,
    ):
        """
        Initialize database handle.

        Args:
            config: Connection configuration; may also be given to connect()
            stats_sink: Optional callable receiving per-statement diagnostics
        """
        self.config = config
        self.stats_sink = stats_sink
        self._pool: Optional[ConnectionPool] = None
        self._executor: Optional[StatementExecutor] = None
        self._coordinator: Optional[TransactionCoordinator] = None

    async def connect(self, config: Optional[DatabaseConfig] = None) -> None:
        """
        Create the connection pool.

        Raises:
            ValueError: If no configuration was given here or to the constructor
        """
        if self._pool is not None:
            logger.warning("Database already connected, ignoring connect()")
            return

        config = config or self.config
        if config is None:
            raise ValueError("A DatabaseConfig is required to connect")
        self.config = config

        pool = ConnectionPool(config)
        await pool.connect()
        self._pool = pool
        self._executor = StatementExecutor(pool, sink=self.stats_sink)
        self._coordinator = TransactionCoordinator(pool, self._executor)

    async def disconnect(self) -> None:
        """Close every pooled connection. Later queries raise NotConnectedError."""
        if self._pool is None:
            return
        pool = self._pool
        self._pool = None
        self._executor = None
        self._coordinator = None
        await pool.disconnect()

    @property
    def pool(self) -> ConnectionPool:
        """
        The connection pool.

        Raises:
            NotConnectedError: If connect() was not called
        """
        if self._pool is None:
            raise NotConnectedError()
        return self._pool

    @property
    def is_connected(self) -> bool:
        """Check if the pool is initialized."""
        return self._pool is not None

    async def query(self, statement: Statement, params: Params = None) -> QueryResult:
        """
        Run one statement on a pooled connection and commit it.

        Raises:
            NotConnectedError: If connect() was not called
            StatementError: If the backend rejects the statement
        """
        if self._executor is None:
            raise NotConnectedError()
        return await self._executor.execute(statement, params)

    async def transaction(self, fn: TransactionFn[T]) -> T:
        """
        Run ``fn(tx, rollback)`` atomically on one connection.

        See TransactionCoordinator.transaction().
        """
        if self._coordinator is None:
            raise NotConnectedError()
        return await self._coordinator.transaction(fn)

    @asynccontextmanager
    async def begin(self) -> AsyncGenerator[Transaction, None]:
        """
        Open a transaction for the duration of an ``async with`` block.

        See TransactionCoordinator.begin().
        """
        if self._coordinator is None:
            raise NotConnectedError()
        async with self._coordinator.begin() as tx:
            yield tx

    def model(
        self,
        table: str,
        schema: Optional[str] = "public",
        columns: Optional[Iterable[str]] = None,
    ) -> Model:
        """Table model bound to this database."""
        return Model(self, table, schema=schema, columns=columns)

    @classmethod
    async def create_connection(
        cls, config: DatabaseConfig, stats_sink: Optional[StatsSink] = None
    ) -> "Database":
        """Build a new handle and connect it."""
        database = cls(config, stats_sink=stats_sink)
        await database.connect()
        return database

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
