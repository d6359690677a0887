"""Transactions over a single leased connection.

A transaction leases one connection, opens a transaction on it, hands the
caller a :class:`Transaction` bound to that connection and, on every exit
path, either commits or rolls back and then releases the connection exactly
once.
"""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, TypeVar, Union

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction

from lanston.core.executor import Params, Statement, StatementExecutor
from lanston.core.pool import ConnectionPool
from lanston.errors import (
    NestedTransactionError,
    StatementError,
    TransactionAbortError,
    TransactionClosedError,
)
from lanston.models.query import QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

RollbackFn = Callable[[], Awaitable[None]]
TransactionFn = Callable[["Transaction", RollbackFn], Union[Awaitable[T], T]]

_current_transaction: ContextVar[Optional["Transaction"]] = ContextVar(
    "lanston_current_transaction", default=None
)


class TransactionState(str, Enum):
    """Lifecycle of a transaction."""

    PENDING = "pending"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """
    Executor bound to one leased connection for the life of a transaction.

    Statements issued through query() always run on the leased connection,
    one at a time, in the order they were issued. Once the transaction is
    committed or rolled back every method raises TransactionClosedError.
    """

    def __init__(self, connection: AsyncConnection, executor: StatementExecutor):
        self.connection = connection
        self.state = TransactionState.PENDING
        self._executor = executor
        self._sa_transaction: Optional[AsyncTransaction] = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_active(self) -> bool:
        """Check if statements can still be issued."""
        return not self._closed and self.state is TransactionState.ACTIVE

    @property
    def rollback_requested(self) -> bool:
        """Check if the unit of work aborted through rollback()."""
        return self.state is TransactionState.ROLLED_BACK

    def _check_active(self) -> None:
        if not self.is_active:
            raise TransactionClosedError(
                f"Transaction is {self.state.value} and can no longer be used"
            )

    async def query(self, statement: Statement, params: Params = None) -> QueryResult:
        """
        Execute a statement on the transaction's connection.

        Raises:
            TransactionClosedError: If the transaction already finished
            StatementError: If the backend rejects the statement
        """
        self._check_active()
        async with self._lock:
            self._check_active()
            return await self._executor.execute(
                statement, params, connection=self.connection
            )

    execute = query

    async def rollback(self) -> None:
        """
        Abort the transaction now.

        Calling it again after a rollback is a no-op. The surrounding
        transaction() call still returns the unit of work's result.

        Raises:
            TransactionClosedError: If the transaction was already committed
                or its unit of work has returned
        """
        if self._closed:
            self._check_active()
        if self.state is TransactionState.ROLLED_BACK:
            return
        self._check_active()
        async with self._lock:
            await self._rollback()
        logger.debug("Transaction rolled back on request")

    async def _begin(self) -> None:
        try:
            self._sa_transaction = await self.connection.begin()
        except sa_exc.DBAPIError as e:
            raise StatementError(
                str(e.orig), statement="BEGIN", orig=e.orig
            ) from e
        self.state = TransactionState.ACTIVE

    def _require_sa_transaction(self) -> AsyncTransaction:
        if self._sa_transaction is None:
            raise RuntimeError("Transaction not started. Call _begin() first.")
        return self._sa_transaction

    async def _commit(self) -> None:
        await self._require_sa_transaction().commit()
        self.state = TransactionState.COMMITTED

    async def _rollback(self) -> None:
        sa_transaction = self._require_sa_transaction()
        # Mark first so a failing rollback still leaves the handle unusable
        self.state = TransactionState.ROLLED_BACK
        await sa_transaction.rollback()

    def _close(self) -> None:
        self._closed = True


class TransactionCoordinator:
    """Runs units of work atomically on a dedicated connection."""

    def __init__(self, pool: ConnectionPool, executor: StatementExecutor):
        """
        Initialize transaction coordinator.

        Args:
            pool: Pool the transaction connection is leased from
            executor: Executor used for statements inside the transaction
        """
        self.pool = pool
        self.executor = executor

    @asynccontextmanager
    async def begin(self) -> AsyncGenerator[Transaction, None]:
        """
        Open a transaction for the duration of the block.

        Commits when the block exits normally, rolls back and re-raises when
        it raises, and skips the commit when the block called rollback().
        The connection goes back to the pool on every path.

        Yields:
            Transaction bound to the leased connection

        Raises:
            NestedTransactionError: If a transaction is already open in this task
            NotConnectedError: If the pool is not initialized
            LeaseTimeoutError: If no connection freed up in time
            TransactionAbortError: If the commit failed
        """
        if _current_transaction.get() is not None:
            raise NestedTransactionError(
                "A transaction is already open in this task; "
                "pass its executor instead of opening another"
            )

        conn = await self.pool.lease()
        tx = Transaction(conn, self.executor)
        token = _current_transaction.set(tx)
        try:
            await tx._begin()
            logger.debug("Transaction started")

            try:
                yield tx
            except BaseException:
                if tx.state is TransactionState.ACTIVE:
                    try:
                        await tx._rollback()
                        logger.debug("Transaction rolled back after error")
                    except Exception:
                        logger.error(
                            "Rollback failed after transaction error", exc_info=True
                        )
                raise

            if tx.state is TransactionState.ACTIVE:
                try:
                    await tx._commit()
                except Exception as e:
                    try:
                        await tx._rollback()
                    except Exception:
                        logger.error("Rollback failed after commit error", exc_info=True)
                    raise TransactionAbortError(f"Commit failed: {e}", orig=e) from e
                logger.debug("Transaction committed")
        finally:
            tx._close()
            _current_transaction.reset(token)
            await self.pool.release(conn)

    async def transaction(self, fn: TransactionFn[T]) -> T:
        """
        Run ``fn(tx, rollback)`` inside a transaction and return its result.

        ``tx`` exposes query() bound to the transaction's connection and can be
        passed to Model methods as ``transaction=``. ``rollback`` aborts the
        transaction; ``fn`` may then return normally and its value is still
        returned here.

        Args:
            fn: Async (or plain) callable running the unit of work

        Returns:
            Whatever ``fn`` returned
        """
        async with self.begin() as tx:
            result: Any = fn(tx, tx.rollback)
            if inspect.isawaitable(result):
                result = await result
            return result

    @staticmethod
    def current() -> Optional[Transaction]:
        """Transaction open in the current task, if any."""
        return _current_transaction.get()
