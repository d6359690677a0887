"""Statement execution against the pool or a leased connection."""

import logging
import time
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql import Executable

from lanston.core.pool import ConnectionPool
from lanston.errors import StatementError
from lanston.models.query import QueryResult, QueryStats

logger = logging.getLogger(__name__)
stats_logger = logging.getLogger("lanston.query_stats")

Statement = Union[str, Executable]
Params = Optional[Union[Mapping[str, Any], Sequence[Any]]]
StatsSink = Callable[[QueryStats], None]


class StatementExecutor:
    """Runs one statement at a time and records timing diagnostics."""

    def __init__(self, pool: ConnectionPool, sink: Optional[StatsSink] = None):
        """
        Initialize statement executor.

        Args:
            pool: Connection pool used for statements outside a transaction
            sink: Optional callable receiving a QueryStats per statement
        """
        self.pool = pool
        self.sink = sink

    async def execute(
        self,
        statement: Statement,
        params: Params = None,
        connection: Optional[AsyncConnection] = None,
    ) -> QueryResult:
        """
        Execute a statement.

        Without ``connection`` a connection is leased for this statement alone
        and the statement is committed before the connection is released.
        With ``connection`` the statement joins whatever transaction is open
        on it and nothing is committed here.

        Args:
            statement: SQL text or a SQLAlchemy executable
            params: Mapping for named binds (``:name``), or a sequence passed
                positionally to the driver in its native placeholder style.
                Text without params goes to the driver unchanged
            connection: Leased connection to run on

        Returns:
            Query result with rows and row count

        Raises:
            NotConnectedError: If the pool is not initialized
            StatementError: If the backend rejects the statement
        """
        if connection is not None:
            return await self._run(connection, statement, params)

        async with self.pool.connection() as conn:
            try:
                async with conn.begin():
                    return await self._run(conn, statement, params)
            except sa_exc.StatementError as e:
                # Deferred constraints fail at commit, after _run returned
                raise self._wrap_error(
                    e, self._statement_text(conn, statement), params
                ) from e

    async def _run(
        self, conn: AsyncConnection, statement: Statement, params: Params
    ) -> QueryResult:
        statement_text = self._statement_text(conn, statement)
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()

        try:
            if isinstance(statement, str):
                if params is None:
                    result = await conn.exec_driver_sql(statement)
                elif isinstance(params, Mapping):
                    result = await conn.execute(text(statement), params)
                else:
                    result = await conn.exec_driver_sql(statement, tuple(params))
            elif params:
                result = await conn.execute(statement, params)
            else:
                result = await conn.execute(statement)

            if result.returns_rows:
                columns = list(result.keys())
                rows = [dict(zip(columns, row)) for row in result.fetchall()]
                row_count = len(rows)
            else:
                columns = []
                rows = []
                row_count = max(result.rowcount, 0)
        except sa_exc.StatementError as e:
            raise self._wrap_error(e, statement_text, params) from e

        execution_time = (time.perf_counter() - start_time) * 1000

        self._record(
            QueryStats(
                statement=statement_text,
                started_at=started_at,
                duration_ms=execution_time,
                row_count=row_count,
            )
        )

        return QueryResult(
            statement=statement_text,
            rows=rows,
            row_count=row_count,
            columns=columns,
            execution_time_ms=execution_time,
        )

    @staticmethod
    def _wrap_error(
        error: sa_exc.StatementError, statement_text: str, params: Params
    ) -> StatementError:
        orig = error.orig if error.orig is not None else error
        return StatementError(
            str(orig), statement=statement_text, params=params, orig=orig
        )

    def _statement_text(self, conn: AsyncConnection, statement: Statement) -> str:
        if isinstance(statement, str):
            return statement
        return str(statement.compile(dialect=conn.dialect))

    def _record(self, stats: QueryStats) -> None:
        """Emit a diagnostic event. Never raises."""
        try:
            stats_logger.debug(
                "executed query",
                extra={
                    "statement": stats.statement,
                    "duration_ms": stats.duration_ms,
                    "rows": stats.row_count,
                },
            )
            if self.sink is not None:
                self.sink(stats)
        except Exception:
            logger.warning("Query diagnostics sink failed", exc_info=True)
