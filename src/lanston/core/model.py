"""Table-scoped insert/select/update/delete."""

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional, Protocol

from sqlalchemy import inspect as sa_inspect

from lanston.core import statements
from lanston.core.executor import Params, Statement
from lanston.core.statements import ALL_COLUMNS, Columns, column_names
from lanston.errors import UnknownColumnError
from lanston.models.query import QueryResult

if TYPE_CHECKING:
    from lanston.core.database import Database

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class QueryRunner(Protocol):
    """Anything that can run a statement, e.g. a Transaction."""

    async def query(self, statement: Statement, params: Params = None) -> QueryResult:
        ...


class Model:
    """
    Handle on one table in one schema.

    Every method takes an optional ``transaction``. When given, the statement
    runs on that transaction's connection and becomes part of it; otherwise
    it runs on its own pooled connection and commits immediately.
    """

    def __init__(
        self,
        database: "Database",
        table: str,
        schema: Optional[str] = "public",
        columns: Optional[Iterable[str]] = None,
    ):
        """
        Initialize table model.

        Args:
            database: Database handle statements are routed through
            table: Table name
            schema: Schema name (None for the connection's search path)
            columns: Known column names; when set, every column a method
                refers to is checked against it
        """
        self.database = database
        self.table = table
        self.schema = schema
        self.columns: Optional[frozenset[str]] = (
            frozenset(columns) if columns is not None else None
        )

    def __repr__(self) -> str:
        name = f"{self.schema}.{self.table}" if self.schema else self.table
        return f"<Model {name}>"

    async def reflect(self) -> frozenset[str]:
        """
        Load the column set from the database catalog.

        Returns:
            The table's column names, also stored on the model
        """

        def get_column_names(sync_conn) -> list[str]:
            inspector = sa_inspect(sync_conn)
            return [
                col["name"]
                for col in inspector.get_columns(self.table, schema=self.schema)
            ]

        async with self.database.pool.connection() as conn:
            names = await conn.run_sync(get_column_names)

        self.columns = frozenset(names)
        logger.debug(f"Reflected {len(names)} columns for {self!r}")
        return self.columns

    def _validate(self, *groups: Iterable[str]) -> None:
        if self.columns is None:
            return
        unknown = {
            name
            for group in groups
            for name in group
            if name != ALL_COLUMNS and name not in self.columns
        }
        if unknown:
            raise UnknownColumnError(self.table, unknown)

    async def _query(
        self, statement: Statement, transaction: Optional[QueryRunner]
    ) -> QueryResult:
        if transaction is not None:
            return await transaction.query(statement)
        return await self.database.query(statement)

    async def insert(
        self,
        data: Mapping[str, Any],
        returning: Columns = None,
        transaction: Optional[QueryRunner] = None,
    ) -> list[Row]:
        """
        Insert one row.

        Args:
            data: Column/value mapping
            returning: Columns to return (``"*"`` for all)
            transaction: Transaction to run in

        Returns:
            Returned rows, empty unless ``returning`` was given
        """
        self._validate(data.keys(), column_names(returning))
        stmt = statements.build_insert(self.table, self.schema, data, returning)
        result = await self._query(stmt, transaction)
        return result.rows

    async def select(
        self,
        where: Optional[Mapping[str, Any]] = None,
        select: Columns = ALL_COLUMNS,
        transaction: Optional[QueryRunner] = None,
        order_by: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """
        Select rows matching ``where`` (all rows when omitted).

        Args:
            where: Equality filter
            select: Columns to return (default all)
            transaction: Transaction to run in
            order_by: Column names, ``-name`` for descending
            limit: Maximum rows to return
        """
        ordering = list(order_by or [])
        self._validate(
            (where or {}).keys(),
            column_names(select),
            (key.lstrip("-") for key in ordering),
        )
        stmt = statements.build_select(
            self.table, self.schema, where, select, ordering, limit
        )
        result = await self._query(stmt, transaction)
        return result.rows

    async def select_one(
        self,
        where: Optional[Mapping[str, Any]] = None,
        select: Columns = ALL_COLUMNS,
        transaction: Optional[QueryRunner] = None,
    ) -> Optional[Row]:
        """First row matching ``where``, or None."""
        rows = await self.select(where, select=select, transaction=transaction)
        return rows[0] if rows else None

    async def count(
        self,
        where: Optional[Mapping[str, Any]] = None,
        transaction: Optional[QueryRunner] = None,
    ) -> int:
        """Number of rows matching ``where``."""
        self._validate((where or {}).keys())
        stmt = statements.build_count(self.table, self.schema, where)
        result = await self._query(stmt, transaction)
        return int(result.rows[0]["count"])

    async def update(
        self,
        where: Optional[Mapping[str, Any]],
        data: Mapping[str, Any],
        returning: Columns = None,
        transaction: Optional[QueryRunner] = None,
    ) -> list[Row]:
        """
        Update rows matching ``where``.

        Returns:
            Updated rows, empty unless ``returning`` was given
        """
        self._validate((where or {}).keys(), data.keys(), column_names(returning))
        stmt = statements.build_update(
            self.table, self.schema, where, data, returning
        )
        result = await self._query(stmt, transaction)
        return result.rows

    async def delete(
        self,
        where: Optional[Mapping[str, Any]] = None,
        returning: Columns = None,
        transaction: Optional[QueryRunner] = None,
    ) -> list[Row]:
        """
        Delete rows matching ``where``.

        Without a filter every row in the table is deleted.

        Returns:
            Deleted rows, empty unless ``returning`` was given
        """
        self._validate((where or {}).keys(), column_names(returning))
        stmt = statements.build_delete(self.table, self.schema, where, returning)
        result = await self._query(stmt, transaction)
        return result.rows

    del_ = delete
