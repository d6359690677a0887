"""Build SQLAlchemy Core statements from plain filter/data mappings.

Filters are equality conjunctions: ``{"id": 1, "deleted_at": None}`` becomes
``id = :id_1 AND deleted_at IS NULL``; list, tuple and set values become
``IN`` clauses. All values are bound parameters.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from sqlalchemy import (
    ColumnElement,
    Delete,
    Insert,
    Select,
    Update,
    and_,
    column,
    delete,
    func,
    insert,
    literal_column,
    select,
    table,
    true,
    update,
)
from sqlalchemy.sql.expression import TableClause

Columns = Optional[Union[str, bool, Iterable[str]]]

ALL_COLUMNS = "*"


def column_names(columns: Columns) -> list[str]:
    """
    Normalize a column selection to a list of names.

    ``None``/``False`` mean no columns, ``True`` and ``"*"`` mean all.
    """
    if columns is None or columns is False:
        return []
    if columns is True:
        return [ALL_COLUMNS]
    if isinstance(columns, str):
        return [name.strip() for name in columns.split(",") if name.strip()]
    return list(columns)


def _table(
    name: str, schema: Optional[str], *referenced: Iterable[str]
) -> TableClause:
    """Lightweight table clause carrying every referenced column."""
    names: dict[str, None] = {}
    for group in referenced:
        for col in group:
            if col != ALL_COLUMNS:
                names[col] = None
    return table(name, *(column(col) for col in names), schema=schema)


def _where_clause(t: TableClause, where: Optional[Mapping[str, Any]]) -> ColumnElement:
    if not where:
        return true()
    conditions = []
    for key, value in where.items():
        col = t.c[key]
        if value is None:
            conditions.append(col.is_(None))
        elif isinstance(value, (list, tuple, set, frozenset)):
            conditions.append(col.in_(list(value)))
        else:
            conditions.append(col == value)
    return and_(*conditions)


def _projection(t: TableClause, names: list[str]) -> list[Any]:
    if not names or ALL_COLUMNS in names:
        return [literal_column(ALL_COLUMNS)]
    return [t.c[name] for name in names]


def build_insert(
    name: str,
    schema: Optional[str],
    data: Mapping[str, Any],
    returning: Columns = None,
) -> Insert:
    """INSERT of one row. An empty ``data`` inserts column defaults."""
    returned = column_names(returning)
    t = _table(name, schema, data.keys(), returned)
    stmt = insert(t)
    if data:
        stmt = stmt.values(dict(data))
    if returned:
        stmt = stmt.returning(*_projection(t, returned))
    return stmt


def build_select(
    name: str,
    schema: Optional[str],
    where: Optional[Mapping[str, Any]] = None,
    columns: Columns = ALL_COLUMNS,
    order_by: Optional[Iterable[str]] = None,
    limit: Optional[int] = None,
) -> Select:
    """
    Filtered SELECT.

    ``order_by`` entries prefixed with ``-`` sort descending.
    """
    selected = column_names(columns)
    ordering = list(order_by or [])
    t = _table(
        name,
        schema,
        selected,
        (where or {}).keys(),
        (key.lstrip("-") for key in ordering),
    )
    stmt = select(*_projection(t, selected)).select_from(t)
    if where:
        stmt = stmt.where(_where_clause(t, where))
    for key in ordering:
        if key.startswith("-"):
            stmt = stmt.order_by(t.c[key[1:]].desc())
        else:
            stmt = stmt.order_by(t.c[key])
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def build_count(
    name: str, schema: Optional[str], where: Optional[Mapping[str, Any]] = None
) -> Select:
    """SELECT count(*) over the filtered rows."""
    t = _table(name, schema, (where or {}).keys())
    stmt = select(func.count().label("count")).select_from(t)
    if where:
        stmt = stmt.where(_where_clause(t, where))
    return stmt


def build_update(
    name: str,
    schema: Optional[str],
    where: Optional[Mapping[str, Any]],
    data: Mapping[str, Any],
    returning: Columns = None,
) -> Update:
    """
    UPDATE of the filtered rows.

    Raises:
        ValueError: If ``data`` is empty
    """
    if not data:
        raise ValueError("update requires at least one column to set")
    returned = column_names(returning)
    t = _table(name, schema, data.keys(), (where or {}).keys(), returned)
    stmt = update(t).values(dict(data))
    if where:
        stmt = stmt.where(_where_clause(t, where))
    if returned:
        stmt = stmt.returning(*_projection(t, returned))
    return stmt


def build_delete(
    name: str,
    schema: Optional[str],
    where: Optional[Mapping[str, Any]] = None,
    returning: Columns = None,
) -> Delete:
    """DELETE of the filtered rows. An empty filter deletes every row."""
    returned = column_names(returning)
    t = _table(name, schema, (where or {}).keys(), returned)
    stmt = delete(t)
    if where:
        stmt = stmt.where(_where_clause(t, where))
    if returned:
        stmt = stmt.returning(*_projection(t, returned))
    return stmt
