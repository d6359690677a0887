"""Statement result and diagnostic models."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from lanston.utils.serialization import dumps


class QueryResult(BaseModel):
    """Result of a single statement."""

    statement: str = Field(..., description="Executed statement text")
    rows: list[dict[str, Any]] = Field(
        default_factory=list, description="Returned rows as dictionaries"
    )
    row_count: int = Field(
        default=0, description="Rows returned, or rows affected for DML"
    )
    columns: list[str] = Field(
        default_factory=list, description="Column names in order"
    )
    execution_time_ms: Optional[float] = Field(
        None, description="Execution time in milliseconds"
    )

    @property
    def is_empty(self) -> bool:
        """Check if no rows were returned."""
        return not self.rows

    def first(self) -> Optional[dict[str, Any]]:
        """First row, or None when nothing was returned."""
        return self.rows[0] if self.rows else None

    def get_column_values(self, column: str) -> list[Any]:
        """Extract all values for a specific column."""
        return [row.get(column) for row in self.rows]

    def to_json(self) -> str:
        """Serialize rows to a JSON array string."""
        return dumps(self.rows)


class QueryStats(BaseModel):
    """Diagnostic event recorded for every executed statement."""

    statement: str = Field(..., description="Executed statement text")
    started_at: datetime = Field(..., description="Wall-clock start time")
    duration_ms: float = Field(..., description="Execution time in milliseconds")
    row_count: int = Field(..., description="Rows returned or affected")
