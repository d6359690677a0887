"""Exception hierarchy for lanston."""

from typing import Any, Optional


class LanstonError(Exception):
    """Base class for all lanston errors."""


class NotConnectedError(LanstonError):
    """Raised when a statement runs before connect() or after disconnect()."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No connection pool found. Call connect() before executing any queries."
        )


# Short alias used throughout the docs
NotConnected = NotConnectedError


class LeaseError(LanstonError):
    """Raised when a connection is released that is not currently leased."""


class LeaseTimeoutError(LanstonError):
    """Raised when no pooled connection frees up within the pool timeout."""


class StatementError(LanstonError):
    """
    The backend rejected a statement.

    Attributes:
        statement: Statement text that failed
        params: Parameters bound to the statement
        orig: Native driver exception (constraint violation, syntax error, ...)
    """

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        params: Any = None,
        orig: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.statement = statement
        self.params = params
        self.orig = orig


class TransactionAbortError(LanstonError):
    """Raised when commit fails after the unit of work ran successfully."""

    def __init__(self, message: str, orig: Optional[BaseException] = None):
        super().__init__(message)
        self.orig = orig


class TransactionClosedError(LanstonError):
    """Raised when a transaction handle is used after it was committed or rolled back."""


class NestedTransactionError(LanstonError):
    """Raised when transaction() is entered from inside another transaction."""


class UnknownColumnError(LanstonError, ValueError):
    """Raised when a model receives a column name outside its known column set."""

    def __init__(self, table: str, columns: set[str]):
        self.table = table
        self.columns = columns
        super().__init__(
            f"Unknown column(s) for table '{table}': {', '.join(sorted(columns))}"
        )
