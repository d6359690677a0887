"""Async data access for PostgreSQL: a shared pool, transactions and table models."""

from lanston.core import (
    ConnectionPool,
    Database,
    Model,
    StatementExecutor,
    Transaction,
    TransactionCoordinator,
    TransactionState,
)
from lanston.errors import (
    LanstonError,
    LeaseError,
    LeaseTimeoutError,
    NestedTransactionError,
    NotConnected,
    NotConnectedError,
    StatementError,
    TransactionAbortError,
    TransactionClosedError,
    UnknownColumnError,
)
from lanston.models import DatabaseConfig, QueryResult, QueryStats

__version__ = "0.1.0"

__all__ = [
    "ConnectionPool",
    "Database",
    "DatabaseConfig",
    "LanstonError",
    "LeaseError",
    "LeaseTimeoutError",
    "Model",
    "NestedTransactionError",
    "NotConnected",
    "NotConnectedError",
    "QueryResult",
    "QueryStats",
    "StatementError",
    "StatementExecutor",
    "Transaction",
    "TransactionAbortError",
    "TransactionClosedError",
    "TransactionCoordinator",
    "TransactionState",
    "UnknownColumnError",
]
