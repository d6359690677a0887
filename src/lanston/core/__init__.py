"""Core data-access layer."""

from .database import Database
from .executor import StatementExecutor
from .model import Model
from .pool import ConnectionPool
from .transaction import Transaction, TransactionCoordinator, TransactionState

__all__ = [
    "ConnectionPool",
    "Database",
    "Model",
    "StatementExecutor",
    "Transaction",
    "TransactionCoordinator",
    "TransactionState",
]
