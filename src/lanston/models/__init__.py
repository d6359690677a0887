"""Pydantic models for configuration and statement results."""

from .config import DatabaseConfig
from .query import QueryResult, QueryStats

__all__ = [
    "DatabaseConfig",
    "QueryResult",
    "QueryStats",
]
