"""Utility modules for lanston."""

from lanston.utils.serialization import dumps, rows_to_json

__all__ = [
    "dumps",
    "rows_to_json",
]
