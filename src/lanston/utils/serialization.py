"""JSON serialization of result rows using orjson.

orjson encodes datetime, date, time, UUID and dataclasses natively. The
default handler below covers the remaining types PostgreSQL drivers return.
"""

import base64
import datetime
import decimal
import ipaddress
from typing import Any

import orjson


def _default_handler(obj: Any) -> Any:
    """
    Encode types orjson doesn't handle natively.

    Raises:
        TypeError: If object cannot be serialized
    """
    # Keep full precision, numeric columns are often money
    if isinstance(obj, decimal.Decimal):
        return str(obj)

    if isinstance(obj, datetime.timedelta):
        return obj.total_seconds()

    # bytea comes back as bytes (asyncpg) or memoryview
    if isinstance(obj, (bytes, bytearray, memoryview)):
        data = bytes(obj)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(data).decode("ascii")

    if isinstance(obj, (set, frozenset)):
        return list(obj)

    if isinstance(
        obj,
        (
            ipaddress.IPv4Address,
            ipaddress.IPv6Address,
            ipaddress.IPv4Network,
            ipaddress.IPv6Network,
        ),
    ):
        return str(obj)

    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def dumps(obj: Any, indent: bool = False) -> str:
    """
    Serialize object to JSON string using orjson.

    Args:
        obj: Object to serialize
        indent: Pretty-print with two-space indentation

    Returns:
        JSON string
    """
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(obj, default=_default_handler, option=option).decode("utf-8")


def rows_to_json(rows: list[dict[str, Any]], indent: bool = False) -> str:
    """Serialize a row sequence to a JSON array string."""
    return dumps(rows, indent=indent)
