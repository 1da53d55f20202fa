"""JSON rendering used by both tool groups."""

from __future__ import annotations

import base64
import datetime
import decimal
import json
import uuid
from typing import Any

INDENT = 2


def _default(value: Any) -> Any:
    if isinstance(value, decimal.Decimal):
        if value == value.to_integral_value():
            return int(value)
        approximation = float(value)
        if decimal.Decimal(repr(approximation)) == value:
            return approximation
        # Not representable as a double: keep the exact digits.
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps_preserving_nulls(value: Any) -> str:
    """Indented JSON where ``None`` stays an explicit ``null``."""

    return json.dumps(value, indent=INDENT, default=_default)


def strip_nulls(value: Any) -> Any:
    """Recursively drop ``None`` members from mappings."""

    if isinstance(value, dict):
        return {key: strip_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [strip_nulls(item) for item in value]
    return value


def dumps_omitting_nulls(value: Any) -> str:
    """Indented JSON where null-valued members are left out entirely."""

    return json.dumps(strip_nulls(value), indent=INDENT, default=_default)


__all__ = ["dumps_omitting_nulls", "dumps_preserving_nulls", "strip_nulls"]
