"""Custom column types."""

from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator


class Uint256(TypeDecorator[int]):
    """Unsigned 256-bit integer (wei amounts) stored as an exact decimal string.

    NUMERIC(78, 0) would do on PostgreSQL but SQLite coerces it to REAL,
    so the value travels as text and is converted back to ``int`` on load.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        as_int = int(value)
        if as_int < 0:
            msg = f"Uint256 cannot be negative: {as_int}"
            raise ValueError(msg)
        return str(as_int)

    def process_result_value(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return int(value)
