from decimal import Decimal
from typing import Any

from sqlalchemy.types import Numeric, String, TypeDecorator


class LedgerAmount(TypeDecorator[int]):
    """
    Dialect-agnostic arbitrary precision unsigned integer.

    Uses NUMERIC(39, 0) on PostgreSQL and a decimal string on other dialects
    (SQLite integers are limited to 64 signed bits). Always loads as ``int``.
    """

    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Numeric(39, 0))
        return dialect.type_descriptor(String(40))

    def process_bind_param(self, value: int | None, dialect: Any) -> Any:
        if value is None:
            return None
        if dialect.name == "postgresql":
            return Decimal(int(value))
        return str(int(value))

    def process_result_value(self, value: Any, dialect: Any) -> int | None:
        if value is None:
            return None
        return int(value)
