"""
Custom SQLAlchemy types for money, rates and JSON snapshots.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy import JSON, Numeric, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB


class _QuantizedNumeric(TypeDecorator):
    """Numeric column that quantizes on bind and returns ``Decimal``."""

    impl = Numeric
    cache_ok = True
    quantum = Decimal("0.01")

    def process_bind_param(self, value: Optional[Decimal], dialect) -> Optional[Decimal]:
        if value is None:
            return value

        if not isinstance(value, Decimal):
            value = Decimal(str(value))

        return value.quantize(self.quantum, rounding=ROUND_HALF_UP)

    def process_result_value(self, value: Any, dialect) -> Optional[Decimal]:
        if value is None:
            return value

        if not isinstance(value, Decimal):
            value = Decimal(str(value))

        return value.quantize(self.quantum, rounding=ROUND_HALF_UP)


class MoneyType(_QuantizedNumeric):
    """
    Money type.

    Stores monetary values with fixed precision (2 decimal places).
    """

    impl = Numeric(15, 2)
    cache_ok = True
    quantum = Decimal("0.01")


class ExchangeRateType(_QuantizedNumeric):
    """Exchange rate with 6 decimal places."""

    impl = Numeric(18, 6)
    cache_ok = True
    quantum = Decimal("0.000001")


class TaxRateType(_QuantizedNumeric):
    """Tax rate as a fraction with 4 decimal places."""

    impl = Numeric(7, 4)
    cache_ok = True
    quantum = Decimal("0.0001")


class MonthsType(_QuantizedNumeric):
    """Fractional month count (0-99.99)."""

    impl = Numeric(4, 2)
    cache_ok = True
    quantum = Decimal("0.01")


class JSONType(TypeDecorator):
    """
    JSON type with list/dict validation.

    Uses JSONB on PostgreSQL and generic JSON elsewhere.
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value: Any, dialect) -> Any:
        if value is None:
            return value

        if not isinstance(value, (dict, list)):
            raise ValueError(f"JSONType requires dict or list, got {type(value)}")

        return value

    def process_result_value(self, value: Any, dialect) -> Any:
        return value
