"""
Currency and exchange rate reference models.

Owned by an external catalog; the engine only reads point-in-time
snapshots from these tables.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.types import ExchangeRateType


class Currency(TimestampModel):
    """ISO-4217 currency."""

    __tablename__ = "currencies"

    code: Mapped[str] = mapped_column(String(3), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    decimal_places: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ExchangeRate(TimestampModel):
    """Rate converting one unit of ``from_currency_code`` into ``to_currency_code``."""

    __tablename__ = "exchange_rates"

    from_currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    to_currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    rate: Mapped[Decimal] = mapped_column(ExchangeRateType, nullable=False)
    as_of: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_exchange_rate_pair_as_of", "from_currency_code", "to_currency_code", "as_of"),
    )
