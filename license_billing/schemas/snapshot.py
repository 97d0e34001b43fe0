"""
Reference-data snapshots.

Point-in-time copies of an exchange rate and of the tax rules of a
jurisdiction. They are embedded in the records they priced so invoices
stay reproducible after the catalogs change.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Tuple

from pydantic import Field, field_validator

from license_billing.schemas.base import FrozenSchema

__all__ = [
    "TaxRuleSnapshot",
    "TaxRuleSet",
    "ExchangeRateSnapshot",
    "RateSnapshot",
]


class TaxRuleSnapshot(FrozenSchema):
    """Rate, name and type of one applied tax rule."""

    rate: Decimal = Field(..., description="Fraction of the subtotal")
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=50)

    def to_wire(self) -> Dict[str, Any]:
        return {"rate": str(self.rate), "name": self.name, "type": self.type}


class TaxRuleSet(FrozenSchema):
    """Ordered rules applicable in a jurisdiction."""

    jurisdiction: str = Field(..., min_length=2, max_length=2)
    applies_to: str = Field(default="license_fee")
    tax_required: bool = Field(default=True)
    rules: Tuple[TaxRuleSnapshot, ...] = Field(default_factory=tuple)

    @field_validator("jurisdiction")
    @classmethod
    def normalize_jurisdiction(cls, v: str) -> str:
        return v.upper()


class ExchangeRateSnapshot(FrozenSchema):
    """Rate captured at computation time."""

    from_currency: str = Field(..., min_length=3, max_length=3)
    to_currency: str = Field(..., min_length=3, max_length=3)
    rate: Decimal
    as_of: datetime

    @field_validator("from_currency", "to_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()


class RateSnapshot(FrozenSchema):
    """Exchange rate and tax rules taken together for one computation."""

    exchange_rate: ExchangeRateSnapshot
    tax: TaxRuleSet
    taken_at: datetime

    @property
    def currency_code(self) -> str:
        return self.exchange_rate.to_currency
