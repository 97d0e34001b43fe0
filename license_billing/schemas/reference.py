"""
Reference data records (currencies, exchange rates, tax rules and
payment methods). The engine reads these and never writes them.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import Field, field_validator

from license_billing.schemas.base import FrozenSchema

__all__ = [
    "CurrencyRecord",
    "ExchangeRateRecord",
    "TaxRuleRecord",
    "PaymentMethodRecord",
]


class CurrencyRecord(FrozenSchema):
    id: Optional[int] = None
    code: str = Field(..., min_length=3, max_length=3)
    name: str
    decimal_places: int = 2
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.upper()


class ExchangeRateRecord(FrozenSchema):
    id: Optional[int] = None
    from_currency_code: str = Field(..., min_length=3, max_length=3)
    to_currency_code: str = Field(..., min_length=3, max_length=3)
    rate: Decimal = Field(..., gt=0)
    as_of: datetime
    is_active: bool = True


class TaxRuleRecord(FrozenSchema):
    id: Optional[int] = None
    country_code: str = Field(..., min_length=2, max_length=2)
    tax_type: str
    tax_name: str
    tax_rate: Decimal
    applies_to: str = "license_fee"
    is_active: bool = True
    effective_date: date
    expiry_date: Optional[date] = None
    required_tax_number: bool = False

    def in_effect(self, on: date) -> bool:
        if not self.is_active or self.effective_date > on:
            return False
        return self.expiry_date is None or self.expiry_date >= on


class PaymentMethodRecord(FrozenSchema):
    id: Optional[int] = None
    code: str = Field(..., min_length=1, max_length=50)
    name: str
    is_active: bool = True
    min_amount_usd: Optional[Decimal] = None
    max_amount_usd: Optional[Decimal] = None
    supported_currencies: Tuple[str, ...] = Field(default_factory=tuple)

    def accepts_currency(self, currency_code: str) -> bool:
        return not self.supported_currencies or currency_code.upper() in self.supported_currencies

    def accepts_amount(self, amount_usd: Decimal) -> bool:
        if self.min_amount_usd is not None and amount_usd < self.min_amount_usd:
            return False
        if self.max_amount_usd is not None and amount_usd > self.max_amount_usd:
            return False
        return True
