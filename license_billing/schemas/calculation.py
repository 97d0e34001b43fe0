"""
Intermediate values of a billing computation.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Tuple

from pydantic import Field

from license_billing.schemas.base import FrozenSchema
from license_billing.schemas.snapshot import TaxRuleSnapshot
from license_billing.utils.money import MAX_AMOUNT

__all__ = [
    "ProrationInput",
    "TaxComputation",
    "CurrencyProjection",
]


class ProrationInput(FrozenSchema):
    """Validated inputs of a proration."""

    employees_added_count: int = Field(..., ge=1, strict=True)
    months_remaining: Decimal = Field(..., ge=0, le=Decimal("99.99"), decimal_places=2)
    price_per_employee_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT, decimal_places=2)


class TaxComputation(FrozenSchema):
    """Tax applied to a USD subtotal."""

    subtotal_usd: Decimal
    tax_amount_usd: Decimal
    total_amount_usd: Decimal
    tax_rules_applied: Tuple[TaxRuleSnapshot, ...] = Field(default_factory=tuple)


class CurrencyProjection(FrozenSchema):
    """USD amounts projected into a billing currency."""

    currency_code: str
    exchange_rate_used: Decimal
    usd: Dict[str, Decimal]
    local: Dict[str, Decimal]

    def local_fields(self) -> Dict[str, Decimal]:
        """``{name}_local`` keyed amounts, ready for a draft."""
        return {f"{name}_local": amount for name, amount in self.local.items()}
