"""
Billing cycle schemas.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import Field, field_validator

from license_billing.models.base.enums import BillingStatus
from license_billing.schemas.base import BaseSchema, FrozenSchema
from license_billing.schemas.snapshot import TaxRuleSnapshot
from license_billing.utils.money import MAX_AMOUNT, MAX_EXCHANGE_RATE, percentage

__all__ = [
    "BillingCycleRequest",
    "BillingCycleDraft",
    "BillingCycleRecord",
]


class BillingCycleRequest(BaseSchema):
    """Caller input for generating a cycle invoice."""

    global_license_id: int = Field(..., ge=1)
    billing_currency_code: str = Field(..., min_length=3, max_length=3)
    jurisdiction: str = Field(..., min_length=2, max_length=2)
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    payment_due_date: Optional[date] = None
    computed_at: Optional[datetime] = None

    @field_validator("billing_currency_code", "jurisdiction")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("Code must be alphabetic")
        return v.upper()


class BillingCycleDraft(FrozenSchema):
    """Cycle fields as they are inserted."""

    guid: int = Field(..., ge=100000, le=999999)
    global_license_id: int = Field(..., ge=1)

    period_start: date
    period_end: date
    payment_due_date: date

    base_employee_count: int = Field(..., ge=0)
    final_employee_count: int

    base_amount_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT)
    adjustments_amount_usd: Decimal = Field(..., le=MAX_AMOUNT)
    subtotal_usd: Decimal = Field(..., le=MAX_AMOUNT)
    tax_amount_usd: Decimal = Field(..., le=MAX_AMOUNT)
    total_amount_usd: Decimal = Field(..., le=MAX_AMOUNT)

    billing_currency_code: str = Field(..., min_length=3, max_length=3)
    exchange_rate_used: Decimal = Field(..., gt=0, le=MAX_EXCHANGE_RATE)
    base_amount_local: Decimal
    adjustments_amount_local: Decimal
    subtotal_local: Decimal
    tax_amount_local: Decimal
    total_amount_local: Decimal

    tax_jurisdiction: str = Field(..., min_length=2, max_length=2)
    tax_rules_applied: Tuple[TaxRuleSnapshot, ...] = Field(default_factory=tuple)

    billing_status: BillingStatus = BillingStatus.PENDING
    invoice_sent_at: Optional[datetime] = None
    payment_completed_at: Optional[datetime] = None

    @property
    def period_days(self) -> int:
        return (self.period_end - self.period_start).days

    @property
    def employee_delta(self) -> int:
        return self.final_employee_count - self.base_employee_count

    @property
    def effective_tax_rate(self) -> Decimal:
        """Tax as a percentage of the subtotal."""
        return percentage(self.tax_amount_usd, self.subtotal_usd)

    def days_until_due(self, today: date) -> int:
        return (self.payment_due_date - today).days

    def days_overdue(self, today: date) -> int:
        return max((today - self.payment_due_date).days, 0)


class BillingCycleRecord(BillingCycleDraft):
    """Stored billing cycle."""

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
