"""
License adjustment schemas.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import Field, field_validator

from license_billing.models.base.enums import AdjustmentKind, AdjustmentPaymentStatus
from license_billing.schemas.base import BaseSchema, FrozenSchema
from license_billing.schemas.license import GlobalLicenseView
from license_billing.schemas.snapshot import TaxRuleSnapshot
from license_billing.utils.money import MAX_AMOUNT, MAX_EXCHANGE_RATE

__all__ = [
    "LicenseAdjustmentRequest",
    "LicenseAdjustmentDraft",
    "LicenseAdjustmentRecord",
    "AdjustmentOutcome",
    "CurrencyTotals",
]


class LicenseAdjustmentRequest(BaseSchema):
    """Caller input for a seat change."""

    global_license_id: int = Field(..., ge=1)
    employees_added_count: int = Field(..., ge=1)
    adjustment_date: date
    billing_currency_code: str = Field(..., min_length=3, max_length=3)
    jurisdiction: str = Field(..., min_length=2, max_length=2)
    kind: AdjustmentKind = Field(default=AdjustmentKind.SEAT_ADDITION)
    price_per_employee_usd: Optional[Decimal] = Field(default=None, ge=0, le=MAX_AMOUNT, decimal_places=2)
    months_remaining: Optional[Decimal] = Field(default=None, ge=0, le=Decimal("99.99"), decimal_places=2)
    computed_at: Optional[datetime] = None

    @field_validator("billing_currency_code", "jurisdiction")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("Code must be alphabetic")
        return v.upper()


class LicenseAdjustmentDraft(FrozenSchema):
    """Adjustment fields as they are inserted."""

    guid: int = Field(..., ge=100000, le=999999)
    global_license_id: int = Field(..., ge=1)
    adjustment_kind: AdjustmentKind = AdjustmentKind.SEAT_ADDITION
    adjustment_date: date

    employees_added_count: int = Field(..., ge=1)
    months_remaining: Decimal = Field(..., ge=0, le=Decimal("99.99"))
    price_per_employee_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT)

    subtotal_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT)
    tax_amount_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT)
    total_amount_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT)

    billing_currency_code: str = Field(..., min_length=3, max_length=3)
    exchange_rate_used: Decimal = Field(..., gt=0, le=MAX_EXCHANGE_RATE)
    subtotal_local: Decimal = Field(..., ge=0)
    tax_amount_local: Decimal = Field(..., ge=0)
    total_amount_local: Decimal = Field(..., ge=0)

    tax_jurisdiction: str = Field(..., min_length=2, max_length=2)
    tax_rules_applied: Tuple[TaxRuleSnapshot, ...] = Field(default_factory=tuple)

    payment_status: AdjustmentPaymentStatus = AdjustmentPaymentStatus.PENDING
    invoice_sent_at: Optional[datetime] = None
    payment_completed_at: Optional[datetime] = None

    @property
    def signed_total_usd(self) -> Decimal:
        """Total counted negative for seat reductions."""
        if self.adjustment_kind == AdjustmentKind.SEAT_REDUCTION:
            return -self.total_amount_usd
        return self.total_amount_usd

    @property
    def signed_seat_delta(self) -> int:
        if self.adjustment_kind == AdjustmentKind.SEAT_REDUCTION:
            return -self.employees_added_count
        return self.employees_added_count


class LicenseAdjustmentRecord(LicenseAdjustmentDraft):
    """Stored adjustment."""

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdjustmentOutcome(FrozenSchema):
    """Created adjustment with the license re-read after the write."""

    adjustment: LicenseAdjustmentRecord
    license: GlobalLicenseView


class CurrencyTotals(FrozenSchema):
    """Adjustment totals for one billing currency."""

    currency_code: str
    count: int
    total_amount_usd: Decimal
    total_amount_local: Decimal
