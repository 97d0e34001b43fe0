"""
Global license schemas.

``GlobalLicenseCreate`` is the write model and deliberately has no
``total_seats_purchased`` or ``billing_status`` field; those only exist
on the read projection ``GlobalLicenseView``.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator

from license_billing.models.base.enums import LicenseBillingState, LicenseStatus, LicenseType
from license_billing.schemas.base import FrozenSchema
from license_billing.utils.money import MAX_AMOUNT

__all__ = [
    "GlobalLicenseCreate",
    "GlobalLicenseView",
]


class GlobalLicenseCreate(FrozenSchema):
    """Writable fields of a global license."""

    guid: int = Field(..., ge=100000, le=999999)
    tenant_id: int = Field(..., ge=1)
    license_type: LicenseType = Field(default=LicenseType.CLOUD_FLEX)
    billing_cycle_months: int = Field(default=12)
    base_price_usd: Decimal = Field(
        default=Decimal("3.00"),
        ge=Decimal("0.01"),
        le=MAX_AMOUNT,
        decimal_places=2,
        description="Monthly price per seat (USD)",
    )
    minimum_seats: int = Field(default=5, ge=1, le=65535)
    current_period_start: date
    current_period_end: date
    next_renewal_date: date
    license_status: LicenseStatus = Field(default=LicenseStatus.ACTIVE)

    @field_validator("billing_cycle_months")
    @classmethod
    def validate_billing_cycle(cls, v: int) -> int:
        if v not in (1, 3, 6, 12):
            raise ValueError("Billing cycle must be 1, 3, 6 or 12 months")
        return v


class GlobalLicenseView(GlobalLicenseCreate):
    """Full read of a global license, including store-computed fields."""

    id: int
    total_seats_purchased: int = Field(default=0, ge=0)
    billing_status: Optional[LicenseBillingState] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def billable_seats(self) -> int:
        return max(self.total_seats_purchased, self.minimum_seats)

    @property
    def monthly_price_usd(self) -> Decimal:
        return self.base_price_usd * self.billable_seats

    @property
    def period_price_usd(self) -> Decimal:
        return self.monthly_price_usd * self.billing_cycle_months

    def is_expiring_within(self, days: int, today: date) -> bool:
        return 0 <= (self.current_period_end - today).days <= days
