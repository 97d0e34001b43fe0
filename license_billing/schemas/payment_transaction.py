"""
Payment transaction schemas.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field, field_validator, model_validator

from license_billing.models.base.enums import PaymentOwnerType, PaymentTransactionStatus
from license_billing.schemas.base import BaseSchema, FrozenSchema
from license_billing.utils.money import MAX_AMOUNT, MAX_EXCHANGE_RATE

__all__ = [
    "PaymentOwnerRef",
    "PaymentInitiation",
    "PaymentTransactionDraft",
    "PaymentTransactionRecord",
    "PaymentSearchCriteria",
    "StatusBreakdown",
    "PaymentStatistics",
]


class PaymentOwnerRef(FrozenSchema):
    """The billing cycle or adjustment a payment settles."""

    owner_type: PaymentOwnerType
    owner_id: int = Field(..., ge=1)

    @classmethod
    def billing_cycle(cls, billing_cycle_id: int) -> "PaymentOwnerRef":
        return cls(owner_type=PaymentOwnerType.BILLING_CYCLE, owner_id=billing_cycle_id)

    @classmethod
    def adjustment(cls, adjustment_id: int) -> "PaymentOwnerRef":
        return cls(owner_type=PaymentOwnerType.ADJUSTMENT, owner_id=adjustment_id)


class PaymentInitiation(BaseSchema):
    """Caller input for a new payment attempt."""

    owner: PaymentOwnerRef
    payment_method_id: int = Field(..., ge=1)
    payment_reference: Optional[str] = Field(default=None, min_length=1, max_length=100)
    initiated_at: Optional[datetime] = None


class PaymentTransactionDraft(FrozenSchema):
    """Transaction fields as they are inserted."""

    guid: int = Field(..., ge=100000, le=999999)
    billing_cycle_id: Optional[int] = None
    adjustment_id: Optional[int] = None
    payment_method_id: int = Field(..., ge=1)

    amount_usd: Decimal = Field(..., ge=0, le=MAX_AMOUNT)
    amount_local: Decimal = Field(..., ge=0)
    currency_code: str = Field(..., min_length=3, max_length=3)
    exchange_rate_used: Decimal = Field(..., gt=0, le=MAX_EXCHANGE_RATE)
    payment_reference: str = Field(..., min_length=1, max_length=100)

    transaction_status: PaymentTransactionStatus = PaymentTransactionStatus.PENDING
    initiated_at: datetime
    processing_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    failure_reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_single_owner(self) -> "PaymentTransactionDraft":
        if (self.billing_cycle_id is None) == (self.adjustment_id is None):
            raise ValueError("Exactly one of billing_cycle_id or adjustment_id is required")
        return self

    @property
    def owner(self) -> PaymentOwnerRef:
        if self.billing_cycle_id is not None:
            return PaymentOwnerRef.billing_cycle(self.billing_cycle_id)
        return PaymentOwnerRef.adjustment(self.adjustment_id)

    @property
    def processing_duration_seconds(self) -> Optional[float]:
        end = self.completed_at or self.failed_at
        if end is None:
            return None
        return (end - self.initiated_at).total_seconds()


class PaymentTransactionRecord(PaymentTransactionDraft):
    """Stored payment transaction."""

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentSearchCriteria(BaseSchema):
    """Filters for transaction search; unset filters are ignored."""

    status: Optional[PaymentTransactionStatus] = None
    payment_method_id: Optional[int] = None
    currency_code: Optional[str] = Field(default=None, min_length=3, max_length=3)
    min_amount_usd: Optional[Decimal] = Field(default=None, ge=0)
    max_amount_usd: Optional[Decimal] = Field(default=None, ge=0)
    initiated_from: Optional[datetime] = None
    initiated_to: Optional[datetime] = None
    payment_reference: Optional[str] = Field(default=None, min_length=1, max_length=100)
    billing_cycle_id: Optional[int] = None
    adjustment_id: Optional[int] = None

    @field_validator("currency_code")
    @classmethod
    def normalize_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @model_validator(mode="after")
    def check_ranges(self) -> "PaymentSearchCriteria":
        if (
            self.min_amount_usd is not None
            and self.max_amount_usd is not None
            and self.min_amount_usd > self.max_amount_usd
        ):
            raise ValueError("min_amount_usd must not exceed max_amount_usd")
        if (
            self.initiated_from is not None
            and self.initiated_to is not None
            and self.initiated_from > self.initiated_to
        ):
            raise ValueError("initiated_from must not be after initiated_to")
        return self


class StatusBreakdown(FrozenSchema):
    count: int = 0
    total_amount_usd: Decimal = Decimal("0.00")


class PaymentStatistics(FrozenSchema):
    """Aggregate view of transactions over a window."""

    total_count: int
    by_status: Dict[PaymentTransactionStatus, StatusBreakdown]
    total_amount_usd: Decimal
    average_amount_usd: Decimal
    success_rate: Decimal = Field(..., description="Completed share in percent")
