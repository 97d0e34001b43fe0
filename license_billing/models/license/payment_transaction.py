"""
Payment transaction model.

One payment attempt against exactly one billing cycle or adjustment.
Money fields are written once at creation; afterwards only the status
and its timestamps change.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.enums import PaymentTransactionStatus
from license_billing.models.base.mixins import GuidMixin
from license_billing.models.base.types import ExchangeRateType, MoneyType

if TYPE_CHECKING:
    from license_billing.models.license.billing_cycle import BillingCycle
    from license_billing.models.license.license_adjustment import LicenseAdjustment
    from license_billing.models.reference.payment_method import PaymentMethod


class PaymentTransaction(TimestampModel, GuidMixin):
    """Single payment attempt."""

    __tablename__ = "payment_transactions"

    # ==================== Owner ====================
    billing_cycle_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("billing_cycles.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    adjustment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("license_adjustments.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    payment_method_id: Mapped[int] = mapped_column(
        ForeignKey("payment_methods.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # ==================== Amounts (write-once) ====================
    amount_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    amount_local: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate_used: Mapped[Decimal] = mapped_column(ExchangeRateType, nullable=False)

    payment_reference: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Opaque unique payment reference",
    )

    # ==================== Lifecycle ====================
    transaction_status: Mapped[PaymentTransactionStatus] = mapped_column(
        Enum(PaymentTransactionStatus, name="payment_transaction_status_enum", native_enum=False, length=20),
        nullable=False,
        default=PaymentTransactionStatus.PENDING,
        index=True,
    )
    initiated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    processing_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # ==================== Relationships ====================
    billing_cycle: Mapped[Optional["BillingCycle"]] = relationship(back_populates="payment_transactions")
    adjustment: Mapped[Optional["LicenseAdjustment"]] = relationship(back_populates="payment_transactions")
    payment_method: Mapped["PaymentMethod"] = relationship()

    __table_args__ = (
        CheckConstraint(
            "(billing_cycle_id IS NULL) <> (adjustment_id IS NULL)",
            name="ck_payment_transaction_single_owner",
        ),
        CheckConstraint("amount_usd >= 0", name="ck_payment_transaction_amount"),
        Index("ix_payment_transaction_status_initiated", "transaction_status", "initiated_at"),
    )
