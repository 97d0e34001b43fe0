"""
License adjustment model.

A mid-cycle seat change billed on its own, carrying the exchange rate
and tax rules that were in force when it was computed.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.enums import AdjustmentKind, AdjustmentPaymentStatus
from license_billing.models.base.mixins import GuidMixin
from license_billing.models.base.types import ExchangeRateType, JSONType, MoneyType, MonthsType

if TYPE_CHECKING:
    from license_billing.models.license.global_license import GlobalLicense
    from license_billing.models.license.payment_transaction import PaymentTransaction


class LicenseAdjustment(TimestampModel, GuidMixin):
    """Prorated charge for seats changed during a period."""

    __tablename__ = "license_adjustments"

    global_license_id: Mapped[int] = mapped_column(
        ForeignKey("global_licenses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    adjustment_kind: Mapped[AdjustmentKind] = mapped_column(
        Enum(AdjustmentKind, name="adjustment_kind_enum", native_enum=False, length=20),
        nullable=False,
        default=AdjustmentKind.SEAT_ADDITION,
    )
    adjustment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # ==================== Proration inputs ====================
    employees_added_count: Mapped[int] = mapped_column(Integer, nullable=False)
    months_remaining: Mapped[Decimal] = mapped_column(MonthsType, nullable=False)
    price_per_employee_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # ==================== USD amounts ====================
    subtotal_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    tax_amount_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_amount_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # ==================== Currency snapshot ====================
    billing_currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate_used: Mapped[Decimal] = mapped_column(ExchangeRateType, nullable=False)
    subtotal_local: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    tax_amount_local: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_amount_local: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # ==================== Tax snapshot ====================
    tax_jurisdiction: Mapped[str] = mapped_column(String(2), nullable=False)
    tax_rules_applied: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )

    # ==================== Payment ====================
    payment_status: Mapped[AdjustmentPaymentStatus] = mapped_column(
        Enum(AdjustmentPaymentStatus, name="adjustment_payment_status_enum", native_enum=False, length=20),
        nullable=False,
        default=AdjustmentPaymentStatus.PENDING,
        index=True,
    )
    invoice_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    payment_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # ==================== Relationships ====================
    global_license: Mapped["GlobalLicense"] = relationship(back_populates="adjustments")
    payment_transactions: Mapped[List["PaymentTransaction"]] = relationship(
        back_populates="adjustment",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("employees_added_count >= 1", name="ck_adjustment_count"),
        CheckConstraint("months_remaining >= 0 AND months_remaining <= 99.99", name="ck_adjustment_months"),
        CheckConstraint("price_per_employee_usd >= 0", name="ck_adjustment_price"),
        Index("ix_adjustment_license_date", "global_license_id", "adjustment_date"),
    )
