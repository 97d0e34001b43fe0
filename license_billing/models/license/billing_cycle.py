"""
Billing cycle model.

The invoice for one subscription period: base charge plus the period's
adjustments, taxed and projected into the billing currency.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.enums import BillingStatus
from license_billing.models.base.mixins import GuidMixin
from license_billing.models.base.types import ExchangeRateType, JSONType, MoneyType

if TYPE_CHECKING:
    from license_billing.models.license.global_license import GlobalLicense
    from license_billing.models.license.payment_transaction import PaymentTransaction


class BillingCycle(TimestampModel, GuidMixin):
    """Periodic invoice of a global license."""

    __tablename__ = "billing_cycles"

    global_license_id: Mapped[int] = mapped_column(
        ForeignKey("global_licenses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # ==================== Period ====================
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payment_due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    base_employee_count: Mapped[int] = mapped_column(Integer, nullable=False)
    final_employee_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # ==================== USD amounts ====================
    base_amount_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    adjustments_amount_usd: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Signed sum of the period's adjustments",
    )
    subtotal_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    tax_amount_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    total_amount_usd: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # ==================== Currency snapshot ====================
    billing_currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate_used: Mapped[Decimal] = mapped_column(ExchangeRateType, nullable=False)
    base_amount_local: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    adjustments_amount_local: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
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
    billing_status: Mapped[BillingStatus] = mapped_column(
        Enum(BillingStatus, name="billing_status_enum", native_enum=False, length=20),
        nullable=False,
        default=BillingStatus.PENDING,
        index=True,
    )
    invoice_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    payment_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # ==================== Relationships ====================
    global_license: Mapped["GlobalLicense"] = relationship(back_populates="billing_cycles")
    payment_transactions: Mapped[List["PaymentTransaction"]] = relationship(
        back_populates="billing_cycle",
        lazy="select",
    )

    __table_args__ = (
        UniqueConstraint("global_license_id", "period_start", name="uq_billing_cycle_license_period"),
        CheckConstraint("period_end > period_start", name="ck_billing_cycle_period"),
        CheckConstraint("payment_due_date >= period_end", name="ck_billing_cycle_due_date"),
        CheckConstraint("final_employee_count >= 0", name="ck_billing_cycle_final_count"),
    )
