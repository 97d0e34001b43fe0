"""
Global license model.

A tenant's subscription: billing cadence, base price and the current
billing period. ``total_seats_purchased`` and ``billing_status`` are
maintained by the store and only ever read by the engine.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Date, Enum, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.enums import LicenseBillingState, LicenseStatus, LicenseType
from license_billing.models.base.mixins import GuidMixin
from license_billing.models.base.types import MoneyType

if TYPE_CHECKING:
    from license_billing.models.license.billing_cycle import BillingCycle
    from license_billing.models.license.license_adjustment import LicenseAdjustment

BILLING_CYCLE_MONTHS = (1, 3, 6, 12)

# Columns written by the store, never by the engine
STORE_COMPUTED_FIELDS = frozenset({"total_seats_purchased", "billing_status"})


class GlobalLicense(TimestampModel, GuidMixin):
    """Subscription of one tenant."""

    __tablename__ = "global_licenses"

    tenant_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Owning tenant (external catalog)",
    )

    # ==================== Plan ====================
    license_type: Mapped[LicenseType] = mapped_column(
        Enum(LicenseType, name="license_type_enum", native_enum=False, length=20),
        nullable=False,
        default=LicenseType.CLOUD_FLEX,
    )
    billing_cycle_months: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=12,
    )
    base_price_usd: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Monthly price per seat (USD)",
    )
    minimum_seats: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=5,
    )

    # ==================== Period ====================
    current_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    current_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    next_renewal_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    license_status: Mapped[LicenseStatus] = mapped_column(
        Enum(LicenseStatus, name="license_status_enum", native_enum=False, length=20),
        nullable=False,
        default=LicenseStatus.ACTIVE,
        index=True,
    )

    # ==================== Store-computed ====================
    total_seats_purchased: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Count of employee licenses (computed by the store)",
    )
    billing_status: Mapped[Optional[LicenseBillingState]] = mapped_column(
        Enum(LicenseBillingState, name="license_billing_state_enum", native_enum=False, length=20),
        nullable=True,
        comment="Billing classification (computed by the store)",
    )

    # ==================== Relationships ====================
    adjustments: Mapped[List["LicenseAdjustment"]] = relationship(
        back_populates="global_license",
        lazy="select",
    )
    billing_cycles: Mapped[List["BillingCycle"]] = relationship(
        back_populates="global_license",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint("current_period_end > current_period_start", name="ck_global_license_period"),
        CheckConstraint("next_renewal_date >= current_period_end", name="ck_global_license_renewal"),
        CheckConstraint("billing_cycle_months IN (1, 3, 6, 12)", name="ck_global_license_cycle"),
        CheckConstraint("minimum_seats >= 1", name="ck_global_license_minimum_seats"),
        Index("ix_global_license_period", "current_period_start", "current_period_end"),
    )
