"""
Tax rule reference model.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.types import TaxRateType


class TaxRule(TimestampModel):
    """Tax levied in a jurisdiction on a class of charge."""

    __tablename__ = "tax_rules"

    country_code: Mapped[str] = mapped_column(String(2), nullable=False)
    tax_type: Mapped[str] = mapped_column(String(50), nullable=False)
    tax_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(
        TaxRateType,
        nullable=False,
        comment="Fraction in [0, 1]",
    )
    applies_to: Mapped[str] = mapped_column(String(50), nullable=False, default="license_fee")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    required_tax_number: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 1", name="ck_tax_rule_rate"),
        Index("ix_tax_rule_lookup", "country_code", "applies_to", "is_active"),
    )
