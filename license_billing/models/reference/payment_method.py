"""
Payment method reference model.
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from license_billing.models.base.base_model import TimestampModel
from license_billing.models.base.types import JSONType, MoneyType


class PaymentMethod(TimestampModel):
    """Means of payment with its amount limits and accepted currencies."""

    __tablename__ = "payment_methods"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_amount_usd: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    max_amount_usd: Mapped[Optional[Decimal]] = mapped_column(MoneyType, nullable=True)
    supported_currencies: Mapped[List[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Accepted ISO-4217 codes; empty accepts any",
    )
