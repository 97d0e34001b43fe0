"""Declarative base, mixins, enums and column types."""

from license_billing.models.base.base_model import Base, BaseModel, TimestampModel
from license_billing.models.base.enums import (
    AdjustmentKind,
    AdjustmentPaymentStatus,
    BillingStatus,
    LicenseBillingState,
    LicenseStatus,
    LicenseType,
    PaymentOwnerType,
    PaymentTransactionStatus,
)
from license_billing.models.base.mixins import GuidMixin, TimestampMixin
from license_billing.models.base.types import (
    ExchangeRateType,
    JSONType,
    MoneyType,
    MonthsType,
    TaxRateType,
)

__all__ = [
    "Base",
    "BaseModel",
    "TimestampModel",
    "TimestampMixin",
    "GuidMixin",
    "LicenseType",
    "LicenseStatus",
    "LicenseBillingState",
    "AdjustmentKind",
    "AdjustmentPaymentStatus",
    "BillingStatus",
    "PaymentTransactionStatus",
    "PaymentOwnerType",
    "MoneyType",
    "ExchangeRateType",
    "TaxRateType",
    "MonthsType",
    "JSONType",
]
