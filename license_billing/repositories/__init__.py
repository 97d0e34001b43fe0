"""Repositories: the narrow persistence interface used by the services."""

from license_billing.repositories.base import BaseRepository
from license_billing.repositories.license import (
    BillingCycleRepository,
    GlobalLicenseRepository,
    LicenseAdjustmentRepository,
    PaymentTransactionRepository,
)
from license_billing.repositories.reference import (
    CurrencyRepository,
    ExchangeRateRepository,
    PaymentMethodRepository,
    TaxRuleRepository,
)

__all__ = [
    "BaseRepository",
    "GlobalLicenseRepository",
    "LicenseAdjustmentRepository",
    "BillingCycleRepository",
    "PaymentTransactionRepository",
    "CurrencyRepository",
    "ExchangeRateRepository",
    "TaxRuleRepository",
    "PaymentMethodRepository",
]
