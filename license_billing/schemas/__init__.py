"""Pydantic value objects: write models, read projections and snapshots."""

from license_billing.schemas.adjustment import (
    AdjustmentOutcome,
    CurrencyTotals,
    LicenseAdjustmentDraft,
    LicenseAdjustmentRecord,
    LicenseAdjustmentRequest,
)
from license_billing.schemas.billing_cycle import (
    BillingCycleDraft,
    BillingCycleRecord,
    BillingCycleRequest,
)
from license_billing.schemas.calculation import CurrencyProjection, ProrationInput, TaxComputation
from license_billing.schemas.license import GlobalLicenseCreate, GlobalLicenseView
from license_billing.schemas.payment_transaction import (
    PaymentInitiation,
    PaymentOwnerRef,
    PaymentSearchCriteria,
    PaymentStatistics,
    PaymentTransactionDraft,
    PaymentTransactionRecord,
    StatusBreakdown,
)
from license_billing.schemas.reference import (
    CurrencyRecord,
    ExchangeRateRecord,
    PaymentMethodRecord,
    TaxRuleRecord,
)
from license_billing.schemas.snapshot import (
    ExchangeRateSnapshot,
    RateSnapshot,
    TaxRuleSet,
    TaxRuleSnapshot,
)

__all__ = [
    "GlobalLicenseCreate",
    "GlobalLicenseView",
    "LicenseAdjustmentRequest",
    "LicenseAdjustmentDraft",
    "LicenseAdjustmentRecord",
    "AdjustmentOutcome",
    "CurrencyTotals",
    "BillingCycleRequest",
    "BillingCycleDraft",
    "BillingCycleRecord",
    "PaymentOwnerRef",
    "PaymentInitiation",
    "PaymentTransactionDraft",
    "PaymentTransactionRecord",
    "PaymentSearchCriteria",
    "StatusBreakdown",
    "PaymentStatistics",
    "ProrationInput",
    "TaxComputation",
    "CurrencyProjection",
    "TaxRuleSnapshot",
    "TaxRuleSet",
    "ExchangeRateSnapshot",
    "RateSnapshot",
    "CurrencyRecord",
    "ExchangeRateRecord",
    "TaxRuleRecord",
    "PaymentMethodRecord",
]
