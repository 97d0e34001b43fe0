"""Billing engine: calculation components, validator and entity services."""

from license_billing.services.billing.billing_cycle_service import BillingCycleService
from license_billing.services.billing.currency_projector import CurrencyProjector
from license_billing.services.billing.global_license_service import GlobalLicenseService
from license_billing.services.billing.license_adjustment_service import LicenseAdjustmentService
from license_billing.services.billing.payment_transaction_service import PaymentTransactionService
from license_billing.services.billing.proration_engine import ProrationEngine
from license_billing.services.billing.rate_snapshot_service import RateSnapshotService
from license_billing.services.billing.reconciliation_validator import ReconciliationValidator
from license_billing.services.billing.tax_applier import TaxApplier
from license_billing.services.billing.transitions import (
    ADJUSTMENT_PAYMENT_TRANSITIONS,
    BILLING_CYCLE_TRANSITIONS,
    PAYMENT_TRANSACTION_TRANSITIONS,
    TransitionTable,
)

__all__ = [
    "ProrationEngine",
    "TaxApplier",
    "CurrencyProjector",
    "RateSnapshotService",
    "ReconciliationValidator",
    "TransitionTable",
    "PAYMENT_TRANSACTION_TRANSITIONS",
    "BILLING_CYCLE_TRANSITIONS",
    "ADJUSTMENT_PAYMENT_TRANSITIONS",
    "GlobalLicenseService",
    "LicenseAdjustmentService",
    "BillingCycleService",
    "PaymentTransactionService",
]
