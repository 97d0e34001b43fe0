"""Service layer."""

from license_billing.services.base import BaseService
from license_billing.services.billing import (
    BillingCycleService,
    GlobalLicenseService,
    LicenseAdjustmentService,
    PaymentTransactionService,
    RateSnapshotService,
)

__all__ = [
    "BaseService",
    "GlobalLicenseService",
    "LicenseAdjustmentService",
    "BillingCycleService",
    "PaymentTransactionService",
    "RateSnapshotService",
]
