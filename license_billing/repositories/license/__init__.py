from license_billing.repositories.license.billing_cycle_repository import BillingCycleRepository
from license_billing.repositories.license.global_license_repository import GlobalLicenseRepository
from license_billing.repositories.license.license_adjustment_repository import LicenseAdjustmentRepository
from license_billing.repositories.license.payment_transaction_repository import PaymentTransactionRepository

__all__ = [
    "GlobalLicenseRepository",
    "LicenseAdjustmentRepository",
    "BillingCycleRepository",
    "PaymentTransactionRepository",
]
