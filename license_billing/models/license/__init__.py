"""Money-bearing license entities."""

from license_billing.models.license.billing_cycle import BillingCycle
from license_billing.models.license.global_license import (
    BILLING_CYCLE_MONTHS,
    STORE_COMPUTED_FIELDS,
    GlobalLicense,
)
from license_billing.models.license.license_adjustment import LicenseAdjustment
from license_billing.models.license.payment_transaction import PaymentTransaction

__all__ = [
    "GlobalLicense",
    "LicenseAdjustment",
    "BillingCycle",
    "PaymentTransaction",
    "BILLING_CYCLE_MONTHS",
    "STORE_COMPUTED_FIELDS",
]
