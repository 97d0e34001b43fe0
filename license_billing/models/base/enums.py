"""
Status and classification enums.

Values are wire-stable strings.
"""

import enum


class LicenseType(str, enum.Enum):
    """License product type."""
    CLOUD_FLEX = "CLOUD_FLEX"


class LicenseStatus(str, enum.Enum):
    """Contractual status of a global license."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SUSPENDED = "SUSPENDED"
    PENDING_PAYMENT = "PENDING_PAYMENT"


class LicenseBillingState(str, enum.Enum):
    """Store-computed billing classification of a license."""
    BILLABLE = "BILLABLE"
    GRACE_PERIOD = "GRACE_PERIOD"
    NON_BILLABLE = "NON_BILLABLE"
    TERMINATED = "TERMINATED"


class AdjustmentKind(str, enum.Enum):
    """Direction of a mid-cycle seat change."""
    SEAT_ADDITION = "SEAT_ADDITION"
    SEAT_REDUCTION = "SEAT_REDUCTION"


class AdjustmentPaymentStatus(str, enum.Enum):
    """Payment progression of a license adjustment."""
    PENDING = "PENDING"
    INVOICED = "INVOICED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class BillingStatus(str, enum.Enum):
    """Payment progression of a billing cycle invoice."""
    PENDING = "PENDING"
    INVOICED = "INVOICED"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentTransactionStatus(str, enum.Enum):
    """Lifecycle of a single payment attempt."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentOwnerType(str, enum.Enum):
    """What a payment transaction settles."""
    BILLING_CYCLE = "BILLING_CYCLE"
    ADJUSTMENT = "ADJUSTMENT"
