"""Read-only reference data."""

from license_billing.models.reference.currency import Currency, ExchangeRate
from license_billing.models.reference.payment_method import PaymentMethod
from license_billing.models.reference.tax_rule import TaxRule

__all__ = ["Currency", "ExchangeRate", "TaxRule", "PaymentMethod"]
