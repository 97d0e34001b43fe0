from license_billing.repositories.reference.reference_repository import (
    CurrencyRepository,
    ExchangeRateRepository,
    PaymentMethodRepository,
    TaxRuleRepository,
)

__all__ = [
    "CurrencyRepository",
    "ExchangeRateRepository",
    "TaxRuleRepository",
    "PaymentMethodRepository",
]
