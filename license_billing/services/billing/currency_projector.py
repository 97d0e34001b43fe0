"""
Currency projector.
"""

from decimal import Decimal
from typing import Mapping, Optional

from license_billing.schemas.calculation import CurrencyProjection
from license_billing.schemas.snapshot import ExchangeRateSnapshot
from license_billing.services.billing.reconciliation_validator import ReconciliationValidator
from license_billing.utils.money import round2, to_decimal


class CurrencyProjector:
    """Projects USD amounts into the billing currency of a snapshot."""

    def __init__(self, validator: Optional[ReconciliationValidator] = None):
        self.validator = validator or ReconciliationValidator()

    def project(self, amounts_usd: Mapping[str, Decimal], rate: ExchangeRateSnapshot) -> CurrencyProjection:
        """
        ``local = round2(usd * rate)`` for every named amount.

        The produced pairs are checked before returning; drift beyond the
        tolerance raises ``AmountConsistencyError`` instead of being
        corrected.
        """
        usd = {name: round2(amount) for name, amount in amounts_usd.items()}
        exchange_rate = to_decimal(rate.rate)
        self.validator.check_exchange_rate(rate.to_currency, exchange_rate)

        local = {name: round2(amount * exchange_rate) for name, amount in usd.items()}
        self.validator.check_local_amounts(
            rate.to_currency,
            exchange_rate,
            {name: (usd[name], local[name]) for name in usd},
        )

        return CurrencyProjection(
            currency_code=rate.to_currency,
            exchange_rate_used=exchange_rate,
            usd=usd,
            local=local,
        )
