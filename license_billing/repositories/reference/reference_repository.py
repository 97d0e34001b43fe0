"""
Reference data repositories (currencies, exchange rates, tax rules and
payment methods). The billing services only read through these; inserts
exist for catalog loaders and fixtures.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.models.reference import Currency, ExchangeRate, PaymentMethod, TaxRule
from license_billing.repositories.base.base_repository import BaseRepository
from license_billing.schemas.reference import (
    CurrencyRecord,
    ExchangeRateRecord,
    PaymentMethodRecord,
    TaxRuleRecord,
)


class CurrencyRepository(BaseRepository[Currency, CurrencyRecord]):
    schema = CurrencyRecord

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(Currency, db, settings)

    def find_active(self, code: str) -> Optional[CurrencyRecord]:
        return self.find_one_by(code=code.upper(), is_active=True)


class ExchangeRateRepository(BaseRepository[ExchangeRate, ExchangeRateRecord]):
    schema = ExchangeRateRecord

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(ExchangeRate, db, settings)

    def list_active(self, from_currency: str, to_currency: str) -> List[ExchangeRateRecord]:
        """Active rates for the pair, newest first."""
        stmt = self._select().where(
            ExchangeRate.from_currency_code == from_currency.upper(),
            ExchangeRate.to_currency_code == to_currency.upper(),
            ExchangeRate.is_active.is_(True),
        ).order_by(ExchangeRate.as_of.desc(), ExchangeRate.id.desc())
        return self._all(stmt)


class TaxRuleRepository(BaseRepository[TaxRule, TaxRuleRecord]):
    schema = TaxRuleRecord

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(TaxRule, db, settings)

    def list_active(self, country_code: str, applies_to: str) -> List[TaxRuleRecord]:
        """Active rules of a jurisdiction in application order."""
        stmt = self._select().where(
            TaxRule.country_code == country_code.upper(),
            TaxRule.applies_to == applies_to,
            TaxRule.is_active.is_(True),
        ).order_by(TaxRule.id)
        return self._all(stmt)


class PaymentMethodRepository(BaseRepository[PaymentMethod, PaymentMethodRecord]):
    schema = PaymentMethodRecord
    json_fields = frozenset({"supported_currencies"})

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(PaymentMethod, db, settings)
