"""
Rate snapshot service.

Point-in-time lookups of exchange rates and tax rules. Catalog rows are
cached per lookup key as plain JSON structures, so the cache can be the
in-process backend or Redis, and is safe to share between requests.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from license_billing.core.cache import MemoryBackend, ReferenceCache
from license_billing.core.config import BillingSettings, settings as app_settings
from license_billing.core.exceptions import ResourceNotFoundError
from license_billing.core.logging import get_logger
from license_billing.repositories.reference import (
    CurrencyRepository,
    ExchangeRateRepository,
    TaxRuleRepository,
)
from license_billing.schemas.base import to_wire
from license_billing.schemas.reference import ExchangeRateRecord, TaxRuleRecord
from license_billing.schemas.snapshot import (
    ExchangeRateSnapshot,
    RateSnapshot,
    TaxRuleSet,
    TaxRuleSnapshot,
)
from license_billing.utils.date_utils import now_utc, to_naive_utc

logger = get_logger(__name__)


class RateSnapshotService:
    """Reads exchange rates and tax rules as they stood at a given moment."""

    def __init__(
        self,
        currency_repository: CurrencyRepository,
        exchange_rate_repository: ExchangeRateRepository,
        tax_rule_repository: TaxRuleRepository,
        cache: Optional[ReferenceCache] = None,
        settings: Optional[BillingSettings] = None,
    ):
        self.currencies = currency_repository
        self.exchange_rates = exchange_rate_repository
        self.tax_rules_repository = tax_rule_repository
        self.cache = cache or ReferenceCache(MemoryBackend())
        self.settings = settings or app_settings.billing

    # ------------------------------------------------------------------
    # Cached catalog reads
    # ------------------------------------------------------------------

    def _active_currency(self, code: str) -> Dict[str, Any]:
        def load():
            record = self.currencies.find_active(code)
            return to_wire(record.model_dump()) if record else {}

        return self.cache.get_or_load(f"currency:{code}", load)

    def _active_rates(self, from_currency: str, to_currency: str) -> List[Dict[str, Any]]:
        def load():
            return [
                to_wire(record.model_dump())
                for record in self.exchange_rates.list_active(from_currency, to_currency)
            ]

        return self.cache.get_or_load(f"fx:{from_currency}:{to_currency}", load)

    def _active_tax_rules(self, jurisdiction: str, applies_to: str) -> List[Dict[str, Any]]:
        def load():
            return [
                to_wire(record.model_dump())
                for record in self.tax_rules_repository.list_active(jurisdiction, applies_to)
            ]

        return self.cache.get_or_load(f"tax:{jurisdiction}:{applies_to}", load)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def exchange_rate(self, to_currency: str, at: Optional[datetime] = None) -> ExchangeRateSnapshot:
        """
        Latest active rate from the base currency to ``to_currency`` whose
        ``as_of`` is not after ``at``.

        Raises:
            ResourceNotFoundError: unknown or inactive currency, or no rate
        """
        at = to_naive_utc(at) or now_utc()
        base = self.settings.BASE_CURRENCY
        to_currency = to_currency.upper()

        if to_currency == base:
            return ExchangeRateSnapshot(from_currency=base, to_currency=base, rate=Decimal("1.000000"), as_of=at)

        if not self._active_currency(to_currency):
            raise ResourceNotFoundError("Currency", to_currency)

        for row in self._active_rates(base, to_currency):
            record = ExchangeRateRecord.model_validate(row)
            if record.as_of <= at:
                return ExchangeRateSnapshot(
                    from_currency=base,
                    to_currency=to_currency,
                    rate=record.rate,
                    as_of=record.as_of,
                )

        raise ResourceNotFoundError("ExchangeRate", f"{base}->{to_currency}@{at.isoformat()}")

    def tax_rules(
        self,
        jurisdiction: str,
        at: Optional[datetime] = None,
        applies_to: Optional[str] = None,
    ) -> TaxRuleSet:
        """Rules of ``jurisdiction`` in effect on the date of ``at``, in rule order."""
        at = to_naive_utc(at) or now_utc()
        jurisdiction = jurisdiction.upper()
        applies_to = applies_to or self.settings.TAX_APPLIES_TO

        rules = []
        for row in self._active_tax_rules(jurisdiction, applies_to):
            record = TaxRuleRecord.model_validate(row)
            if record.in_effect(at.date()):
                rules.append(TaxRuleSnapshot(rate=record.tax_rate, name=record.tax_name, type=record.tax_type))

        return TaxRuleSet(
            jurisdiction=jurisdiction,
            applies_to=applies_to,
            tax_required=jurisdiction not in self.settings.TAX_EXEMPT_JURISDICTIONS,
            rules=tuple(rules),
        )

    def snapshot(self, currency_code: str, jurisdiction: str, at: Optional[datetime] = None) -> RateSnapshot:
        at = to_naive_utc(at) or now_utc()
        snapshot = RateSnapshot(
            exchange_rate=self.exchange_rate(currency_code, at),
            tax=self.tax_rules(jurisdiction, at),
            taken_at=at,
        )
        logger.debug(
            "Rate snapshot taken",
            extra={
                "currency_code": snapshot.currency_code,
                "exchange_rate": str(snapshot.exchange_rate.rate),
                "jurisdiction": snapshot.tax.jurisdiction,
                "tax_rule_count": len(snapshot.tax.rules),
            },
        )
        return snapshot

    def invalidate(self) -> int:
        """Drop every cached catalog read."""
        return self.cache.clear()
