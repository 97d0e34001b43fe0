"""
Point-in-time exchange rate and tax rule lookups.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import update

from license_billing.core.exceptions import ResourceNotFoundError
from license_billing.models.reference import ExchangeRate
from license_billing.repositories.reference import ExchangeRateRepository, TaxRuleRepository


def test_base_currency_is_identity(rate_snapshots):
    snapshot = rate_snapshots.exchange_rate("usd", datetime(2024, 6, 1))

    assert snapshot.to_currency == "USD"
    assert snapshot.rate == Decimal("1.000000")


def test_latest_rate_not_after_the_moment(db, billing_settings, rate_snapshots):
    ExchangeRateRepository(db, billing_settings).insert({
        "from_currency_code": "USD",
        "to_currency_code": "XAF",
        "rate": Decimal("656.100000"),
        "as_of": datetime(2024, 7, 1),
    })
    db.commit()

    assert rate_snapshots.exchange_rate("XAF", datetime(2024, 6, 30)).rate == Decimal("655.957000")
    assert rate_snapshots.exchange_rate("XAF", datetime(2024, 7, 1)).rate == Decimal("656.100000")


def test_no_rate_before_first_quote(rate_snapshots):
    with pytest.raises(ResourceNotFoundError) as exc_info:
        rate_snapshots.exchange_rate("XAF", datetime(2023, 12, 31))

    assert exc_info.value.resource_type == "ExchangeRate"


def test_unknown_currency(rate_snapshots):
    with pytest.raises(ResourceNotFoundError) as exc_info:
        rate_snapshots.exchange_rate("GBP", datetime(2024, 6, 1))

    assert exc_info.value.resource_type == "Currency"


def test_catalog_reads_are_cached_until_invalidated(db, rate_snapshots):
    """Test a deactivated rate stays visible until the cache is dropped"""
    assert rate_snapshots.exchange_rate("EUR", datetime(2024, 6, 1)).rate == Decimal("0.920000")

    db.execute(update(ExchangeRate).where(ExchangeRate.to_currency_code == "EUR").values(is_active=False))
    db.commit()

    assert rate_snapshots.exchange_rate("EUR", datetime(2024, 6, 1)).rate == Decimal("0.920000")

    assert rate_snapshots.invalidate() > 0
    with pytest.raises(ResourceNotFoundError):
        rate_snapshots.exchange_rate("EUR", datetime(2024, 6, 1))


def test_tax_rules_in_effect(db, billing_settings, rate_snapshots):
    TaxRuleRepository(db, billing_settings).insert({
        "country_code": "CM",
        "tax_type": "LEVY",
        "tax_name": "Council levy",
        "tax_rate": Decimal("0.0100"),
        "effective_date": date(2020, 1, 1),
        "expiry_date": date(2023, 12, 31),
    })
    db.commit()

    current = rate_snapshots.tax_rules("cm", datetime(2024, 6, 1))
    assert current.jurisdiction == "CM"
    assert current.tax_required
    assert [r.name for r in current.rules] == ["TVA"]

    earlier = rate_snapshots.tax_rules("CM", datetime(2023, 12, 31, 23, 0))
    assert [r.name for r in earlier.rules] == ["TVA", "Council levy"]


def test_exempt_jurisdiction(rate_snapshots):
    rules = rate_snapshots.tax_rules("AE", datetime(2024, 6, 1))

    assert not rules.tax_required
    assert rules.rules == ()


def test_snapshot_combines_rate_and_rules(rate_snapshots):
    at = datetime(2024, 6, 1, 12, 0)
    snapshot = rate_snapshots.snapshot("XAF", "CM", at)

    assert snapshot.currency_code == "XAF"
    assert snapshot.exchange_rate.as_of == datetime(2024, 1, 1)
    assert snapshot.taken_at == at
    assert len(snapshot.tax.rules) == 1
