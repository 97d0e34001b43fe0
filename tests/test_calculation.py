"""
Proration, tax and currency projection.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from license_billing.core.exceptions import (
    AmountConsistencyError,
    TaxRuleInvalidError,
    ValidationError,
)
from license_billing.schemas.snapshot import ExchangeRateSnapshot, TaxRuleSet, TaxRuleSnapshot
from license_billing.services.billing import CurrencyProjector, ProrationEngine, TaxApplier

CM_VAT = TaxRuleSnapshot(rate=Decimal("0.1925"), name="TVA", type="VAT")
XAF_RATE = ExchangeRateSnapshot(
    from_currency="USD",
    to_currency="XAF",
    rate=Decimal("655.957000"),
    as_of=datetime(2024, 1, 1),
)


@pytest.fixture
def proration():
    return ProrationEngine()


@pytest.fixture
def tax_applier():
    return TaxApplier()


@pytest.fixture
def projector(validator):
    return CurrencyProjector(validator)


def test_prorate_seat_addition(proration):
    """Test 10 seats for 2.5 months at 3.00"""
    assert proration.prorate(10, Decimal("2.5"), Decimal("3.00")) == Decimal("75.00")


def test_prorate_rounds_half_up(proration):
    """Test 1 x 0.33 x 0.05 = 0.0165 rounds to 0.02"""
    assert proration.prorate(1, Decimal("0.33"), Decimal("0.05")) == Decimal("0.02")


def test_prorate_zero_months_is_free(proration):
    assert proration.prorate(3, Decimal("0"), Decimal("3.00")) == Decimal("0.00")


@pytest.mark.parametrize(
    "count, months, price",
    [
        (0, Decimal("1"), Decimal("3.00")),
        (-2, Decimal("1"), Decimal("3.00")),
        (None, Decimal("1"), Decimal("3.00")),
        (1, Decimal("-0.5"), Decimal("3.00")),
        (1, Decimal("100"), Decimal("3.00")),
        (1, Decimal("1.234"), Decimal("3.00")),
        (1, None, Decimal("3.00")),
        (1, Decimal("1"), Decimal("-1.00")),
        (1, Decimal("1"), Decimal("3.001")),
    ],
)
def test_prorate_rejects_invalid_input(proration, count, months, price):
    with pytest.raises(ValidationError) as exc_info:
        proration.prorate(count, months, price)

    assert exc_info.value.field_errors


@pytest.mark.parametrize(
    "start, end, expected",
    [
        (date(2024, 1, 1), date(2025, 1, 1), Decimal("12.00")),
        (date(2024, 11, 1), date(2025, 1, 1), Decimal("2.00")),
        (date(2024, 1, 15), date(2024, 2, 1), Decimal("0.55")),
        (date(2024, 10, 15), date(2025, 1, 1), Decimal("2.55")),
        (date(2024, 3, 1), date(2024, 3, 1), Decimal("0.00")),
        (date(2024, 3, 1), date(2024, 2, 1), Decimal("0.00")),
        (date(2000, 1, 1), date(2020, 1, 1), Decimal("99.99")),
    ],
)
def test_months_between(proration, start, end, expected):
    assert proration.months_between(start, end) == expected


def test_tax_single_rule(tax_applier):
    """Test 75.00 at 19.25% gives 14.44 tax and 89.44 total"""
    result = tax_applier.apply(Decimal("75.00"), TaxRuleSet(jurisdiction="CM", rules=(CM_VAT,)))

    assert result.subtotal_usd == Decimal("75.00")
    assert result.tax_amount_usd == Decimal("14.44")
    assert result.total_amount_usd == Decimal("89.44")
    assert result.tax_rules_applied == (CM_VAT,)


def test_tax_rules_apply_to_subtotal_without_compounding(tax_applier):
    rules = (
        TaxRuleSnapshot(rate=Decimal("0.10"), name="State", type="SALES"),
        TaxRuleSnapshot(rate=Decimal("0.05"), name="City", type="SALES"),
    )
    result = tax_applier.apply(Decimal("100.00"), TaxRuleSet(jurisdiction="US", rules=rules))

    assert result.tax_amount_usd == Decimal("15.00")
    assert result.total_amount_usd == Decimal("115.00")


@pytest.mark.parametrize("rate", [Decimal("1.5"), Decimal("-0.01"), Decimal("0.12345")])
def test_tax_rejects_invalid_rate(tax_applier, rate):
    rule = TaxRuleSnapshot(rate=rate, name="Bad", type="VAT")

    with pytest.raises(TaxRuleInvalidError):
        tax_applier.apply(Decimal("10.00"), TaxRuleSet(jurisdiction="CM", rules=(rule,)))


def test_tax_requires_rules_where_tax_is_due(tax_applier):
    with pytest.raises(TaxRuleInvalidError) as exc_info:
        tax_applier.apply(Decimal("10.00"), TaxRuleSet(jurisdiction="FR", tax_required=True))

    assert exc_info.value.details["jurisdiction"] == "FR"


def test_tax_exempt_jurisdiction_without_rules(tax_applier):
    result = tax_applier.apply(Decimal("10.00"), TaxRuleSet(jurisdiction="AE", tax_required=False))

    assert result.tax_amount_usd == Decimal("0.00")
    assert result.total_amount_usd == Decimal("10.00")
    assert result.tax_rules_applied == ()


def test_tax_rejects_negative_subtotal(tax_applier):
    with pytest.raises(ValidationError):
        tax_applier.apply(Decimal("-1.00"), TaxRuleSet(jurisdiction="CM", rules=(CM_VAT,)))


def test_projection_into_xaf(projector):
    """Test 89.44 USD at 655.957000 projects to 58668.79 XAF"""
    projection = projector.project(
        {"subtotal": Decimal("75.00"), "tax_amount": Decimal("14.44"), "total_amount": Decimal("89.44")},
        XAF_RATE,
    )

    assert projection.currency_code == "XAF"
    assert projection.exchange_rate_used == Decimal("655.957000")
    assert projection.local == {
        "subtotal": Decimal("49196.78"),
        "tax_amount": Decimal("9472.02"),
        "total_amount": Decimal("58668.79"),
    }
    assert projection.local_fields()["total_amount_local"] == Decimal("58668.79")


def test_projection_base_currency_is_identity(projector):
    rate = ExchangeRateSnapshot(from_currency="USD", to_currency="USD", rate=Decimal("1"), as_of=datetime(2024, 1, 1))

    projection = projector.project({"total_amount": Decimal("12.34")}, rate)

    assert projection.local == {"total_amount": Decimal("12.34")}


def test_projection_rejects_non_unit_rate_for_base_currency(projector):
    rate = ExchangeRateSnapshot(from_currency="USD", to_currency="USD", rate=Decimal("1.01"), as_of=datetime(2024, 1, 1))

    with pytest.raises(AmountConsistencyError):
        projector.project({"total_amount": Decimal("12.34")}, rate)


@pytest.mark.parametrize("bad_rate", [Decimal("0"), Decimal("-655.957"), Decimal("655.9570001")])
def test_projection_rejects_invalid_rate(projector, bad_rate):
    rate = XAF_RATE.model_copy(update={"rate": bad_rate})

    with pytest.raises(ValidationError):
        projector.project({"total_amount": Decimal("89.44")}, rate)
