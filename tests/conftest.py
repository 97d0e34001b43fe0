"""
Shared fixtures: in-memory database, seeded reference data and wired
services.
"""

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event, update
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from license_billing.core.cache import MemoryBackend, ReferenceCache
from license_billing.core.config import BillingSettings
from license_billing.db import init_db
from license_billing.models import GlobalLicense, LicenseAdjustment
from license_billing.models.base.enums import AdjustmentKind
from license_billing.repositories.reference import (
    CurrencyRepository,
    ExchangeRateRepository,
    PaymentMethodRepository,
    TaxRuleRepository,
)
from license_billing.schemas.license import GlobalLicenseCreate
from license_billing.services.billing import (
    BillingCycleService,
    GlobalLicenseService,
    LicenseAdjustmentService,
    PaymentTransactionService,
    RateSnapshotService,
    ReconciliationValidator,
)
from license_billing.utils.reference_generator import SequentialReferenceGenerator

RATES_AS_OF = datetime(2024, 1, 1)
COMPUTED_AT = datetime(2024, 6, 1, 12, 0)
PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2025, 1, 1)


@pytest.fixture
def engine():
    """In-memory SQLite shared across the session's connections"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def billing_settings():
    return BillingSettings(TAX_EXEMPT_JURISDICTIONS=["AE"], PAYMENT_DUE_DAYS=7, DUE_SOON_DAYS=7)


@pytest.fixture
def reference_data(db, billing_settings):
    """Currencies, USD rates, a Cameroon VAT rule and payment methods"""
    currencies = CurrencyRepository(db, billing_settings)
    currencies.insert({"code": "USD", "name": "US Dollar"})
    currencies.insert({"code": "XAF", "name": "Central African CFA franc", "decimal_places": 0})
    currencies.insert({"code": "EUR", "name": "Euro"})

    rates = ExchangeRateRepository(db, billing_settings)
    rates.insert({
        "from_currency_code": "USD",
        "to_currency_code": "XAF",
        "rate": Decimal("655.957000"),
        "as_of": RATES_AS_OF,
    })
    rates.insert({
        "from_currency_code": "USD",
        "to_currency_code": "EUR",
        "rate": Decimal("0.920000"),
        "as_of": RATES_AS_OF,
    })

    TaxRuleRepository(db, billing_settings).insert({
        "country_code": "CM",
        "tax_type": "VAT",
        "tax_name": "TVA",
        "tax_rate": Decimal("0.1925"),
        "applies_to": "license_fee",
        "effective_date": date(2020, 1, 1),
    })

    methods = PaymentMethodRepository(db, billing_settings)
    card = methods.insert({
        "code": "CARD",
        "name": "Card",
        "min_amount_usd": Decimal("1.00"),
        "max_amount_usd": Decimal("100000.00"),
        "supported_currencies": ["USD", "EUR", "XAF"],
    })
    mobile = methods.insert({
        "code": "MOBILE_MONEY",
        "name": "Mobile money",
        "supported_currencies": ["XAF"],
    })
    cheque = methods.insert({"code": "CHEQUE", "name": "Cheque", "is_active": False})
    db.commit()

    return SimpleNamespace(card=card, mobile=mobile, cheque=cheque)


@pytest.fixture
def generator():
    return SequentialReferenceGenerator()


@pytest.fixture
def reference_cache():
    return ReferenceCache(MemoryBackend(), default_ttl=60)


@pytest.fixture
def validator(billing_settings):
    return ReconciliationValidator(billing_settings)


@pytest.fixture
def rate_snapshots(db, billing_settings, reference_data, reference_cache):
    return RateSnapshotService(
        CurrencyRepository(db, billing_settings),
        ExchangeRateRepository(db, billing_settings),
        TaxRuleRepository(db, billing_settings),
        reference_cache,
        billing_settings,
    )


@pytest.fixture
def license_service(db, billing_settings):
    return GlobalLicenseService(db, settings=billing_settings)


@pytest.fixture
def adjustment_service(db, billing_settings, rate_snapshots, generator):
    return LicenseAdjustmentService(db, rate_snapshots, generator, settings=billing_settings)


@pytest.fixture
def cycle_service(db, billing_settings, rate_snapshots, generator):
    return BillingCycleService(db, rate_snapshots, generator, settings=billing_settings)


@pytest.fixture
def payment_service(db, billing_settings, cycle_service, adjustment_service, generator):
    return PaymentTransactionService(
        db,
        cycle_service,
        adjustment_service,
        generator,
        settings=billing_settings,
    )


def license_create(generator, **overrides):
    values = {
        "guid": generator.next_guid(),
        "tenant_id": 42,
        "billing_cycle_months": 12,
        "base_price_usd": Decimal("3.00"),
        "minimum_seats": 5,
        "current_period_start": PERIOD_START,
        "current_period_end": PERIOD_END,
        "next_renewal_date": PERIOD_END,
    }
    values.update(overrides)
    return GlobalLicenseCreate(**values)


@pytest.fixture
def make_license(license_service, generator, reference_data):
    """Register a license; overrides replace the yearly 3.00 USD defaults"""

    def _make(**overrides):
        return license_service.register(license_create(generator, **overrides))

    return _make


@pytest.fixture
def active_license(make_license):
    """Active yearly license at 3.00 USD per seat and month, 5 seats minimum"""
    return make_license()


@pytest.fixture
def seat_counter(engine):
    """
    Stand-in for the store computing ``total_seats_purchased``: every
    inserted adjustment moves the license's seat count.
    """

    def apply_seat_change(mapper, connection, target):
        delta = target.employees_added_count
        if target.adjustment_kind == AdjustmentKind.SEAT_REDUCTION:
            delta = -delta
        connection.execute(
            update(GlobalLicense)
            .where(GlobalLicense.id == target.global_license_id)
            .values(total_seats_purchased=GlobalLicense.total_seats_purchased + delta)
        )

    event.listen(LicenseAdjustment, "after_insert", apply_seat_change)
    yield
    event.remove(LicenseAdjustment, "after_insert", apply_seat_change)
