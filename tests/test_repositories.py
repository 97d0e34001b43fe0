"""
Repository guards: uniqueness, write-protected columns, conditional
updates and pagination.
"""

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.core.exceptions import AlreadyExistsError, ImmutableFieldError
from license_billing.db import get_db
from license_billing.models.base.enums import LicenseBillingState, LicenseStatus
from license_billing.repositories.license import GlobalLicenseRepository
from license_billing.schemas.license import GlobalLicenseCreate


@pytest.fixture
def licenses(db, billing_settings):
    return GlobalLicenseRepository(db, billing_settings)


def create_values(license, **overrides):
    values = license.model_dump(include=set(GlobalLicenseCreate.model_fields))
    values.update(overrides)
    return values


def test_duplicate_guid_is_rejected(licenses, active_license):
    with pytest.raises(AlreadyExistsError):
        licenses.insert(create_values(active_license))

    assert licenses.count() == 1


def test_store_computed_fields_are_never_written(licenses, active_license, generator):
    with pytest.raises(ImmutableFieldError) as exc_info:
        licenses.insert(create_values(active_license, guid=generator.next_guid(), total_seats_purchased=3))
    assert exc_info.value.fields == ["total_seats_purchased"]

    with pytest.raises(ImmutableFieldError):
        licenses.update_where(active_license.id, {}, {"billing_status": LicenseBillingState.BILLABLE})


def test_update_limited_to_mutable_fields(licenses, active_license):
    with pytest.raises(ImmutableFieldError) as exc_info:
        licenses.update_where(active_license.id, {}, {"tenant_id": 7})

    assert exc_info.value.fields == ["tenant_id"]


def test_conditional_update_matches_expected_values(licenses, active_license):
    assert licenses.update_where(active_license.id, {"license_status": LicenseStatus.SUSPENDED}, {"minimum_seats": 10}) == 0
    assert licenses.find_by_id(active_license.id).minimum_seats == 5

    assert licenses.update_where(active_license.id, {"license_status": LicenseStatus.ACTIVE}, {"minimum_seats": 10}) == 1
    assert licenses.find_by_id(active_license.id).minimum_seats == 10


def test_page_size_is_capped(db, make_license):
    for _ in range(3):
        make_license()
    repository = GlobalLicenseRepository(db, BillingSettings(DEFAULT_PAGE_LIMIT=2, MAX_PAGE_LIMIT=2))

    assert len(repository.list()) == 2
    assert len(repository.list(limit=100)) == 2
    assert len(repository.list(limit=0)) == 1
    assert len(repository.list(offset=2)) == 1


def test_json_columns_round_trip(reference_data):
    assert reference_data.card.supported_currencies == ("USD", "EUR", "XAF")
    assert reference_data.card.accepts_currency("xaf")
    assert not reference_data.mobile.accepts_currency("USD")
    assert reference_data.card.accepts_amount(Decimal("100000.00"))
    assert not reference_data.card.accepts_amount(Decimal("0.50"))


def test_find_by_guid_and_refresh(licenses, active_license):
    found = licenses.find_by_guid(active_license.guid)

    assert found.id == active_license.id
    assert licenses.find_by_guid(999999) is None
    assert licenses.refresh(found) == found


def test_get_db_closes_its_session(monkeypatch):
    closed = []
    monkeypatch.setattr(Session, "close", lambda self: closed.append(self))

    sessions = get_db()
    db = next(sessions)
    assert isinstance(db, Session)

    sessions.close()
    assert closed == [db]
