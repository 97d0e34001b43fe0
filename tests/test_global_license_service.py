"""
License registration, renewal and expiry listing.
"""

from datetime import date
from decimal import Decimal

import pytest

from license_billing.core.exceptions import (
    DateSequenceInvalidError,
    ResourceNotFoundError,
    StateError,
    ValidationError,
)
from license_billing.models.base.enums import LicenseStatus
from license_billing.schemas.base import build
from license_billing.schemas.license import GlobalLicenseCreate


def test_register_returns_fresh_view(active_license):
    assert active_license.id is not None
    assert active_license.license_status == LicenseStatus.ACTIVE
    assert active_license.total_seats_purchased == 0
    assert active_license.billable_seats == 5
    assert active_license.monthly_price_usd == Decimal("15.00")
    assert active_license.period_price_usd == Decimal("180.00")


def test_period_must_move_forward(make_license):
    with pytest.raises(DateSequenceInvalidError) as exc_info:
        make_license(current_period_end=date(2023, 12, 1))

    assert exc_info.value.later_field == "current_period_end"


def test_renewal_cannot_precede_period_end(make_license):
    with pytest.raises(DateSequenceInvalidError):
        make_license(next_renewal_date=date(2024, 12, 1))


def test_billing_cycle_must_be_supported(generator):
    with pytest.raises(ValidationError) as exc_info:
        build(
            GlobalLicenseCreate,
            "Invalid license",
            guid=generator.next_guid(),
            tenant_id=42,
            billing_cycle_months=2,
            current_period_start=date(2024, 1, 1),
            current_period_end=date(2024, 3, 1),
            next_renewal_date=date(2024, 3, 1),
        )

    assert "billing_cycle_months" in exc_info.value.field_errors


def test_unknown_license(license_service):
    with pytest.raises(ResourceNotFoundError):
        license_service.get(404)


def test_renew_rolls_period_forward(license_service, active_license):
    renewed = license_service.renew(active_license.id)

    assert renewed.current_period_start == date(2025, 1, 1)
    assert renewed.current_period_end == date(2026, 1, 1)
    assert renewed.next_renewal_date == date(2026, 1, 1)


def test_quarterly_renewal(license_service, make_license):
    quarterly = make_license(
        billing_cycle_months=3,
        current_period_start=date(2024, 1, 1),
        current_period_end=date(2024, 4, 1),
        next_renewal_date=date(2024, 4, 1),
    )

    renewed = license_service.renew(quarterly.id)

    assert renewed.current_period_end == date(2024, 7, 1)


def test_suspended_license_is_not_renewed(license_service, make_license):
    suspended = make_license(license_status=LicenseStatus.SUSPENDED)

    with pytest.raises(StateError):
        license_service.renew(suspended.id)

    assert license_service.get(suspended.id).current_period_end == date(2025, 1, 1)


def test_list_expiring_soon(license_service, active_license, make_license):
    make_license(current_period_end=date(2025, 6, 1), next_renewal_date=date(2025, 6, 1))
    make_license(license_status=LicenseStatus.SUSPENDED)

    expiring = license_service.list_expiring_soon(30, today=date(2024, 12, 15))

    assert [license.id for license in expiring] == [active_license.id]
    assert expiring[0].is_expiring_within(30, date(2024, 12, 15))
