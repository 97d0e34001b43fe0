"""
Billing cycle aggregation and invoice lifecycle.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from license_billing.core.exceptions import (
    AlreadyExistsError,
    DateSequenceInvalidError,
    InvalidStatusTransitionError,
    ResourceNotFoundError,
)
from license_billing.models.base.enums import AdjustmentKind, BillingStatus
from license_billing.schemas.adjustment import LicenseAdjustmentRequest
from license_billing.schemas.billing_cycle import BillingCycleRequest

COMPUTED_AT = datetime(2024, 12, 31, 18, 0)


def cycle_request(license, **overrides):
    values = {
        "global_license_id": license.id,
        "billing_currency_code": "USD",
        "jurisdiction": "CM",
        "computed_at": COMPUTED_AT,
    }
    values.update(overrides)
    return BillingCycleRequest(**values)


def add_seats(adjustment_service, license, count=10, **overrides):
    values = {
        "global_license_id": license.id,
        "employees_added_count": count,
        "adjustment_date": date(2024, 10, 16),
        "months_remaining": Decimal("2.5"),
        "billing_currency_code": "USD",
        "jurisdiction": "CM",
        "computed_at": datetime(2024, 10, 16, 9, 0),
    }
    values.update(overrides)
    return adjustment_service.create_adjustment(LicenseAdjustmentRequest(**values)).adjustment


def test_cycle_without_adjustments(cycle_service, active_license):
    """Test 5 minimum seats x 12 months x 3.00 USD plus 19.25% VAT"""
    cycle = cycle_service.generate_cycle(cycle_request(active_license))

    assert cycle.period_start == date(2024, 1, 1)
    assert cycle.period_end == date(2025, 1, 1)
    assert cycle.payment_due_date == date(2025, 1, 8)
    assert cycle.base_employee_count == 5
    assert cycle.final_employee_count == 5
    assert cycle.base_amount_usd == Decimal("180.00")
    assert cycle.adjustments_amount_usd == Decimal("0.00")
    assert cycle.subtotal_usd == Decimal("180.00")
    assert cycle.tax_amount_usd == Decimal("34.65")
    assert cycle.total_amount_usd == Decimal("214.65")
    assert cycle.billing_status == BillingStatus.PENDING
    assert cycle.period_days == 366
    assert cycle.effective_tax_rate == Decimal("19.25")


def test_cycle_includes_period_adjustments(cycle_service, adjustment_service, active_license):
    add_seats(adjustment_service, active_license)

    cycle = cycle_service.generate_cycle(cycle_request(active_license))

    assert cycle.adjustments_amount_usd == Decimal("89.44")
    assert cycle.subtotal_usd == Decimal("269.44")
    assert cycle.tax_amount_usd == Decimal("51.87")
    assert cycle.total_amount_usd == Decimal("321.31")
    assert cycle.final_employee_count == 15
    assert cycle.employee_delta == 10


def test_reductions_and_cancelled_adjustments(cycle_service, adjustment_service, active_license):
    add_seats(adjustment_service, active_license, count=2, kind=AdjustmentKind.SEAT_REDUCTION, months_remaining=Decimal("2"))
    cancelled = add_seats(adjustment_service, active_license, count=4)
    adjustment_service.cancel(cancelled.id)

    cycle = cycle_service.generate_cycle(cycle_request(active_license))

    # 2 x 2 x 3.00 = 12.00 + 2.31 tax
    assert cycle.adjustments_amount_usd == Decimal("-14.31")
    assert cycle.subtotal_usd == Decimal("165.69")
    assert cycle.final_employee_count == 3


def test_cycle_in_xaf(cycle_service, active_license):
    cycle = cycle_service.generate_cycle(cycle_request(active_license, billing_currency_code="XAF"))

    assert cycle.exchange_rate_used == Decimal("655.957000")
    assert cycle.base_amount_local == Decimal("118072.26")
    assert cycle.subtotal_local == Decimal("118072.26")
    assert cycle.total_amount_local == Decimal("140801.17")
    assert cycle.adjustments_amount_local == Decimal("0.00")


def test_due_date_before_period_end_is_rejected(cycle_service, active_license):
    with pytest.raises(DateSequenceInvalidError):
        cycle_service.generate_cycle(cycle_request(active_license, payment_due_date=date(2024, 12, 31)))

    assert cycle_service.list_for_license(active_license.id) == []


def test_one_cycle_per_period(cycle_service, active_license):
    cycle_service.generate_cycle(cycle_request(active_license))

    with pytest.raises(AlreadyExistsError):
        cycle_service.generate_cycle(cycle_request(active_license))


def test_unknown_license(cycle_service, reference_data):
    with pytest.raises(ResourceNotFoundError):
        cycle_service.generate_cycle(
            BillingCycleRequest(global_license_id=404, billing_currency_code="USD", jurisdiction="CM")
        )


def test_explicit_short_period_is_prorated(cycle_service, active_license):
    cycle = cycle_service.generate_cycle(
        cycle_request(active_license, period_start=date(2024, 1, 1), period_end=date(2024, 4, 1))
    )

    assert cycle.base_amount_usd == Decimal("45.00")
    assert cycle.payment_due_date == date(2024, 4, 8)


def test_invoice_lifecycle(cycle_service, active_license):
    cycle = cycle_service.generate_cycle(cycle_request(active_license))

    with pytest.raises(DateSequenceInvalidError):
        cycle_service.mark_invoiced(cycle.id, datetime(2024, 12, 30))

    invoiced = cycle_service.mark_invoiced(cycle.id, datetime(2025, 1, 1, 9, 0))
    assert invoiced.billing_status == BillingStatus.INVOICED

    with pytest.raises(DateSequenceInvalidError):
        cycle_service.mark_overdue(cycle.id, as_of=date(2025, 1, 8))

    overdue = cycle_service.mark_overdue(cycle.id, as_of=date(2025, 1, 9))
    assert overdue.billing_status == BillingStatus.OVERDUE
    assert overdue.days_overdue(date(2025, 1, 18)) == 10


def test_pending_cycle_cannot_become_overdue(cycle_service, active_license):
    cycle = cycle_service.generate_cycle(cycle_request(active_license))

    with pytest.raises(InvalidStatusTransitionError):
        cycle_service.mark_overdue(cycle.id, as_of=date(2025, 2, 1))


def test_listings(cycle_service, make_license):
    early = make_license(current_period_start=date(2024, 1, 1), current_period_end=date(2024, 7, 1), next_renewal_date=date(2024, 7, 1), billing_cycle_months=6)
    late = make_license()
    early_cycle = cycle_service.generate_cycle(cycle_request(early, computed_at=datetime(2024, 6, 30)))
    late_cycle = cycle_service.generate_cycle(cycle_request(late))

    assert [c.id for c in cycle_service.list_pending_invoice()] == [early_cycle.id, late_cycle.id]
    assert [c.id for c in cycle_service.list_overdue(today=date(2024, 7, 20))] == [early_cycle.id]
    assert [c.id for c in cycle_service.list_due_soon(today=date(2025, 1, 3))] == [late_cycle.id]
    assert late_cycle.days_until_due(date(2025, 1, 3)) == 5


def test_overlapping_period_is_rejected(cycle_service, active_license):
    cycle_service.generate_cycle(cycle_request(active_license))

    with pytest.raises(AlreadyExistsError) as exc_info:
        cycle_service.generate_cycle(
            cycle_request(active_license, period_start=date(2024, 7, 1), period_end=date(2025, 1, 1))
        )
    assert exc_info.value.details["overlapping_ids"]

    following = cycle_service.generate_cycle(
        cycle_request(active_license, period_start=date(2025, 1, 1), period_end=date(2026, 1, 1))
    )
    assert following.base_amount_usd == Decimal("180.00")


def test_seats_added_mid_period_are_billed_once(cycle_service, adjustment_service, active_license, seat_counter):
    added = add_seats(adjustment_service, active_license)

    cycle = cycle_service.generate_cycle(cycle_request(active_license))

    # the 10 new seats appear only as the prorated adjustment
    assert adjustment_service.licenses.find_view(active_license.id).total_seats_purchased == 10
    assert cycle.base_employee_count == 5
    assert cycle.base_amount_usd == Decimal("180.00")
    assert cycle.adjustments_amount_usd == added.total_amount_usd == Decimal("89.44")
    assert cycle.final_employee_count == 15


def test_boundary_day_adjustment_belongs_to_following_cycle(
    cycle_service, adjustment_service, license_service, active_license, seat_counter
):
    # 2 seats x 2 months x 3.00 = 12.00 + 2.31 tax
    add_seats(
        adjustment_service,
        active_license,
        count=2,
        adjustment_date=date(2025, 1, 1),
        months_remaining=Decimal("2"),
        computed_at=datetime(2025, 1, 1, 9, 0),
    )

    first = cycle_service.generate_cycle(cycle_request(active_license))
    renewed = license_service.renew(active_license.id)
    second = cycle_service.generate_cycle(cycle_request(renewed, computed_at=datetime(2025, 12, 31, 18, 0)))

    assert first.adjustments_amount_usd == Decimal("0.00")
    assert first.final_employee_count == 5
    assert second.period_start == date(2025, 1, 1)
    assert second.adjustments_amount_usd == Decimal("14.31")
    assert second.final_employee_count == 7


def test_seats_carry_into_next_period_base(
    cycle_service, adjustment_service, license_service, active_license, seat_counter
):
    add_seats(adjustment_service, active_license)
    cycle_service.generate_cycle(cycle_request(active_license))
    renewed = license_service.renew(active_license.id)

    following = cycle_service.generate_cycle(cycle_request(renewed, computed_at=datetime(2025, 12, 31, 18, 0)))

    assert following.base_employee_count == 10
    assert following.base_amount_usd == Decimal("360.00")
    assert following.adjustments_amount_usd == Decimal("0.00")
    assert following.final_employee_count == 10
