"""
Payment transaction state machine and its effect on owners.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from license_billing.core.exceptions import (
    AlreadyExistsError,
    DateSequenceInvalidError,
    InvalidStatusTransitionError,
    ResourceNotFoundError,
    StateError,
    TransactionAlreadyFinalError,
    ValidationError,
)
from license_billing.models.base.enums import (
    AdjustmentPaymentStatus,
    BillingStatus,
    PaymentTransactionStatus,
)
from license_billing.schemas.adjustment import LicenseAdjustmentRequest
from license_billing.schemas.billing_cycle import BillingCycleRequest
from license_billing.schemas.payment_transaction import (
    PaymentInitiation,
    PaymentOwnerRef,
    PaymentSearchCriteria,
)

INVOICED_AT = datetime(2025, 1, 1, 9, 0)
INITIATED_AT = datetime(2025, 1, 2, 9, 0)
COMPLETED_AT = datetime(2025, 1, 2, 9, 5)


@pytest.fixture
def invoiced_cycle(cycle_service, active_license):
    """Invoiced USD cycle of 214.65"""
    cycle = cycle_service.generate_cycle(
        BillingCycleRequest(
            global_license_id=active_license.id,
            billing_currency_code="USD",
            jurisdiction="CM",
            computed_at=datetime(2024, 12, 31),
        )
    )
    return cycle_service.mark_invoiced(cycle.id, INVOICED_AT)


@pytest.fixture
def xaf_adjustment(adjustment_service, active_license):
    """Pending XAF adjustment of 89.44 USD / 58668.79 XAF"""
    return adjustment_service.create_adjustment(
        LicenseAdjustmentRequest(
            global_license_id=active_license.id,
            employees_added_count=10,
            adjustment_date=date(2024, 10, 16),
            months_remaining=Decimal("2.5"),
            billing_currency_code="XAF",
            jurisdiction="CM",
            computed_at=datetime(2024, 10, 16, 8, 0),
        )
    ).adjustment


def initiate(payment_service, owner, method, **overrides):
    values = {"owner": owner, "payment_method_id": method.id, "initiated_at": INITIATED_AT}
    values.update(overrides)
    return payment_service.initiate(PaymentInitiation(**values))


def test_initiate_copies_owner_amounts(payment_service, xaf_adjustment, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.adjustment(xaf_adjustment.id), reference_data.mobile)

    assert transaction.transaction_status == PaymentTransactionStatus.PENDING
    assert transaction.adjustment_id == xaf_adjustment.id
    assert transaction.billing_cycle_id is None
    assert transaction.amount_usd == Decimal("89.44")
    assert transaction.amount_local == Decimal("58668.79")
    assert transaction.currency_code == "XAF"
    assert transaction.exchange_rate_used == Decimal("655.957000")
    assert transaction.payment_reference.startswith("PAY-")
    assert transaction.owner == PaymentOwnerRef.adjustment(xaf_adjustment.id)


def test_full_payment_marks_cycle_paid(payment_service, cycle_service, invoiced_cycle, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)

    processing = payment_service.start_processing(transaction.id, INITIATED_AT)
    assert processing.transaction_status == PaymentTransactionStatus.PROCESSING

    completed = payment_service.complete(transaction.id, COMPLETED_AT)
    assert completed.transaction_status == PaymentTransactionStatus.COMPLETED
    assert completed.completed_at == COMPLETED_AT
    assert completed.processing_duration_seconds == 300
    assert completed.amount_usd == invoiced_cycle.total_amount_usd

    cycle = cycle_service.get(invoiced_cycle.id)
    assert cycle.billing_status == BillingStatus.PAID
    assert cycle.payment_completed_at == COMPLETED_AT


def test_pending_cannot_complete_directly(payment_service, cycle_service, invoiced_cycle, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)

    with pytest.raises(InvalidStatusTransitionError):
        payment_service.complete(transaction.id, COMPLETED_AT)

    assert payment_service.get(transaction.id).transaction_status == PaymentTransactionStatus.PENDING
    assert cycle_service.get(invoiced_cycle.id).billing_status == BillingStatus.INVOICED


def test_settle_walks_through_processing(payment_service, invoiced_cycle, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)

    settled = payment_service.settle(transaction.id, COMPLETED_AT)

    assert settled.transaction_status == PaymentTransactionStatus.COMPLETED
    assert settled.processing_started_at == COMPLETED_AT
    assert payment_service.is_final(transaction.id) is False


def test_fail_requires_reason_and_is_final(payment_service, invoiced_cycle, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)

    with pytest.raises(ValidationError):
        payment_service.fail(transaction.id, "")
    with pytest.raises(ValidationError):
        payment_service.fail(transaction.id, "x" * 501)

    failed = payment_service.fail(transaction.id, "Card declined", datetime(2025, 1, 2, 9, 1))
    assert failed.transaction_status == PaymentTransactionStatus.FAILED
    assert failed.failure_reason == "Card declined"
    assert payment_service.is_final(transaction.id)

    with pytest.raises(TransactionAlreadyFinalError):
        payment_service.fail(transaction.id, "Card declined again", datetime(2025, 1, 2, 9, 2))


def test_retry_is_a_new_transaction(payment_service, invoiced_cycle, reference_data):
    owner = PaymentOwnerRef.billing_cycle(invoiced_cycle.id)
    first = initiate(payment_service, owner, reference_data.card)
    payment_service.fail(first.id, "Timeout", datetime(2025, 1, 2, 9, 1))

    second = initiate(payment_service, owner, reference_data.card)
    payment_service.settle(second.id, COMPLETED_AT)

    history = payment_service.list_for_owner(owner)
    assert [t.transaction_status for t in history] == [
        PaymentTransactionStatus.FAILED,
        PaymentTransactionStatus.COMPLETED,
    ]
    assert first.payment_reference != second.payment_reference


def test_completing_uninvoiced_adjustment_is_out_of_sequence(payment_service, adjustment_service, xaf_adjustment, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.adjustment(xaf_adjustment.id), reference_data.mobile)
    payment_service.start_processing(transaction.id, INITIATED_AT)

    with pytest.raises(DateSequenceInvalidError):
        payment_service.complete(transaction.id, COMPLETED_AT)

    assert payment_service.get(transaction.id).transaction_status == PaymentTransactionStatus.PROCESSING
    assert adjustment_service.get(xaf_adjustment.id).payment_status == AdjustmentPaymentStatus.PENDING


def test_payment_before_invoice_time_is_out_of_sequence(payment_service, adjustment_service, xaf_adjustment, reference_data):
    adjustment_service.mark_invoice_sent(xaf_adjustment.id, datetime(2025, 1, 3))
    transaction = initiate(payment_service, PaymentOwnerRef.adjustment(xaf_adjustment.id), reference_data.mobile)
    payment_service.start_processing(transaction.id, INITIATED_AT)

    with pytest.raises(DateSequenceInvalidError):
        payment_service.complete(transaction.id, COMPLETED_AT)


def test_adjustment_payment_and_refund(payment_service, adjustment_service, xaf_adjustment, reference_data):
    adjustment_service.mark_invoice_sent(xaf_adjustment.id, datetime(2024, 10, 17))
    transaction = initiate(payment_service, PaymentOwnerRef.adjustment(xaf_adjustment.id), reference_data.mobile)
    payment_service.settle(transaction.id, COMPLETED_AT)

    paid = adjustment_service.get(xaf_adjustment.id)
    assert paid.payment_status == AdjustmentPaymentStatus.PAID
    assert paid.payment_completed_at == COMPLETED_AT

    refunded = payment_service.refund(transaction.id, datetime(2025, 1, 5))
    assert refunded.transaction_status == PaymentTransactionStatus.REFUNDED
    assert adjustment_service.get(xaf_adjustment.id).payment_status == AdjustmentPaymentStatus.REFUNDED

    with pytest.raises(TransactionAlreadyFinalError):
        payment_service.refund(transaction.id)


def test_paid_owner_refuses_new_payment(payment_service, invoiced_cycle, reference_data):
    owner = PaymentOwnerRef.billing_cycle(invoiced_cycle.id)
    payment_service.settle(initiate(payment_service, owner, reference_data.card).id, COMPLETED_AT)

    with pytest.raises(StateError):
        initiate(payment_service, owner, reference_data.card)


def test_payment_method_checks(payment_service, invoiced_cycle, reference_data):
    owner = PaymentOwnerRef.billing_cycle(invoiced_cycle.id)

    with pytest.raises(ResourceNotFoundError):
        payment_service.initiate(PaymentInitiation(owner=owner, payment_method_id=999))
    with pytest.raises(ValidationError):
        initiate(payment_service, owner, reference_data.cheque)
    with pytest.raises(ValidationError) as exc_info:
        initiate(payment_service, owner, reference_data.mobile)

    assert "currency_code" in exc_info.value.field_errors


def test_unknown_owner(payment_service, reference_data):
    with pytest.raises(ResourceNotFoundError):
        initiate(payment_service, PaymentOwnerRef.billing_cycle(12345), reference_data.card)


def test_duplicate_reference_is_rejected(payment_service, invoiced_cycle, reference_data):
    owner = PaymentOwnerRef.billing_cycle(invoiced_cycle.id)
    initiate(payment_service, owner, reference_data.card, payment_reference="BANK-REF-1")

    with pytest.raises(AlreadyExistsError):
        initiate(payment_service, owner, reference_data.card, payment_reference="BANK-REF-1")

    assert len(payment_service.list_for_owner(owner)) == 1


def test_concurrent_cancel_wins_over_stale_processing(payment_service, invoiced_cycle, reference_data):
    """Test the loser of two racing transitions sees the winner's final status"""
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)
    stale = payment_service.get(transaction.id)

    payment_service.cancel(transaction.id, datetime(2025, 1, 2, 9, 1))

    with pytest.raises(TransactionAlreadyFinalError):
        payment_service.apply_transition(
            stale,
            PaymentTransactionStatus.PROCESSING,
            {"processing_started_at": datetime(2025, 1, 2, 9, 2)},
        )

    assert payment_service.get(transaction.id).transaction_status == PaymentTransactionStatus.CANCELLED


def test_concurrent_processing_beats_stale_failure(payment_service, invoiced_cycle, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)
    stale = payment_service.get(transaction.id)

    payment_service.start_processing(transaction.id, INITIATED_AT)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        payment_service.apply_transition(
            stale,
            PaymentTransactionStatus.FAILED,
            {"failed_at": datetime(2025, 1, 2, 9, 3), "failure_reason": "Timeout"},
        )

    assert exc_info.value.current == PaymentTransactionStatus.PROCESSING


def test_search_and_statistics(payment_service, invoiced_cycle, reference_data):
    owner = PaymentOwnerRef.billing_cycle(invoiced_cycle.id)
    failed = initiate(payment_service, owner, reference_data.card)
    payment_service.fail(failed.id, "Insufficient funds", datetime(2025, 1, 2, 9, 1))
    paid = initiate(payment_service, owner, reference_data.card, initiated_at=datetime(2025, 1, 2, 9, 2))
    payment_service.settle(paid.id, COMPLETED_AT)

    found = payment_service.search(PaymentSearchCriteria(status=PaymentTransactionStatus.FAILED))
    assert [t.id for t in found] == [failed.id]

    in_range = payment_service.search(
        PaymentSearchCriteria(min_amount_usd=Decimal("200"), max_amount_usd=Decimal("250"), currency_code="usd")
    )
    assert {t.id for t in in_range} == {failed.id, paid.id}

    stats = payment_service.statistics(datetime(2025, 1, 1), datetime(2025, 1, 31))
    assert stats.total_count == 2
    assert stats.by_status[PaymentTransactionStatus.COMPLETED].count == 1
    assert stats.by_status[PaymentTransactionStatus.REFUNDED].count == 0
    assert stats.total_amount_usd == Decimal("429.30")
    assert stats.average_amount_usd == Decimal("214.65")
    assert stats.success_rate == Decimal("50.00")


def test_lookup_by_reference(payment_service, invoiced_cycle, reference_data):
    transaction = initiate(payment_service, PaymentOwnerRef.billing_cycle(invoiced_cycle.id), reference_data.card)

    assert payment_service.get_by_reference(transaction.payment_reference).id == transaction.id
    with pytest.raises(ResourceNotFoundError):
        payment_service.get_by_reference("PAY-UNKNOWN")
