"""
Payment transaction service.

One row per payment attempt against exactly one billing cycle or
license adjustment. Amounts are copied from the owner at initiation and
never change; afterwards only the status and its timestamps move, each
step a conditional update over the transition table.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.core.exceptions import ResourceNotFoundError, StateError, ValidationError
from license_billing.core.logging import log_execution_time
from license_billing.models.base.enums import (
    AdjustmentPaymentStatus,
    BillingStatus,
    PaymentOwnerType,
    PaymentTransactionStatus,
)
from license_billing.repositories.license import PaymentTransactionRepository
from license_billing.repositories.reference import PaymentMethodRepository
from license_billing.schemas.adjustment import LicenseAdjustmentRecord
from license_billing.schemas.base import build
from license_billing.schemas.billing_cycle import BillingCycleRecord
from license_billing.schemas.payment_transaction import (
    PaymentInitiation,
    PaymentOwnerRef,
    PaymentSearchCriteria,
    PaymentStatistics,
    PaymentTransactionDraft,
    PaymentTransactionRecord,
    StatusBreakdown,
)
from license_billing.services.base import BaseService
from license_billing.services.billing.billing_cycle_service import BillingCycleService
from license_billing.services.billing.license_adjustment_service import LicenseAdjustmentService
from license_billing.services.billing.reconciliation_validator import ReconciliationValidator
from license_billing.services.billing.transitions import (
    ADJUSTMENT_PAYMENT_TRANSITIONS,
    BILLING_CYCLE_TRANSITIONS,
    PAYMENT_TRANSACTION_TRANSITIONS,
    transition_record,
)
from license_billing.utils.date_utils import now_utc, to_naive_utc
from license_billing.utils.money import ZERO, percentage, round2
from license_billing.utils.reference_generator import RandomReferenceGenerator, ReferenceGenerator

Owner = Union[BillingCycleRecord, LicenseAdjustmentRecord]

MAX_FAILURE_REASON_LENGTH = 500


class PaymentTransactionService(BaseService):
    """Payment attempt lifecycle and its effect on the owning record."""

    def __init__(
        self,
        db_session: Session,
        billing_cycles: BillingCycleService,
        adjustments: LicenseAdjustmentService,
        generator: Optional[ReferenceGenerator] = None,
        transactions: Optional[PaymentTransactionRepository] = None,
        payment_methods: Optional[PaymentMethodRepository] = None,
        validator: Optional[ReconciliationValidator] = None,
        settings: Optional[BillingSettings] = None,
    ):
        super().__init__(db_session, settings)
        self.billing_cycles = billing_cycles
        self.adjustments = adjustments
        self.generator = generator or RandomReferenceGenerator()
        self.transactions = transactions or PaymentTransactionRepository(db_session, self.settings)
        self.payment_methods = payment_methods or PaymentMethodRepository(db_session, self.settings)
        self.validator = validator or ReconciliationValidator(self.settings)

    # -------------------------------------------------------------------------
    # Owners
    # -------------------------------------------------------------------------

    def _owner(self, owner: PaymentOwnerRef) -> Owner:
        if owner.owner_type == PaymentOwnerType.BILLING_CYCLE:
            return self.billing_cycles.get(owner.owner_id)
        return self.adjustments.get(owner.owner_id)

    @staticmethod
    def _owner_accepts_payment(owner: PaymentOwnerRef, record: Owner) -> bool:
        if owner.owner_type == PaymentOwnerType.BILLING_CYCLE:
            status = record.billing_status
            return status != BillingStatus.PAID and not BILLING_CYCLE_TRANSITIONS.is_terminal(status)
        status = record.payment_status
        return status != AdjustmentPaymentStatus.PAID and not ADJUSTMENT_PAYMENT_TRANSITIONS.is_terminal(status)

    def _record_owner_payment(self, owner: PaymentOwnerRef, completed_at: datetime) -> Owner:
        if owner.owner_type == PaymentOwnerType.BILLING_CYCLE:
            return self.billing_cycles.record_payment(owner.owner_id, completed_at)
        return self.adjustments.record_payment(owner.owner_id, completed_at)

    def _record_owner_refund(self, owner: PaymentOwnerRef) -> Owner:
        if owner.owner_type == PaymentOwnerType.BILLING_CYCLE:
            return self.billing_cycles.record_refund(owner.owner_id)
        return self.adjustments.record_refund(owner.owner_id)

    # -------------------------------------------------------------------------
    # Initiation
    # -------------------------------------------------------------------------

    @log_execution_time()
    def initiate(self, initiation: PaymentInitiation) -> PaymentTransactionRecord:
        """
        Open a payment attempt for a cycle or adjustment.

        Raises:
            ResourceNotFoundError: unknown owner or payment method
            StateError: owner already paid, cancelled or refunded
            ValidationError: method inactive, or it rejects the currency
                or the amount
            AlreadyExistsError: duplicate payment reference or GUID
        """
        owner_ref = initiation.owner
        owner = self._owner(owner_ref)
        if not self._owner_accepts_payment(owner_ref, owner) or self.transactions.exists_for_owner(
            owner_ref, [PaymentTransactionStatus.COMPLETED]
        ):
            raise StateError(
                f"{owner_ref.owner_type.value} {owner_ref.owner_id} cannot accept a new payment",
                details={"owner_type": owner_ref.owner_type.value, "owner_id": owner_ref.owner_id},
            )

        method = self.payment_methods.find_by_id(initiation.payment_method_id)
        if method is None:
            raise ResourceNotFoundError("PaymentMethod", initiation.payment_method_id)
        if not method.is_active:
            raise ValidationError(
                f"Payment method {method.code} is inactive",
                field_errors={"payment_method_id": ["inactive"]},
            )
        if not method.accepts_currency(owner.billing_currency_code):
            raise ValidationError(
                f"Payment method {method.code} does not support {owner.billing_currency_code}",
                field_errors={"currency_code": [owner.billing_currency_code]},
            )
        if not method.accepts_amount(owner.total_amount_usd):
            raise ValidationError(
                f"Amount {owner.total_amount_usd} is outside the limits of {method.code}",
                field_errors={"amount_usd": [str(owner.total_amount_usd)]},
            )

        draft = build(
            PaymentTransactionDraft,
            "Invalid payment transaction",
            guid=self.generator.next_guid(),
            billing_cycle_id=owner.id if owner_ref.owner_type == PaymentOwnerType.BILLING_CYCLE else None,
            adjustment_id=owner.id if owner_ref.owner_type == PaymentOwnerType.ADJUSTMENT else None,
            payment_method_id=method.id,
            amount_usd=owner.total_amount_usd,
            amount_local=owner.total_amount_local,
            currency_code=owner.billing_currency_code,
            exchange_rate_used=owner.exchange_rate_used,
            payment_reference=initiation.payment_reference or self.generator.next_payment_reference(),
            initiated_at=to_naive_utc(initiation.initiated_at) or now_utc(),
        )
        self.validator.validate_payment_transaction(draft, owner)

        with self.transaction(owner_type=owner_ref.owner_type.value, owner_id=owner_ref.owner_id):
            stored = self.transactions.insert(draft)

        self._log_operation(
            "initiate_payment",
            stored.id,
            {
                "payment_reference": stored.payment_reference,
                "owner_type": owner_ref.owner_type.value,
                "owner_id": owner_ref.owner_id,
                "amount_usd": str(stored.amount_usd),
                "currency_code": stored.currency_code,
            },
        )
        return stored

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def get(self, transaction_id: int) -> PaymentTransactionRecord:
        record = self.transactions.find_by_id(transaction_id)
        if record is None:
            raise ResourceNotFoundError("PaymentTransaction", transaction_id)
        return record

    def get_by_reference(self, payment_reference: str) -> PaymentTransactionRecord:
        record = self.transactions.find_by_reference(payment_reference)
        if record is None:
            raise ResourceNotFoundError("PaymentTransaction", payment_reference)
        return record

    def apply_transition(
        self,
        record: PaymentTransactionRecord,
        target: PaymentTransactionStatus,
        values=None,
    ) -> PaymentTransactionRecord:
        """
        Move ``record`` (as it was read) to ``target`` in the current unit
        of work. A concurrent writer that got there first makes this fail
        with the error matching the row's new status.
        """
        updated = transition_record(
            self.transactions,
            PAYMENT_TRANSACTION_TRANSITIONS,
            "transaction_status",
            record,
            target,
            values,
            validate=self.validator.validate_payment_transaction,
        )
        self._log_operation(
            "payment_status_changed",
            record.id,
            {
                "payment_reference": record.payment_reference,
                "from_status": record.transaction_status.value,
                "to_status": target.value,
            },
        )
        return updated

    def start_processing(self, transaction_id: int, started_at: Optional[datetime] = None) -> PaymentTransactionRecord:
        started_at = to_naive_utc(started_at) or now_utc()
        with self.transaction(payment_transaction_id=transaction_id):
            return self.apply_transition(
                self.get(transaction_id),
                PaymentTransactionStatus.PROCESSING,
                {"processing_started_at": started_at},
            )

    def complete(self, transaction_id: int, completed_at: Optional[datetime] = None) -> PaymentTransactionRecord:
        """
        Complete a processing transaction and mark its owner paid, as one
        unit of work.

        Raises:
            InvalidStatusTransitionError: not PROCESSING
            TransactionAlreadyFinalError: already final
            DateSequenceInvalidError: completion precedes initiation, or
                the owner was not invoiced before the completion time
        """
        completed_at = to_naive_utc(completed_at) or now_utc()
        with self.transaction(payment_transaction_id=transaction_id):
            record = self.get(transaction_id)
            updated = self.apply_transition(
                record,
                PaymentTransactionStatus.COMPLETED,
                {"completed_at": completed_at},
            )
            self._record_owner_payment(record.owner, completed_at)
            return updated

    def fail(self, transaction_id: int, reason: str, failed_at: Optional[datetime] = None) -> PaymentTransactionRecord:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError(
                "A failure reason is required",
                field_errors={"failure_reason": ["required"]},
            )
        if len(reason) > MAX_FAILURE_REASON_LENGTH:
            raise ValidationError(
                "Failure reason is too long",
                field_errors={"failure_reason": [f"at most {MAX_FAILURE_REASON_LENGTH} characters"]},
            )

        failed_at = to_naive_utc(failed_at) or now_utc()
        with self.transaction(payment_transaction_id=transaction_id):
            return self.apply_transition(
                self.get(transaction_id),
                PaymentTransactionStatus.FAILED,
                {"failed_at": failed_at, "failure_reason": reason},
            )

    def cancel(self, transaction_id: int, cancelled_at: Optional[datetime] = None) -> PaymentTransactionRecord:
        cancelled_at = to_naive_utc(cancelled_at) or now_utc()
        with self.transaction(payment_transaction_id=transaction_id):
            return self.apply_transition(
                self.get(transaction_id),
                PaymentTransactionStatus.CANCELLED,
                {"cancelled_at": cancelled_at},
            )

    def refund(self, transaction_id: int, refunded_at: Optional[datetime] = None) -> PaymentTransactionRecord:
        """Refund a completed transaction; the owner becomes REFUNDED."""
        refunded_at = to_naive_utc(refunded_at) or now_utc()
        with self.transaction(payment_transaction_id=transaction_id):
            record = self.get(transaction_id)
            updated = self.apply_transition(
                record,
                PaymentTransactionStatus.REFUNDED,
                {"refunded_at": refunded_at},
            )
            self._record_owner_refund(record.owner)
            return updated

    def settle(self, transaction_id: int, completed_at: Optional[datetime] = None) -> PaymentTransactionRecord:
        """PENDING -> PROCESSING -> COMPLETED for synchronous payment methods."""
        completed_at = to_naive_utc(completed_at) or now_utc()
        self.start_processing(transaction_id, completed_at)
        return self.complete(transaction_id, completed_at)

    def is_final(self, transaction_id: int) -> bool:
        return PAYMENT_TRANSACTION_TRANSITIONS.is_terminal(self.get(transaction_id).transaction_status)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_for_owner(self, owner: PaymentOwnerRef, offset: int = 0, limit: Optional[int] = None) -> List[PaymentTransactionRecord]:
        return self.transactions.list_for_owner(owner, offset, limit)

    def search(
        self,
        criteria: PaymentSearchCriteria,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[PaymentTransactionRecord]:
        return self.transactions.search(criteria, offset, limit)

    def statistics(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> PaymentStatistics:
        """Counts and USD totals per status for transactions initiated in the window."""
        by_status = {status: StatusBreakdown() for status in PaymentTransactionStatus}
        for status, count, total in self.transactions.totals_by_status(to_naive_utc(start), to_naive_utc(end)):
            by_status[status] = StatusBreakdown(count=count, total_amount_usd=round2(total))

        total_count = sum(b.count for b in by_status.values())
        total_amount = round2(sum((b.total_amount_usd for b in by_status.values()), Decimal(0)))
        average = round2(total_amount / total_count) if total_count else ZERO
        completed = by_status[PaymentTransactionStatus.COMPLETED].count

        return PaymentStatistics(
            total_count=total_count,
            by_status=by_status,
            total_amount_usd=total_amount,
            average_amount_usd=average,
            success_rate=percentage(completed, total_count),
        )
