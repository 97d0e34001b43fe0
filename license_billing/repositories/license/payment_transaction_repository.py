"""
Payment transaction repository.

Only status columns and their timestamps are mutable; amounts, currency
and rate are written once by ``insert``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.models.base.enums import PaymentOwnerType, PaymentTransactionStatus
from license_billing.models.license.payment_transaction import PaymentTransaction
from license_billing.repositories.base.base_repository import BaseRepository
from license_billing.schemas.payment_transaction import (
    PaymentOwnerRef,
    PaymentSearchCriteria,
    PaymentTransactionRecord,
)


class PaymentTransactionRepository(BaseRepository[PaymentTransaction, PaymentTransactionRecord]):
    schema = PaymentTransactionRecord
    mutable_fields = frozenset({
        "transaction_status",
        "processing_started_at",
        "completed_at",
        "failed_at",
        "cancelled_at",
        "refunded_at",
        "failure_reason",
    })

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(PaymentTransaction, db, settings)

    @staticmethod
    def _owner_filter(owner: PaymentOwnerRef) -> Dict[str, int]:
        if owner.owner_type == PaymentOwnerType.BILLING_CYCLE:
            return {"billing_cycle_id": owner.owner_id}
        return {"adjustment_id": owner.owner_id}

    def find_by_reference(self, payment_reference: str) -> Optional[PaymentTransactionRecord]:
        return self.find_one_by(payment_reference=payment_reference)

    def list_for_owner(
        self,
        owner: PaymentOwnerRef,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[PaymentTransactionRecord]:
        return self.list(self._owner_filter(owner), offset, limit, order_by=[PaymentTransaction.initiated_at, PaymentTransaction.id])

    def exists_for_owner(self, owner: PaymentOwnerRef, statuses: Iterable[PaymentTransactionStatus]) -> bool:
        filters = dict(self._owner_filter(owner))
        filters["transaction_status"] = tuple(statuses)
        return self.count(filters) > 0

    def search(
        self,
        criteria: PaymentSearchCriteria,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[PaymentTransactionRecord]:
        stmt = self._select()
        if criteria.status is not None:
            stmt = stmt.where(PaymentTransaction.transaction_status == criteria.status)
        if criteria.payment_method_id is not None:
            stmt = stmt.where(PaymentTransaction.payment_method_id == criteria.payment_method_id)
        if criteria.currency_code:
            stmt = stmt.where(PaymentTransaction.currency_code == criteria.currency_code)
        if criteria.min_amount_usd is not None:
            stmt = stmt.where(PaymentTransaction.amount_usd >= criteria.min_amount_usd)
        if criteria.max_amount_usd is not None:
            stmt = stmt.where(PaymentTransaction.amount_usd <= criteria.max_amount_usd)
        if criteria.initiated_from is not None:
            stmt = stmt.where(PaymentTransaction.initiated_at >= criteria.initiated_from)
        if criteria.initiated_to is not None:
            stmt = stmt.where(PaymentTransaction.initiated_at <= criteria.initiated_to)
        if criteria.payment_reference:
            stmt = stmt.where(PaymentTransaction.payment_reference.contains(criteria.payment_reference))
        if criteria.billing_cycle_id is not None:
            stmt = stmt.where(PaymentTransaction.billing_cycle_id == criteria.billing_cycle_id)
        if criteria.adjustment_id is not None:
            stmt = stmt.where(PaymentTransaction.adjustment_id == criteria.adjustment_id)

        return self._paginate(
            stmt,
            offset,
            limit,
            [PaymentTransaction.initiated_at.desc(), PaymentTransaction.id.desc()],
        )

    def totals_by_status(
        self,
        initiated_from: Optional[datetime] = None,
        initiated_to: Optional[datetime] = None,
    ) -> List[Tuple[PaymentTransactionStatus, int, Decimal]]:
        stmt = select(
            PaymentTransaction.transaction_status,
            func.count(PaymentTransaction.id),
            func.coalesce(func.sum(PaymentTransaction.amount_usd), 0),
        )
        if initiated_from is not None:
            stmt = stmt.where(PaymentTransaction.initiated_at >= initiated_from)
        if initiated_to is not None:
            stmt = stmt.where(PaymentTransaction.initiated_at <= initiated_to)
        stmt = stmt.group_by(PaymentTransaction.transaction_status)

        return [
            (status, int(count), Decimal(str(total)))
            for status, count, total in self.db.execute(stmt).all()
        ]
