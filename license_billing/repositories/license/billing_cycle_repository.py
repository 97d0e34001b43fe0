"""
Billing cycle repository.
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.models.base.enums import BillingStatus
from license_billing.models.license.billing_cycle import BillingCycle
from license_billing.repositories.base.base_repository import BaseRepository
from license_billing.schemas.billing_cycle import BillingCycleRecord

UNPAID_STATUSES = (BillingStatus.PENDING, BillingStatus.INVOICED, BillingStatus.OVERDUE)


class BillingCycleRepository(BaseRepository[BillingCycle, BillingCycleRecord]):
    schema = BillingCycleRecord
    json_fields = frozenset({"tax_rules_applied"})
    mutable_fields = frozenset({"billing_status", "invoice_sent_at", "payment_completed_at"})

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(BillingCycle, db, settings)

    def list_overlapping(self, license_id: int, period_start: date, period_end: date) -> List[BillingCycleRecord]:
        """Cycles of the license sharing more than a boundary day with the period."""
        stmt = self._select().where(
            BillingCycle.global_license_id == license_id,
            BillingCycle.period_start < period_end,
            BillingCycle.period_end > period_start,
        ).order_by(BillingCycle.period_start, BillingCycle.id)
        return self._all(stmt)

    def list_for_license(
        self,
        license_id: int,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[BillingCycleRecord]:
        return self.list(
            {"global_license_id": license_id},
            offset,
            limit,
            order_by=[BillingCycle.period_start.desc(), BillingCycle.id],
        )

    def list_by_status(
        self,
        statuses: Iterable[BillingStatus],
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[BillingCycleRecord]:
        return self.list({"billing_status": tuple(statuses)}, offset, limit)

    def list_overdue(self, today: date, offset: int = 0, limit: Optional[int] = None) -> List[BillingCycleRecord]:
        """Unpaid cycles whose due date has passed."""
        stmt = self._select().where(
            BillingCycle.billing_status.in_(UNPAID_STATUSES),
            BillingCycle.payment_due_date < today,
        )
        return self._paginate(stmt, offset, limit, [BillingCycle.payment_due_date, BillingCycle.id])

    def list_due_soon(
        self,
        today: date,
        days: int,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[BillingCycleRecord]:
        stmt = self._select().where(
            BillingCycle.billing_status.in_((BillingStatus.PENDING, BillingStatus.INVOICED)),
            BillingCycle.payment_due_date >= today,
            BillingCycle.payment_due_date <= today + timedelta(days=days),
        )
        return self._paginate(stmt, offset, limit, [BillingCycle.payment_due_date, BillingCycle.id])
