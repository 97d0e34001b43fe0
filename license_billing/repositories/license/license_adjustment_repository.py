"""
License adjustment repository.
"""

from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.models.base.enums import AdjustmentPaymentStatus
from license_billing.models.license.license_adjustment import LicenseAdjustment
from license_billing.repositories.base.base_repository import BaseRepository
from license_billing.schemas.adjustment import CurrencyTotals, LicenseAdjustmentRecord


class LicenseAdjustmentRepository(BaseRepository[LicenseAdjustment, LicenseAdjustmentRecord]):
    schema = LicenseAdjustmentRecord
    json_fields = frozenset({"tax_rules_applied"})
    mutable_fields = frozenset({"payment_status", "invoice_sent_at", "payment_completed_at"})

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(LicenseAdjustment, db, settings)

    def list_for_license(
        self,
        license_id: int,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[LicenseAdjustmentRecord]:
        return self.list(
            {"global_license_id": license_id},
            offset,
            limit,
            order_by=[LicenseAdjustment.adjustment_date, LicenseAdjustment.id],
        )

    def list_in_period(
        self,
        license_id: int,
        period_start: date,
        period_end: Optional[date] = None,
        exclude_statuses: Iterable[AdjustmentPaymentStatus] = (AdjustmentPaymentStatus.CANCELLED,),
    ) -> List[LicenseAdjustmentRecord]:
        """
        Adjustments effective within the half-open period [start, end).

        Consecutive periods share their boundary day, which belongs to the
        later one. Without ``period_end`` every adjustment from
        ``period_start`` on is returned.
        """
        stmt = self._select().where(
            LicenseAdjustment.global_license_id == license_id,
            LicenseAdjustment.adjustment_date >= period_start,
        )
        if period_end is not None:
            stmt = stmt.where(LicenseAdjustment.adjustment_date < period_end)
        excluded = list(exclude_statuses)
        if excluded:
            stmt = stmt.where(LicenseAdjustment.payment_status.not_in(excluded))
        stmt = stmt.order_by(LicenseAdjustment.adjustment_date, LicenseAdjustment.id)
        return self._all(stmt)

    def list_by_status(
        self,
        statuses: Iterable[AdjustmentPaymentStatus],
        license_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[LicenseAdjustmentRecord]:
        filters = {"payment_status": tuple(statuses)}
        if license_id is not None:
            filters["global_license_id"] = license_id
        return self.list(filters, offset, limit, order_by=[LicenseAdjustment.adjustment_date, LicenseAdjustment.id])

    def totals_by_currency(
        self,
        statuses: Iterable[AdjustmentPaymentStatus],
        license_id: Optional[int] = None,
    ) -> List[CurrencyTotals]:
        stmt = select(
            LicenseAdjustment.billing_currency_code,
            func.count(LicenseAdjustment.id),
            func.coalesce(func.sum(LicenseAdjustment.total_amount_usd), 0),
            func.coalesce(func.sum(LicenseAdjustment.total_amount_local), 0),
        ).where(LicenseAdjustment.payment_status.in_(list(statuses)))
        if license_id is not None:
            stmt = stmt.where(LicenseAdjustment.global_license_id == license_id)
        stmt = stmt.group_by(LicenseAdjustment.billing_currency_code).order_by(
            LicenseAdjustment.billing_currency_code
        )

        return [
            CurrencyTotals(
                currency_code=code,
                count=count,
                total_amount_usd=total_usd,
                total_amount_local=total_local,
            )
            for code, count, total_usd, total_local in self.db.execute(stmt).all()
        ]
