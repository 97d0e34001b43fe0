"""
Billing cycle service.

Aggregates the base subscription charge and the period's adjustments
into one invoice, then drives the invoice through its billing status.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.core.exceptions import (
    AlreadyExistsError,
    DateSequenceInvalidError,
    ResourceNotFoundError,
)
from license_billing.core.logging import log_execution_time
from license_billing.models.base.enums import BillingStatus
from license_billing.repositories.license import (
    BillingCycleRepository,
    GlobalLicenseRepository,
    LicenseAdjustmentRepository,
)
from license_billing.schemas.base import build
from license_billing.schemas.billing_cycle import BillingCycleDraft, BillingCycleRecord, BillingCycleRequest
from license_billing.services.base import BaseService
from license_billing.services.billing.currency_projector import CurrencyProjector
from license_billing.services.billing.proration_engine import ProrationEngine
from license_billing.services.billing.rate_snapshot_service import RateSnapshotService
from license_billing.services.billing.reconciliation_validator import ReconciliationValidator
from license_billing.services.billing.tax_applier import TaxApplier
from license_billing.services.billing.transitions import BILLING_CYCLE_TRANSITIONS, transition_record
from license_billing.utils.date_utils import now_utc, to_naive_utc, today_utc
from license_billing.utils.money import round2
from license_billing.utils.reference_generator import RandomReferenceGenerator, ReferenceGenerator


class BillingCycleService(BaseService):
    """Invoice generation and lifecycle for license billing periods."""

    def __init__(
        self,
        db_session: Session,
        rate_snapshots: RateSnapshotService,
        generator: Optional[ReferenceGenerator] = None,
        cycles: Optional[BillingCycleRepository] = None,
        adjustments: Optional[LicenseAdjustmentRepository] = None,
        licenses: Optional[GlobalLicenseRepository] = None,
        validator: Optional[ReconciliationValidator] = None,
        settings: Optional[BillingSettings] = None,
    ):
        super().__init__(db_session, settings)
        self.rate_snapshots = rate_snapshots
        self.generator = generator or RandomReferenceGenerator()
        self.cycles = cycles or BillingCycleRepository(db_session, self.settings)
        self.adjustments = adjustments or LicenseAdjustmentRepository(db_session, self.settings)
        self.licenses = licenses or GlobalLicenseRepository(db_session, self.settings)
        self.validator = validator or ReconciliationValidator(self.settings)
        self.proration = ProrationEngine()
        self.tax_applier = TaxApplier()
        self.projector = CurrencyProjector(self.validator)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    @log_execution_time()
    def generate_cycle(self, request: BillingCycleRequest) -> BillingCycleRecord:
        """
        Build and persist the invoice of one billing period.

        base = max(seats held on period_start, minimum seats) x billable
        months x base price; adjustments = signed sum of the totals of the
        non-cancelled adjustments dated in [period_start, period_end); tax
        and currency projection apply to their sum.

        Raises:
            ResourceNotFoundError: unknown license, currency or rate
            AlreadyExistsError: a cycle already exists for the period
            DateSequenceInvalidError: inverted period or early due date
            ValidationError / TaxRuleInvalidError / CalculationError
        """
        license = self.licenses.find_view(request.global_license_id)
        if license is None:
            raise ResourceNotFoundError("GlobalLicense", request.global_license_id)

        period_start = request.period_start or license.current_period_start
        period_end = request.period_end or license.current_period_end
        self.validator.check_after("period_start", period_start, "period_end", period_end)
        payment_due_date = request.payment_due_date or period_end + timedelta(days=self.settings.PAYMENT_DUE_DAYS)
        self.validator.check_not_before("period_end", period_end, "payment_due_date", payment_due_date)

        overlapping = self.cycles.list_overlapping(license.id, period_start, period_end)
        if overlapping:
            raise AlreadyExistsError(
                "BillingCycle",
                {
                    "global_license_id": license.id,
                    "period_start": period_start.isoformat(),
                    "overlapping_ids": [cycle.id for cycle in overlapping],
                },
            )

        # total_seats_purchased already counts every adjustment; the base
        # charge covers the seats held on period_start
        since_start = self.adjustments.list_in_period(license.id, period_start)
        adjustments = [a for a in since_start if a.adjustment_date < period_end]
        seats_at_start = license.total_seats_purchased - sum(a.signed_seat_delta for a in since_start)
        base_employee_count = max(seats_at_start, license.minimum_seats)

        months = min(
            Decimal(license.billing_cycle_months),
            self.proration.months_between(period_start, period_end),
        )
        base_amount = self.proration.prorate(base_employee_count, months, license.base_price_usd)

        adjustments_amount = round2(sum((a.signed_total_usd for a in adjustments), Decimal(0)))
        final_employee_count = base_employee_count + sum(a.signed_seat_delta for a in adjustments)

        computed_at = to_naive_utc(request.computed_at) or now_utc()
        snapshot = self.rate_snapshots.snapshot(request.billing_currency_code, request.jurisdiction, computed_at)

        subtotal = round2(base_amount + adjustments_amount)
        tax = self.tax_applier.apply(subtotal, snapshot.tax)
        tax_amount, total, rules = tax.tax_amount_usd, tax.total_amount_usd, tax.tax_rules_applied

        projection = self.projector.project(
            {
                "base_amount": base_amount,
                "adjustments_amount": adjustments_amount,
                "subtotal": subtotal,
                "tax_amount": tax_amount,
                "total_amount": total,
            },
            snapshot.exchange_rate,
        )

        draft = build(
            BillingCycleDraft,
            "Invalid billing cycle",
            guid=self.generator.next_guid(),
            global_license_id=license.id,
            period_start=period_start,
            period_end=period_end,
            payment_due_date=payment_due_date,
            base_employee_count=base_employee_count,
            final_employee_count=final_employee_count,
            base_amount_usd=base_amount,
            adjustments_amount_usd=adjustments_amount,
            subtotal_usd=subtotal,
            tax_amount_usd=tax_amount,
            total_amount_usd=total,
            billing_currency_code=projection.currency_code,
            exchange_rate_used=projection.exchange_rate_used,
            tax_jurisdiction=snapshot.tax.jurisdiction,
            tax_rules_applied=rules,
            **projection.local_fields(),
        )
        self.validator.validate_billing_cycle(draft)

        with self.transaction(global_license_id=license.id):
            stored = self.cycles.insert(draft)

        self._log_operation(
            "generate_cycle",
            stored.id,
            {
                "global_license_id": license.id,
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "adjustment_count": len(adjustments),
                "total_amount_usd": str(stored.total_amount_usd),
                "currency_code": stored.billing_currency_code,
            },
        )
        return stored

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def get(self, cycle_id: int) -> BillingCycleRecord:
        record = self.cycles.find_by_id(cycle_id)
        if record is None:
            raise ResourceNotFoundError("BillingCycle", cycle_id)
        return record

    def _transition(self, record: BillingCycleRecord, target: BillingStatus, values=None) -> BillingCycleRecord:
        updated = transition_record(
            self.cycles,
            BILLING_CYCLE_TRANSITIONS,
            "billing_status",
            record,
            target,
            values,
            validate=self.validator.validate_billing_cycle,
        )
        self._log_operation(
            "billing_cycle_status_changed",
            record.id,
            {"from_status": record.billing_status.value, "to_status": target.value},
        )
        return updated

    def mark_invoiced(self, cycle_id: int, sent_at: Optional[datetime] = None) -> BillingCycleRecord:
        sent_at = to_naive_utc(sent_at) or now_utc()
        with self.transaction(billing_cycle_id=cycle_id):
            return self._transition(self.get(cycle_id), BillingStatus.INVOICED, {"invoice_sent_at": sent_at})

    def mark_overdue(self, cycle_id: int, as_of: Optional[date] = None) -> BillingCycleRecord:
        """Flag an invoiced cycle whose due date has passed."""
        as_of = as_of or today_utc()
        record = self.get(cycle_id)
        if not record.payment_due_date < as_of:
            raise DateSequenceInvalidError("payment_due_date", record.payment_due_date, "as_of", as_of)
        with self.transaction(billing_cycle_id=cycle_id):
            return self._transition(record, BillingStatus.OVERDUE)

    def cancel(self, cycle_id: int) -> BillingCycleRecord:
        with self.transaction(billing_cycle_id=cycle_id):
            return self._transition(self.get(cycle_id), BillingStatus.CANCELLED)

    def record_payment(self, cycle_id: int, completed_at: datetime) -> BillingCycleRecord:
        """Mark the cycle paid inside the caller's unit of work."""
        record = self.get(cycle_id)
        self.validator.check_settlement_sequence("period_end", record.period_end, record.invoice_sent_at, completed_at)
        return self._transition(record, BillingStatus.PAID, {"payment_completed_at": completed_at})

    def record_refund(self, cycle_id: int) -> BillingCycleRecord:
        return self._transition(self.get(cycle_id), BillingStatus.REFUNDED)

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def list_for_license(self, license_id: int, offset: int = 0, limit: Optional[int] = None) -> List[BillingCycleRecord]:
        return self.cycles.list_for_license(license_id, offset, limit)

    def list_overdue(self, today: Optional[date] = None, offset: int = 0, limit: Optional[int] = None) -> List[BillingCycleRecord]:
        return self.cycles.list_overdue(today or today_utc(), offset, limit)

    def list_due_soon(
        self,
        days: Optional[int] = None,
        today: Optional[date] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[BillingCycleRecord]:
        days = self.settings.DUE_SOON_DAYS if days is None else days
        return self.cycles.list_due_soon(today or today_utc(), days, offset, limit)

    def list_pending_invoice(self, offset: int = 0, limit: Optional[int] = None) -> List[BillingCycleRecord]:
        return self.cycles.list_by_status([BillingStatus.PENDING], offset, limit)
