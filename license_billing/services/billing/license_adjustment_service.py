"""
License adjustment service.

Creates mid-cycle seat adjustments (proration, tax, currency projection,
validation, single insert) and drives their payment status. Money fields
are never touched after the insert.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.core.exceptions import DateSequenceInvalidError, ResourceNotFoundError, StateError
from license_billing.core.logging import log_execution_time
from license_billing.models.base.enums import AdjustmentPaymentStatus, LicenseStatus
from license_billing.repositories.license import GlobalLicenseRepository, LicenseAdjustmentRepository
from license_billing.schemas.adjustment import (
    AdjustmentOutcome,
    CurrencyTotals,
    LicenseAdjustmentDraft,
    LicenseAdjustmentRecord,
    LicenseAdjustmentRequest,
)
from license_billing.schemas.base import build
from license_billing.services.base import BaseService
from license_billing.services.billing.currency_projector import CurrencyProjector
from license_billing.services.billing.proration_engine import ProrationEngine
from license_billing.services.billing.rate_snapshot_service import RateSnapshotService
from license_billing.services.billing.reconciliation_validator import ReconciliationValidator
from license_billing.services.billing.tax_applier import TaxApplier
from license_billing.services.billing.transitions import ADJUSTMENT_PAYMENT_TRANSITIONS, transition_record
from license_billing.utils.date_utils import now_utc, to_naive_utc
from license_billing.utils.reference_generator import RandomReferenceGenerator, ReferenceGenerator


class LicenseAdjustmentService(BaseService):
    """Writer of license adjustments."""

    def __init__(
        self,
        db_session: Session,
        rate_snapshots: RateSnapshotService,
        generator: Optional[ReferenceGenerator] = None,
        adjustments: Optional[LicenseAdjustmentRepository] = None,
        licenses: Optional[GlobalLicenseRepository] = None,
        validator: Optional[ReconciliationValidator] = None,
        settings: Optional[BillingSettings] = None,
    ):
        super().__init__(db_session, settings)
        self.rate_snapshots = rate_snapshots
        self.generator = generator or RandomReferenceGenerator()
        self.adjustments = adjustments or LicenseAdjustmentRepository(db_session, self.settings)
        self.licenses = licenses or GlobalLicenseRepository(db_session, self.settings)
        self.validator = validator or ReconciliationValidator(self.settings)
        self.proration = ProrationEngine()
        self.tax_applier = TaxApplier()
        self.projector = CurrencyProjector(self.validator)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    @log_execution_time()
    def create_adjustment(self, request: LicenseAdjustmentRequest) -> AdjustmentOutcome:
        """
        Price and persist a seat change.

        Args:
            request: License, seat count, effective date and billing context.
                Price defaults to the license base price and months to the
                time left in the current period.

        Returns:
            The stored adjustment and a fresh read of the license

        Raises:
            ResourceNotFoundError: unknown license, currency or rate
            StateError: license is not active
            DateSequenceInvalidError: date outside the current period
            ValidationError / TaxRuleInvalidError / CalculationError
        """
        license = self.licenses.find_view(request.global_license_id)
        if license is None:
            raise ResourceNotFoundError("GlobalLicense", request.global_license_id)
        if license.license_status != LicenseStatus.ACTIVE:
            raise StateError(
                f"License {license.id} is not active",
                details={"license_status": license.license_status.value},
            )

        if request.adjustment_date < license.current_period_start:
            raise DateSequenceInvalidError(
                "current_period_start", license.current_period_start,
                "adjustment_date", request.adjustment_date,
            )
        if request.adjustment_date > license.current_period_end:
            raise DateSequenceInvalidError(
                "adjustment_date", request.adjustment_date,
                "current_period_end", license.current_period_end,
            )

        months = request.months_remaining
        if months is None:
            months = self.proration.months_between(request.adjustment_date, license.current_period_end)
        price = request.price_per_employee_usd
        if price is None:
            price = license.base_price_usd

        subtotal = self.proration.prorate(request.employees_added_count, months, price)

        computed_at = to_naive_utc(request.computed_at) or now_utc()
        snapshot = self.rate_snapshots.snapshot(request.billing_currency_code, request.jurisdiction, computed_at)
        tax = self.tax_applier.apply(subtotal, snapshot.tax)
        projection = self.projector.project(
            {
                "subtotal": tax.subtotal_usd,
                "tax_amount": tax.tax_amount_usd,
                "total_amount": tax.total_amount_usd,
            },
            snapshot.exchange_rate,
        )

        draft = build(
            LicenseAdjustmentDraft,
            "Invalid license adjustment",
            guid=self.generator.next_guid(),
            global_license_id=license.id,
            adjustment_kind=request.kind,
            adjustment_date=request.adjustment_date,
            employees_added_count=request.employees_added_count,
            months_remaining=months,
            price_per_employee_usd=price,
            subtotal_usd=tax.subtotal_usd,
            tax_amount_usd=tax.tax_amount_usd,
            total_amount_usd=tax.total_amount_usd,
            billing_currency_code=projection.currency_code,
            exchange_rate_used=projection.exchange_rate_used,
            tax_jurisdiction=snapshot.tax.jurisdiction,
            tax_rules_applied=tax.tax_rules_applied,
            **projection.local_fields(),
        )
        self.validator.validate_adjustment(draft)

        with self.transaction(global_license_id=draft.global_license_id):
            stored = self.adjustments.insert(draft)

        self._log_operation(
            "create_adjustment",
            stored.id,
            {
                "global_license_id": license.id,
                "adjustment_kind": stored.adjustment_kind.value,
                "employees_added_count": stored.employees_added_count,
                "total_amount_usd": str(stored.total_amount_usd),
                "currency_code": stored.billing_currency_code,
            },
        )

        # store-computed seat totals may have moved
        return AdjustmentOutcome(adjustment=stored, license=self.licenses.find_view(license.id))

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def get(self, adjustment_id: int) -> LicenseAdjustmentRecord:
        record = self.adjustments.find_by_id(adjustment_id)
        if record is None:
            raise ResourceNotFoundError("LicenseAdjustment", adjustment_id)
        return record

    def _transition(self, record: LicenseAdjustmentRecord, target: AdjustmentPaymentStatus, values=None):
        updated = transition_record(
            self.adjustments,
            ADJUSTMENT_PAYMENT_TRANSITIONS,
            "payment_status",
            record,
            target,
            values,
            validate=self.validator.validate_adjustment,
        )
        self._log_operation(
            "adjustment_status_changed",
            record.id,
            {"from_status": record.payment_status.value, "to_status": target.value},
        )
        return updated

    def mark_invoice_sent(self, adjustment_id: int, sent_at: Optional[datetime] = None) -> LicenseAdjustmentRecord:
        sent_at = to_naive_utc(sent_at) or now_utc()
        with self.transaction(adjustment_id=adjustment_id):
            return self._transition(
                self.get(adjustment_id),
                AdjustmentPaymentStatus.INVOICED,
                {"invoice_sent_at": sent_at},
            )

    def cancel(self, adjustment_id: int) -> LicenseAdjustmentRecord:
        with self.transaction(adjustment_id=adjustment_id):
            return self._transition(self.get(adjustment_id), AdjustmentPaymentStatus.CANCELLED)

    def record_payment(self, adjustment_id: int, completed_at: datetime) -> LicenseAdjustmentRecord:
        """
        Mark the adjustment paid.

        Runs inside the caller's unit of work; the payment service commits.
        """
        record = self.get(adjustment_id)
        self.validator.check_settlement_sequence(
            "adjustment_date", record.adjustment_date, record.invoice_sent_at, completed_at
        )
        return self._transition(record, AdjustmentPaymentStatus.PAID, {"payment_completed_at": completed_at})

    def record_refund(self, adjustment_id: int) -> LicenseAdjustmentRecord:
        """Mark the adjustment refunded inside the caller's unit of work."""
        return self._transition(self.get(adjustment_id), AdjustmentPaymentStatus.REFUNDED)

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------

    def list_for_license(self, license_id: int, offset: int = 0, limit: Optional[int] = None) -> List[LicenseAdjustmentRecord]:
        return self.adjustments.list_for_license(license_id, offset, limit)

    def list_pending_payment(
        self,
        license_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[LicenseAdjustmentRecord]:
        """Adjustments not yet invoiced."""
        return self.adjustments.list_by_status([AdjustmentPaymentStatus.PENDING], license_id, offset, limit)

    def list_invoiced_unpaid(
        self,
        license_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[LicenseAdjustmentRecord]:
        return self.adjustments.list_by_status([AdjustmentPaymentStatus.INVOICED], license_id, offset, limit)

    def financial_summary(self, license_id: Optional[int] = None) -> Dict[str, List[CurrencyTotals]]:
        """Paid, outstanding and refunded totals grouped by billing currency."""
        return {
            "paid": self.adjustments.totals_by_currency([AdjustmentPaymentStatus.PAID], license_id),
            "outstanding": self.adjustments.totals_by_currency(
                [AdjustmentPaymentStatus.PENDING, AdjustmentPaymentStatus.INVOICED], license_id
            ),
            "refunded": self.adjustments.totals_by_currency([AdjustmentPaymentStatus.REFUNDED], license_id),
        }
