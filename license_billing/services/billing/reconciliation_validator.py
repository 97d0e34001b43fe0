"""
Reconciliation validator.

Stateless gate run by every writer immediately before a record is
persisted. Identities are re-derived from the record's own stored fields
and compared within the configured money tolerance; exchange rates are
compared exactly. All calculation errors of the engine are raised here.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Tuple, Union

from license_billing.core.config import BillingSettings, settings as app_settings
from license_billing.core.exceptions import (
    AmountCalculationError,
    AmountConsistencyError,
    DateSequenceInvalidError,
    StateError,
    TaxRuleInvalidError,
    TotalCalculationError,
    ValidationError,
)
from license_billing.core.logging import get_logger
from license_billing.models.base.enums import (
    AdjustmentPaymentStatus,
    BillingStatus,
    PaymentTransactionStatus,
)
from license_billing.models.license.global_license import BILLING_CYCLE_MONTHS
from license_billing.utils.date_utils import as_date
from license_billing.utils.money import decimal_places, round2, to_decimal, within_tolerance

logger = get_logger(__name__)

Moment = Union[date, datetime]

_INVOICED_ADJUSTMENT = {
    AdjustmentPaymentStatus.INVOICED,
    AdjustmentPaymentStatus.PAID,
    AdjustmentPaymentStatus.REFUNDED,
}
_SETTLED_ADJUSTMENT = {AdjustmentPaymentStatus.PAID, AdjustmentPaymentStatus.REFUNDED}

_INVOICED_CYCLE = {
    BillingStatus.INVOICED,
    BillingStatus.OVERDUE,
    BillingStatus.PAID,
    BillingStatus.REFUNDED,
}
_SETTLED_CYCLE = {BillingStatus.PAID, BillingStatus.REFUNDED}


class ReconciliationValidator:
    """Cross-field identity, date-order and status-consistency checks."""

    def __init__(self, settings: Optional[BillingSettings] = None):
        self.settings = settings or app_settings.billing
        self.tolerance = to_decimal(self.settings.AMOUNT_TOLERANCE)
        self.base_currency = self.settings.BASE_CURRENCY

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    def _differs(self, expected: Decimal, actual: Decimal) -> bool:
        return not within_tolerance(expected, actual, self.tolerance)

    def check_product(self, field: str, factors: Iterable[Decimal], stored: Decimal) -> None:
        """``stored`` must equal the product of ``factors`` within tolerance."""
        expected = Decimal(1)
        for factor in factors:
            expected *= to_decimal(factor)
        if self._differs(expected, stored):
            raise AmountCalculationError(field, round2(expected), stored)

    def check_sum(self, field: str, terms: Iterable[Decimal], stored: Decimal) -> None:
        expected = sum((to_decimal(t) for t in terms), Decimal(0))
        if self._differs(expected, stored):
            raise AmountCalculationError(field, expected, stored)

    def check_tax(self, subtotal: Decimal, rules: Iterable, stored_tax: Decimal, field: str = "tax_amount_usd") -> None:
        expected = Decimal(0)
        for rule in rules:
            rate = to_decimal(rule.rate)
            if rate < 0 or rate > 1 or decimal_places(rate) > 4:
                raise TaxRuleInvalidError(f"Stored tax rule '{rule.name}' has an invalid rate {rate}")
            expected += to_decimal(subtotal) * rate
        if self._differs(round2(expected), stored_tax):
            raise AmountCalculationError(field, round2(expected), stored_tax)

    def check_total(self, subtotal: Decimal, tax: Decimal, total: Decimal, field: str = "total_amount_usd") -> None:
        expected = to_decimal(subtotal) + to_decimal(tax)
        if self._differs(expected, total):
            raise TotalCalculationError(field, expected, total)

    def check_exchange_rate(self, currency_code: str, rate: Decimal) -> None:
        """Rate is positive, carries at most 6 decimals and is exactly 1 for the base currency."""
        rate = to_decimal(rate)
        if rate <= 0 or decimal_places(rate) > 6:
            raise ValidationError(
                "Exchange rate must be positive with at most 6 decimals",
                field_errors={"exchange_rate_used": [f"invalid rate {rate}"]},
            )
        if currency_code.upper() == self.base_currency and rate != Decimal(1):
            raise AmountConsistencyError("exchange_rate_used", Decimal("1.000000"), rate)

    def check_local_amounts(
        self,
        currency_code: str,
        rate: Decimal,
        pairs: Mapping[str, Tuple[Decimal, Decimal]],
    ) -> None:
        """
        Every ``name -> (usd, local)`` pair must satisfy
        ``|usd * rate - local| <= tolerance``.
        """
        self.check_exchange_rate(currency_code, rate)
        rate = to_decimal(rate)
        for name, (usd, local) in pairs.items():
            expected = to_decimal(usd) * rate
            if self._differs(expected, local):
                raise AmountConsistencyError(f"{name}_local", round2(expected), local)

    # ------------------------------------------------------------------
    # Date ordering
    # ------------------------------------------------------------------

    @staticmethod
    def check_not_before(earlier_field: str, earlier: Optional[Moment], later_field: str, later: Optional[Moment]) -> None:
        """``later`` must not precede ``earlier`` (skipped when either is unset)."""
        if earlier is None or later is None:
            return
        if isinstance(earlier, datetime) and isinstance(later, datetime):
            ordered = later >= earlier
        else:
            ordered = as_date(later) >= as_date(earlier)
        if not ordered:
            raise DateSequenceInvalidError(earlier_field, earlier, later_field, later)

    @staticmethod
    def check_after(earlier_field: str, earlier: date, later_field: str, later: date) -> None:
        if not later > earlier:
            raise DateSequenceInvalidError(earlier_field, earlier, later_field, later)

    def check_settlement_sequence(
        self,
        event_field: str,
        event: Moment,
        invoice_sent_at: Optional[datetime],
        payment_completed_at: Optional[datetime],
    ) -> None:
        """Billed event, then invoice, then payment."""
        if payment_completed_at is not None and invoice_sent_at is None:
            raise DateSequenceInvalidError("invoice_sent_at", None, "payment_completed_at", payment_completed_at)
        self.check_not_before(event_field, event, "invoice_sent_at", invoice_sent_at)
        self.check_not_before("invoice_sent_at", invoice_sent_at, "payment_completed_at", payment_completed_at)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def validate_license(self, license) -> None:
        self.check_after("current_period_start", license.current_period_start, "current_period_end", license.current_period_end)
        self.check_not_before("current_period_end", license.current_period_end, "next_renewal_date", license.next_renewal_date)
        if license.billing_cycle_months not in BILLING_CYCLE_MONTHS:
            raise ValidationError(
                "Invalid billing cycle",
                field_errors={"billing_cycle_months": [f"must be one of {BILLING_CYCLE_MONTHS}"]},
            )

    def validate_adjustment(self, adjustment) -> None:
        """Gate for a license adjustment insert or status change."""
        self.check_product(
            "subtotal_usd",
            (adjustment.employees_added_count, adjustment.months_remaining, adjustment.price_per_employee_usd),
            adjustment.subtotal_usd,
        )
        self.check_tax(adjustment.subtotal_usd, adjustment.tax_rules_applied, adjustment.tax_amount_usd)
        self.check_total(adjustment.subtotal_usd, adjustment.tax_amount_usd, adjustment.total_amount_usd)
        self.check_total(
            adjustment.subtotal_local,
            adjustment.tax_amount_local,
            adjustment.total_amount_local,
            field="total_amount_local",
        )
        self.check_local_amounts(
            adjustment.billing_currency_code,
            adjustment.exchange_rate_used,
            {
                "subtotal": (adjustment.subtotal_usd, adjustment.subtotal_local),
                "tax_amount": (adjustment.tax_amount_usd, adjustment.tax_amount_local),
                "total_amount": (adjustment.total_amount_usd, adjustment.total_amount_local),
            },
        )
        self.check_settlement_sequence(
            "adjustment_date",
            adjustment.adjustment_date,
            adjustment.invoice_sent_at,
            adjustment.payment_completed_at,
        )

        status = adjustment.payment_status
        if status in _INVOICED_ADJUSTMENT and adjustment.invoice_sent_at is None:
            raise StateError(f"Adjustment in {status.value} requires invoice_sent_at")
        if (status in _SETTLED_ADJUSTMENT) != (adjustment.payment_completed_at is not None):
            raise StateError(f"Adjustment in {status.value} has inconsistent payment_completed_at")

    def validate_billing_cycle(self, cycle) -> None:
        """Gate for a billing cycle insert or status change."""
        self.check_after("period_start", cycle.period_start, "period_end", cycle.period_end)
        self.check_not_before("period_end", cycle.period_end, "payment_due_date", cycle.payment_due_date)

        if cycle.subtotal_usd < 0:
            raise ValidationError(
                "Billing cycle subtotal cannot be negative",
                field_errors={"subtotal_usd": [str(cycle.subtotal_usd)]},
            )
        if cycle.final_employee_count < 0:
            raise ValidationError(
                "Final employee count cannot be negative",
                field_errors={"final_employee_count": [str(cycle.final_employee_count)]},
            )

        self.check_sum("subtotal_usd", (cycle.base_amount_usd, cycle.adjustments_amount_usd), cycle.subtotal_usd)
        self.check_tax(cycle.subtotal_usd, cycle.tax_rules_applied, cycle.tax_amount_usd)
        self.check_total(cycle.subtotal_usd, cycle.tax_amount_usd, cycle.total_amount_usd)
        self.check_total(cycle.subtotal_local, cycle.tax_amount_local, cycle.total_amount_local, field="total_amount_local")
        self.check_local_amounts(
            cycle.billing_currency_code,
            cycle.exchange_rate_used,
            {
                "base_amount": (cycle.base_amount_usd, cycle.base_amount_local),
                "adjustments_amount": (cycle.adjustments_amount_usd, cycle.adjustments_amount_local),
                "subtotal": (cycle.subtotal_usd, cycle.subtotal_local),
                "tax_amount": (cycle.tax_amount_usd, cycle.tax_amount_local),
                "total_amount": (cycle.total_amount_usd, cycle.total_amount_local),
            },
        )
        self.check_settlement_sequence("period_end", cycle.period_end, cycle.invoice_sent_at, cycle.payment_completed_at)

        status = cycle.billing_status
        if status in _INVOICED_CYCLE and cycle.invoice_sent_at is None:
            raise StateError(f"Billing cycle in {status.value} requires invoice_sent_at")
        if (status in _SETTLED_CYCLE) != (cycle.payment_completed_at is not None):
            raise StateError(f"Billing cycle in {status.value} has inconsistent payment_completed_at")

    def validate_payment_transaction(self, transaction, owner=None) -> None:
        """
        Gate for a payment transaction insert or status change.

        When ``owner`` is given the transaction must carry exactly the
        owner's total, currency and exchange rate.
        """
        self.check_local_amounts(
            transaction.currency_code,
            transaction.exchange_rate_used,
            {"amount": (transaction.amount_usd, transaction.amount_local)},
        )

        if owner is not None:
            if transaction.currency_code != owner.billing_currency_code:
                raise AmountConsistencyError("currency_code", owner.billing_currency_code, transaction.currency_code)
            if to_decimal(transaction.exchange_rate_used) != to_decimal(owner.exchange_rate_used):
                raise AmountConsistencyError("exchange_rate_used", owner.exchange_rate_used, transaction.exchange_rate_used)
            if self._differs(owner.total_amount_usd, transaction.amount_usd):
                raise AmountConsistencyError("amount_usd", owner.total_amount_usd, transaction.amount_usd)
            if self._differs(owner.total_amount_local, transaction.amount_local):
                raise AmountConsistencyError("amount_local", owner.total_amount_local, transaction.amount_local)

        initiated = transaction.initiated_at
        self.check_not_before("initiated_at", initiated, "processing_started_at", transaction.processing_started_at)
        self.check_not_before("initiated_at", initiated, "completed_at", transaction.completed_at)
        self.check_not_before("processing_started_at", transaction.processing_started_at, "completed_at", transaction.completed_at)
        self.check_not_before("initiated_at", initiated, "failed_at", transaction.failed_at)
        self.check_not_before("initiated_at", initiated, "cancelled_at", transaction.cancelled_at)
        self.check_not_before("completed_at", transaction.completed_at, "refunded_at", transaction.refunded_at)

        status = transaction.transaction_status
        if status == PaymentTransactionStatus.FAILED:
            if not (transaction.failure_reason or "").strip():
                raise ValidationError(
                    "A failed transaction requires a failure reason",
                    field_errors={"failure_reason": ["required"]},
                )
            if transaction.failed_at is None:
                raise StateError("Failed transaction requires failed_at")
        if status in (PaymentTransactionStatus.COMPLETED, PaymentTransactionStatus.REFUNDED) and transaction.completed_at is None:
            raise StateError(f"Transaction in {status.value} requires completed_at")
        if status == PaymentTransactionStatus.REFUNDED and transaction.refunded_at is None:
            raise StateError("Refunded transaction requires refunded_at")
