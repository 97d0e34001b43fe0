"""
Proration engine.

Pure computation of the partial charge for seats added (or removed)
part-way through a billing period.
"""

from datetime import date
from decimal import Decimal

from license_billing.core.logging import get_logger
from license_billing.schemas.base import build
from license_billing.schemas.calculation import ProrationInput
from license_billing.utils import date_utils
from license_billing.utils.money import round2, to_decimal

logger = get_logger(__name__)


class ProrationEngine:
    """Subtotal = seats x months x monthly price per seat, rounded half-up."""

    @staticmethod
    def months_between(start: date, end: date) -> Decimal:
        return date_utils.months_between(start, end)

    def compute_adjustment(self, proration: ProrationInput) -> Decimal:
        subtotal = round2(
            Decimal(proration.employees_added_count)
            * proration.months_remaining
            * proration.price_per_employee_usd
        )
        logger.debug(
            "Prorated subtotal computed",
            extra={
                "employees": proration.employees_added_count,
                "months": str(proration.months_remaining),
                "price": str(proration.price_per_employee_usd),
                "subtotal_usd": str(subtotal),
            },
        )
        return subtotal

    def prorate(self, employees_added_count: int, months_remaining, price_per_employee_usd) -> Decimal:
        """
        Validate the inputs and prorate.

        Raises:
            ValidationError: missing, negative or out-of-range input
        """
        proration = build(
            ProrationInput,
            "Invalid proration input",
            employees_added_count=employees_added_count,
            months_remaining=None if months_remaining is None else to_decimal(months_remaining),
            price_per_employee_usd=None if price_per_employee_usd is None else to_decimal(price_per_employee_usd),
        )
        return self.compute_adjustment(proration)
