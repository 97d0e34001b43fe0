"""
Tax applier.
"""

from decimal import Decimal

from license_billing.core.exceptions import TaxRuleInvalidError, ValidationError
from license_billing.core.logging import get_logger
from license_billing.schemas.calculation import TaxComputation
from license_billing.schemas.snapshot import TaxRuleSet
from license_billing.utils.money import decimal_places, round2, to_decimal

logger = get_logger(__name__)


class TaxApplier:
    """Applies the ordered tax rules of a jurisdiction to a USD subtotal."""

    def apply(self, subtotal_usd: Decimal, rule_set: TaxRuleSet) -> TaxComputation:
        """
        Compute tax and total for ``subtotal_usd``.

        Every rule is applied to the subtotal (no compounding). The applied
        rules are returned verbatim so the record can embed them.

        Raises:
            TaxRuleInvalidError: a rate outside [0, 1] or with more than 4
                decimals, or no rules where the jurisdiction requires tax
        """
        subtotal_usd = to_decimal(subtotal_usd)
        if subtotal_usd < 0:
            raise ValidationError(
                "Subtotal cannot be negative",
                field_errors={"subtotal_usd": [str(subtotal_usd)]},
            )

        if not rule_set.rules and rule_set.tax_required:
            raise TaxRuleInvalidError(
                f"No tax rules configured for jurisdiction {rule_set.jurisdiction}",
                jurisdiction=rule_set.jurisdiction,
            )

        tax = Decimal(0)
        for rule in rule_set.rules:
            rate = to_decimal(rule.rate)
            if rate < 0 or rate > 1:
                raise TaxRuleInvalidError(
                    f"Tax rule '{rule.name}' rate {rate} is outside [0, 1]",
                    jurisdiction=rule_set.jurisdiction,
                )
            if decimal_places(rate) > 4:
                raise TaxRuleInvalidError(
                    f"Tax rule '{rule.name}' rate {rate} has more than 4 decimals",
                    jurisdiction=rule_set.jurisdiction,
                )
            tax += subtotal_usd * rate

        tax_amount = round2(tax)
        return TaxComputation(
            subtotal_usd=round2(subtotal_usd),
            tax_amount_usd=tax_amount,
            total_amount_usd=round2(subtotal_usd + tax_amount),
            tax_rules_applied=rule_set.rules,
        )
