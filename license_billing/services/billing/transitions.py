"""
Status transition tables.

Each status dimension has one exhaustive table: every enum member maps to
its allowed targets, and an empty set marks a terminal status. Building
a table with a missing member fails at import time.
"""

from enum import Enum
from typing import Callable, Dict, FrozenSet, Generic, Iterable, Mapping, Type, TypeVar

from license_billing.core.exceptions import (
    ConfigurationError,
    InvalidStatusTransitionError,
    RecordFinalError,
    ResourceNotFoundError,
    TransactionAlreadyFinalError,
)
from license_billing.models.base.enums import (
    AdjustmentPaymentStatus,
    BillingStatus,
    PaymentTransactionStatus,
)

S = TypeVar("S", bound=Enum)


class TransitionTable(Generic[S]):
    """Allowed status edges of one entity."""

    def __init__(
        self,
        entity: str,
        status_type: Type[S],
        edges: Mapping[S, Iterable[S]],
        final_error: Callable[[object, S], Exception] = None,
    ):
        missing = set(status_type) - set(edges)
        if missing:
            raise ConfigurationError(
                f"{entity} transition table is missing statuses",
                {"missing": sorted(s.value for s in missing)},
            )

        self.entity = entity
        self.status_type = status_type
        self.edges: Dict[S, FrozenSet[S]] = {}
        for source, targets in edges.items():
            targets = frozenset(targets)
            unknown = {t for t in targets if not isinstance(t, status_type)}
            if unknown:
                raise ConfigurationError(f"{entity} transition table has foreign targets")
            self.edges[source] = targets

        self._final_error = final_error or (lambda entity_id, status: RecordFinalError(entity, entity_id, status))

    def final_error(self, entity_id: object, status: S) -> Exception:
        return self._final_error(entity_id, status)

    def targets(self, status: S) -> FrozenSet[S]:
        return self.edges[status]

    def is_terminal(self, status: S) -> bool:
        return not self.edges[status]

    def can_transition(self, current: S, target: S) -> bool:
        return target in self.edges[current]

    def terminal_statuses(self) -> FrozenSet[S]:
        return frozenset(s for s, targets in self.edges.items() if not targets)

    def ensure(self, entity_id: object, current: S, target: S) -> None:
        """
        Raise unless ``current -> target`` is an edge of the table.

        Raises:
            RecordFinalError: ``current`` is terminal
            InvalidStatusTransitionError: the edge is absent
        """
        if self.is_terminal(current):
            raise self.final_error(entity_id, current)
        if target not in self.edges[current]:
            raise InvalidStatusTransitionError(self.entity, entity_id, current, target)


PAYMENT_TRANSACTION_TRANSITIONS: TransitionTable[PaymentTransactionStatus] = TransitionTable(
    "PaymentTransaction",
    PaymentTransactionStatus,
    {
        PaymentTransactionStatus.PENDING: {
            PaymentTransactionStatus.PROCESSING,
            PaymentTransactionStatus.CANCELLED,
            PaymentTransactionStatus.FAILED,
        },
        PaymentTransactionStatus.PROCESSING: {
            PaymentTransactionStatus.COMPLETED,
            PaymentTransactionStatus.FAILED,
            PaymentTransactionStatus.CANCELLED,
        },
        PaymentTransactionStatus.COMPLETED: {PaymentTransactionStatus.REFUNDED},
        PaymentTransactionStatus.FAILED: set(),
        PaymentTransactionStatus.CANCELLED: set(),
        PaymentTransactionStatus.REFUNDED: set(),
    },
    final_error=TransactionAlreadyFinalError,
)

BILLING_CYCLE_TRANSITIONS: TransitionTable[BillingStatus] = TransitionTable(
    "BillingCycle",
    BillingStatus,
    {
        BillingStatus.PENDING: {BillingStatus.INVOICED, BillingStatus.CANCELLED},
        BillingStatus.INVOICED: {BillingStatus.PAID, BillingStatus.OVERDUE, BillingStatus.CANCELLED},
        BillingStatus.OVERDUE: {BillingStatus.PAID, BillingStatus.CANCELLED},
        BillingStatus.PAID: {BillingStatus.REFUNDED},
        BillingStatus.CANCELLED: set(),
        BillingStatus.REFUNDED: set(),
    },
)

ADJUSTMENT_PAYMENT_TRANSITIONS: TransitionTable[AdjustmentPaymentStatus] = TransitionTable(
    "LicenseAdjustment",
    AdjustmentPaymentStatus,
    {
        AdjustmentPaymentStatus.PENDING: {AdjustmentPaymentStatus.INVOICED, AdjustmentPaymentStatus.CANCELLED},
        AdjustmentPaymentStatus.INVOICED: {AdjustmentPaymentStatus.PAID, AdjustmentPaymentStatus.CANCELLED},
        AdjustmentPaymentStatus.PAID: {AdjustmentPaymentStatus.REFUNDED},
        AdjustmentPaymentStatus.CANCELLED: set(),
        AdjustmentPaymentStatus.REFUNDED: set(),
    },
)


def transition_record(
    repository,
    table: TransitionTable,
    status_field: str,
    record,
    target: Enum,
    values: Mapping[str, object] = None,
    validate: Callable[[object], None] = None,
):
    """
    Move ``record`` to ``target`` with a conditional update.

    The new state is validated before the write. The update only matches
    while the row still holds the status ``record`` was read with; when it
    matches nothing the row is re-read and the failure reflects its new
    status.

    Returns:
        The re-read record
    """
    current = getattr(record, status_field)
    table.ensure(record.id, current, target)

    changes = {status_field: target, **(values or {})}
    if validate is not None:
        validate(record.model_copy(update=changes))

    affected = repository.update_where(record.id, {status_field: current}, changes)
    if affected == 0:
        latest = repository.refresh(record)
        if latest is None:
            raise ResourceNotFoundError(table.entity, record.id)
        latest_status = getattr(latest, status_field)
        if table.is_terminal(latest_status):
            raise table.final_error(record.id, latest_status)
        raise InvalidStatusTransitionError(table.entity, record.id, latest_status, target)

    return repository.refresh(record)
