"""
Base repository with find/insert/conditional-update primitives.

Repositories return frozen schema records rather than live ORM objects,
so services never mutate persisted state by attribute assignment. Every
status change goes through ``update_where``, a conditional update that
only succeeds while the row still holds the expected prior values.
"""

from typing import Any, Dict, FrozenSet, Generic, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel as PydanticModel
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings, settings as app_settings
from license_billing.core.exceptions import AlreadyExistsError, ImmutableFieldError, RepositoryError
from license_billing.core.logging import get_logger
from license_billing.models.base import BaseModel
from license_billing.schemas.base import to_wire

logger = get_logger(__name__)

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=BaseModel)
SchemaType = TypeVar("SchemaType", bound=PydanticModel)

Values = Union[Mapping[str, Any], PydanticModel]


class BaseRepository(Generic[ModelType, SchemaType]):
    """
    Repository over one table.

    Subclasses declare:
        schema: frozen record type returned by every read
        mutable_fields: columns ``update_where`` may set after insert
        read_only_fields: columns the engine may never write
        json_fields: columns serialized to JSON-safe values on write
    """

    schema: Type[SchemaType]
    mutable_fields: FrozenSet[str] = frozenset()
    read_only_fields: FrozenSet[str] = frozenset()
    json_fields: FrozenSet[str] = frozenset()

    def __init__(self, model: Type[ModelType], db: Session, settings: Optional[BillingSettings] = None):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
            settings: Billing settings (pagination limits)
        """
        self.model = model
        self.db = db
        self.settings = settings or app_settings.billing

    # ==================== Conversion ====================

    def to_record(self, entity: Optional[ModelType]) -> Optional[SchemaType]:
        if entity is None:
            return None
        return self.schema.model_validate(entity)

    def _to_records(self, entities: Iterable[ModelType]) -> List[SchemaType]:
        return [self.schema.model_validate(entity) for entity in entities]

    def _prepare_values(self, values: Values) -> Dict[str, Any]:
        if isinstance(values, PydanticModel):
            values = values.model_dump()
        prepared = dict(values)
        for field in self.json_fields & prepared.keys():
            if prepared[field] is not None:
                prepared[field] = to_wire({field: prepared[field]})[field]
        return prepared

    def _guard_read_only(self, fields: Iterable[str]) -> None:
        forbidden = self.read_only_fields & set(fields)
        if forbidden:
            raise ImmutableFieldError(self.model.__name__, list(forbidden))

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.settings.DEFAULT_PAGE_LIMIT
        return max(1, min(limit, self.settings.MAX_PAGE_LIMIT))

    # ==================== Read Operations ====================

    def _select(self):
        return select(self.model).execution_options(populate_existing=True)

    def _apply_filters(self, stmt, filters: Optional[Mapping[str, Any]]):
        for key, value in (filters or {}).items():
            column = getattr(self.model, key)
            if isinstance(value, (list, tuple, set, frozenset)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def find_by_id(self, id: int) -> Optional[SchemaType]:
        """
        Find record by primary key.

        Args:
            id: Record ID

        Returns:
            Record or None
        """
        try:
            entity = self.db.execute(self._select().where(self.model.id == id)).scalars().first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Find by ID failed: {str(e)}") from e
        return self.to_record(entity)

    def find_by_guid(self, guid: int) -> Optional[SchemaType]:
        try:
            entity = self.db.execute(self._select().where(self.model.guid == guid)).scalars().first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Find by GUID failed: {str(e)}") from e
        return self.to_record(entity)

    def refresh(self, record: SchemaType) -> Optional[SchemaType]:
        """Re-read ``record`` from the store; None once the row is gone."""
        return self.find_by_id(record.id)

    def find_one_by(self, **filters: Any) -> Optional[SchemaType]:
        try:
            stmt = self._apply_filters(self._select(), filters).limit(1)
            entity = self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Find one failed: {str(e)}") from e
        return self.to_record(entity)

    def list(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        order_by: Optional[Iterable[Any]] = None,
    ) -> List[SchemaType]:
        """
        List records matching equality (or membership) filters.

        Args:
            filters: Column name to value, or to a collection of values
            offset: Number of records to skip
            limit: Page size, capped at MAX_PAGE_LIMIT
            order_by: Order clauses (defaults to primary key)

        Returns:
            Records
        """
        stmt = self._apply_filters(self._select(), filters)
        return self._paginate(stmt, offset, limit, order_by)

    def _paginate(self, stmt, offset: int = 0, limit: Optional[int] = None, order_by=None) -> List[SchemaType]:
        stmt = stmt.order_by(*(order_by or [self.model.id]))
        stmt = stmt.offset(max(offset, 0)).limit(self._limit(limit))
        try:
            return self._to_records(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"List failed: {str(e)}") from e

    def _all(self, stmt) -> List[SchemaType]:
        try:
            return self._to_records(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Query failed: {str(e)}") from e

    def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        stmt = self._apply_filters(select(func.count(self.model.id)), filters)
        try:
            return int(self.db.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Count failed: {str(e)}") from e

    # ==================== Write Operations ====================

    def insert(self, values: Values) -> SchemaType:
        """
        Insert a single row.

        Args:
            values: Draft schema or column mapping

        Returns:
            The stored record

        Raises:
            AlreadyExistsError: If a uniqueness constraint is violated
            ImmutableFieldError: If a read-only column is supplied
        """
        prepared = self._prepare_values(values)
        self._guard_read_only(prepared.keys())

        entity = self.model(**prepared)
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise AlreadyExistsError(
                self.model.__name__,
                {"constraint": str(e.orig)},
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Insert failed: {str(e)}") from e

        logger.debug(f"Inserted {self.model.__name__}", extra={"entity_id": entity.id})
        self.db.refresh(entity)
        return self.to_record(entity)

    def update_where(self, id: int, expected: Mapping[str, Any], values: Values) -> int:
        """
        Conditional update: ``SET values WHERE id = :id AND <expected>``.

        Args:
            id: Record ID
            expected: Column values the row must still hold
            values: Columns to set; each must be in ``mutable_fields``

        Returns:
            Number of rows affected (0 when the row moved on or is missing)
        """
        prepared = self._prepare_values(values)
        self._guard_read_only(prepared.keys())
        not_mutable = set(prepared) - self.mutable_fields
        if not_mutable:
            raise ImmutableFieldError(self.model.__name__, list(not_mutable))

        stmt = update(self.model).where(self.model.id == id)
        for key, value in expected.items():
            column = getattr(self.model, key)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.values(**prepared).execution_options(synchronize_session=False)

        try:
            result = self.db.execute(stmt)
        except IntegrityError as e:
            self.db.rollback()
            raise AlreadyExistsError(self.model.__name__, {"constraint": str(e.orig)}) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise RepositoryError(f"Conditional update failed: {str(e)}") from e

        return result.rowcount
