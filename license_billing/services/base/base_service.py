"""
Base service class providing common functionality for all services.
"""

from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings, settings as app_settings
from license_billing.core.exceptions import BaseAppException
from license_billing.core.logging import billing_context, get_event_logger, get_logger


class BaseService:
    """
    Base for the billing services: one session, the billing settings, a
    unit-of-work helper and operation logging.
    """

    def __init__(self, db_session: Session, settings: Optional[BillingSettings] = None):
        """
        Args:
            db_session: SQLAlchemy database session
            settings: Billing settings (defaults to the application settings)
        """
        self.db: Session = db_session
        self.settings: BillingSettings = settings or app_settings.billing
        self._logger = get_logger(self.__class__.__name__)
        self._events = get_event_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Transaction Management
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self, **context: Any):
        """
        One unit of work: commit on success, rollback on any exception.

        ``context`` is bound as billing context for the block, so every
        record logged inside it (including the rejection below) carries
        the ids it concerns.

        Example:
            with self.transaction(global_license_id=license.id):
                self.cycles.insert(draft)
        """
        with billing_context(**context):
            try:
                yield self.db
                self.db.commit()
            except BaseAppException as e:
                self.db.rollback()
                self._logger.warning(
                    f"Unit of work rejected: {e.message}",
                    extra={"error_code": e.error_code.value, "error_details": e.details},
                )
                raise
            except Exception:
                self.db.rollback()
                self._logger.error("Unit of work failed", exc_info=True)
                raise

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def _log_operation(
        self,
        operation: str,
        entity_ref: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Emit a completed write as an INFO operation event."""
        fields = dict(extra or {})
        if entity_ref is not None:
            fields["entity_ref"] = str(entity_ref)

        self._events.info("operation", operation=operation, **fields)
