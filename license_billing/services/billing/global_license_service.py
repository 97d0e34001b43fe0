"""
Global license service.

Registers and renews the subscriptions the engine bills. Store-computed
fields are never written here; every method returns a fresh read.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.core.exceptions import ResourceNotFoundError, StateError
from license_billing.models.base.enums import LicenseStatus
from license_billing.repositories.license import GlobalLicenseRepository
from license_billing.schemas.license import GlobalLicenseCreate, GlobalLicenseView
from license_billing.services.base import BaseService
from license_billing.services.billing.reconciliation_validator import ReconciliationValidator
from license_billing.utils.date_utils import add_months, today_utc


class GlobalLicenseService(BaseService):
    """Subscription registration, lookup and renewal."""

    def __init__(
        self,
        db_session: Session,
        repository: Optional[GlobalLicenseRepository] = None,
        validator: Optional[ReconciliationValidator] = None,
        settings: Optional[BillingSettings] = None,
    ):
        super().__init__(db_session, settings)
        self.repository = repository or GlobalLicenseRepository(db_session, self.settings)
        self.validator = validator or ReconciliationValidator(self.settings)

    def register(self, license: GlobalLicenseCreate) -> GlobalLicenseView:
        self.validator.validate_license(license)

        with self.transaction(tenant_id=license.tenant_id):
            stored = self.repository.insert(license)

        self._log_operation(
            "register_license",
            stored.id,
            {"tenant_id": license.tenant_id, "billing_cycle_months": license.billing_cycle_months},
        )
        return self.get(stored.id)

    def get(self, license_id: int) -> GlobalLicenseView:
        view = self.repository.find_view(license_id)
        if view is None:
            raise ResourceNotFoundError("GlobalLicense", license_id)
        return view

    def renew(self, license_id: int) -> GlobalLicenseView:
        """
        Roll the current period forward by one billing cycle.

        The new period starts where the old one ended; suspended licenses
        cannot be renewed.
        """
        current = self.get(license_id)
        if current.license_status == LicenseStatus.SUSPENDED:
            raise StateError(
                f"License {license_id} is suspended",
                details={"license_status": current.license_status.value},
            )

        start = current.current_period_end
        end = add_months(start, current.billing_cycle_months)
        renewed = current.model_copy(update={
            "current_period_start": start,
            "current_period_end": end,
            "next_renewal_date": end,
            "license_status": LicenseStatus.ACTIVE,
        })
        self.validator.validate_license(renewed)

        with self.transaction(global_license_id=license_id):
            affected = self.repository.update_where(
                license_id,
                {"current_period_start": current.current_period_start},
                {
                    "current_period_start": start,
                    "current_period_end": end,
                    "next_renewal_date": end,
                    "license_status": LicenseStatus.ACTIVE,
                },
            )
            if affected == 0:
                raise StateError(f"License {license_id} was renewed concurrently")

        self._log_operation("renew_license", license_id, {"period_start": start.isoformat(), "period_end": end.isoformat()})
        return self.get(license_id)

    def list_expiring_soon(self, days: int, today: Optional[date] = None) -> List[GlobalLicenseView]:
        return self.repository.list_expiring_soon(today or today_utc(), days)
