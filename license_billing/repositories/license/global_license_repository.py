"""
Global license repository.

Writes are restricted to the fields of ``GlobalLicenseCreate``; the
store-computed ``total_seats_purchased`` and ``billing_status`` are
read-only and always come back through a fresh read.
"""

from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from license_billing.core.config import BillingSettings
from license_billing.models.base.enums import LicenseStatus
from license_billing.models.license.global_license import STORE_COMPUTED_FIELDS, GlobalLicense
from license_billing.repositories.base.base_repository import BaseRepository
from license_billing.schemas.license import GlobalLicenseView


class GlobalLicenseRepository(BaseRepository[GlobalLicense, GlobalLicenseView]):
    schema = GlobalLicenseView
    read_only_fields = STORE_COMPUTED_FIELDS
    mutable_fields = frozenset({
        "billing_cycle_months",
        "base_price_usd",
        "minimum_seats",
        "current_period_start",
        "current_period_end",
        "next_renewal_date",
        "license_status",
    })

    def __init__(self, db: Session, settings: Optional[BillingSettings] = None):
        super().__init__(GlobalLicense, db, settings)

    def find_view(self, license_id: int) -> Optional[GlobalLicenseView]:
        """Fresh read including store-computed fields."""
        return self.find_by_id(license_id)

    def list_expiring_soon(self, today: date, days: int) -> List[GlobalLicenseView]:
        stmt = self._select().where(
            GlobalLicense.license_status == LicenseStatus.ACTIVE,
            GlobalLicense.current_period_end >= today,
            GlobalLicense.current_period_end <= today + timedelta(days=days),
        ).order_by(GlobalLicense.current_period_end, GlobalLicense.id)
        return self._all(stmt)
