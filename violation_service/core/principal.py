import uuid
from dataclasses import dataclass
from typing import Optional

from violation_service.core.constants import UserRole


@dataclass(frozen=True)
class Principal:
    """Caller identity as asserted by the identity provider."""

    user_id: uuid.UUID
    org_id: Optional[uuid.UUID]
    role: UserRole
    driver_id: Optional[uuid.UUID] = None

    @property
    def is_city(self) -> bool:
        return self.role == UserRole.CITY_ADMIN

    @property
    def is_oversight(self) -> bool:
        return self.role == UserRole.OVERSIGHT_ADMIN

    @property
    def is_technical(self) -> bool:
        return self.role == UserRole.TECHNICAL_ADMIN

    @property
    def is_contractor(self) -> bool:
        return self.role == UserRole.CONTRACTOR_ADMIN

    @property
    def is_driver(self) -> bool:
        return self.role == UserRole.DRIVER
