"""
Scope resolution.

A scope is the slice of violations and appeals a principal may see. It is derived
from the principal on every request and never cached; it grants visibility only,
never the right to mutate anything.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from violation_service.core.constants import OrganizationType
from violation_service.core.exceptions import PermissionDenied
from violation_service.core.principal import Principal
from violation_service.models.directory import Organization

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CityScope:
    pass


@dataclass(frozen=True)
class OversightScope:
    org_id: Optional[uuid.UUID]
    contractor_ids: Tuple[uuid.UUID, ...] = field(default_factory=tuple)

    @property
    def organization_ids(self) -> Tuple[uuid.UUID, ...]:
        return (self.org_id,) + self.contractor_ids


@dataclass(frozen=True)
class ContractorScope:
    org_id: Optional[uuid.UUID]


@dataclass(frozen=True)
class DriverScope:
    driver_id: Optional[uuid.UUID]


@dataclass(frozen=True)
class TechnicalScope:
    pass


Scope = Union[CityScope, OversightScope, ContractorScope, DriverScope, TechnicalScope]


class ScopeUnsupported(Exception):
    """The principal's role has no scope in this service."""


def allows_contractor(scope: Scope, contractor_id: Optional[uuid.UUID]) -> bool:
    """Whether a row owned by ``contractor_id`` is inside ``scope``."""
    if isinstance(scope, (CityScope, TechnicalScope)):
        return True
    if contractor_id is None:
        return False
    if isinstance(scope, ContractorScope):
        return scope.org_id == contractor_id
    if isinstance(scope, OversightScope):
        return contractor_id in scope.contractor_ids
    if isinstance(scope, DriverScope):
        return False
    raise TypeError(f"unhandled scope {scope!r}")


class ScopeResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, principal: Principal) -> Scope:
        if principal.is_city:
            return CityScope()
        if principal.is_oversight:
            contractors = []
            if principal.org_id is not None:
                contractors = await self._list_child_contractors(principal.org_id)
            return OversightScope(org_id=principal.org_id, contractor_ids=tuple(contractors))
        if principal.is_contractor:
            return ContractorScope(org_id=principal.org_id)
        if principal.is_driver:
            return DriverScope(driver_id=principal.driver_id)
        if principal.is_technical:
            return TechnicalScope()
        raise ScopeUnsupported(principal.role.value)

    async def _list_child_contractors(self, parent_id: uuid.UUID):
        query = (
            select(Organization.id)
            .where(
                Organization.parent_org_id == parent_id,
                Organization.type == OrganizationType.CONTRACTOR,
                Organization.is_active.is_(True),
            )
            .order_by(Organization.id)
        )
        result = await self.db.execute(query)
        return result.scalars().all()


async def resolve_scope(db: AsyncSession, principal: Principal) -> Scope:
    """Resolve a scope, translating unsupported roles into ``PermissionDenied``."""
    try:
        return await ScopeResolver(db).resolve(principal)
    except ScopeUnsupported:
        logger.info("Rejected principal %s with unsupported role %s", principal.user_id, principal.role.value)
        raise PermissionDenied("role is not allowed to access violations")
