"""
Role and ownership checks.

Scope decides what a principal can *see*. These checks decide what a principal may
*do* with a row it can already see.
"""
from typing import Iterable

from violation_service.core.constants import UserRole
from violation_service.core.exceptions import PermissionDenied
from violation_service.core.principal import Principal
from violation_service.models.appeals import Appeal
from violation_service.models.violations import Violation

REVIEWER_ROLES = frozenset({UserRole.CITY_ADMIN, UserRole.OVERSIGHT_ADMIN})
VIOLATION_EDITOR_ROLES = REVIEWER_ROLES
APPELLANT_ROLES = frozenset({UserRole.DRIVER, UserRole.CONTRACTOR_ADMIN})
# May comment on any appeal they can see.
STAFF_COMMENTER_ROLES = frozenset(
    {UserRole.CITY_ADMIN, UserRole.OVERSIGHT_ADMIN, UserRole.TECHNICAL_ADMIN}
)


def require_role(principal: Principal, roles: Iterable[UserRole]) -> None:
    if principal.role not in roles:
        raise PermissionDenied()


def owns_violation(principal: Principal, violation: Violation) -> bool:
    """Whether the principal is the driver or contractor behind the violation's trip."""
    trip = violation.trip
    if trip is None:
        return False
    if principal.is_driver:
        return principal.driver_id is not None and trip.driver_id == principal.driver_id
    if principal.is_contractor:
        return trip.ticket is not None and trip.ticket.contractor_id == principal.org_id
    return False


def ensure_can_file_appeal(principal: Principal, violation: Violation) -> None:
    require_role(principal, APPELLANT_ROLES)
    if not owns_violation(principal, violation):
        raise PermissionDenied("only the trip's driver or contractor may appeal")


def is_participant(principal: Principal, appeal: Appeal) -> bool:
    """Participants are matched against the ids captured when the appeal was filed."""
    if principal.is_driver:
        return (
            appeal.driver_id is not None
            and principal.driver_id is not None
            and appeal.driver_id == principal.driver_id
        )
    if principal.is_contractor:
        return appeal.contractor_id is not None and appeal.contractor_id == principal.org_id
    return False


def ensure_can_comment(principal: Principal, appeal: Appeal) -> None:
    if principal.role in STAFF_COMMENTER_ROLES or is_participant(principal, appeal):
        return
    raise PermissionDenied("not a participant of this appeal")
