"""Role and ownership checks on rows that are already visible."""

import uuid

import pytest

from violation_service.core.constants import UserRole
from violation_service.core.exceptions import PermissionDenied
from violation_service.core.principal import Principal
from violation_service.models.appeals import Appeal
from violation_service.models.directory import Ticket, Trip
from violation_service.models.violations import Violation
from violation_service.services.authorization import (
    REVIEWER_ROLES,
    ensure_can_comment,
    ensure_can_file_appeal,
    is_participant,
    owns_violation,
    require_role,
)

CONTRACTOR = uuid.uuid4()
DRIVER = uuid.uuid4()


def principal(role, org_id=None, driver_id=None):
    return Principal(user_id=uuid.uuid4(), org_id=org_id or uuid.uuid4(), role=role, driver_id=driver_id)


def violation_on_trip(driver_id=DRIVER, contractor_id=CONTRACTOR):
    ticket = Ticket(id=uuid.uuid4(), contractor_id=contractor_id) if contractor_id else None
    trip = Trip(id=uuid.uuid4(), driver_id=driver_id, ticket=ticket)
    return Violation(id=uuid.uuid4(), trip=trip)


class TestFilingRights:
    def test_owning_driver_and_contractor(self):
        violation = violation_on_trip()

        assert owns_violation(principal(UserRole.DRIVER, driver_id=DRIVER), violation)
        assert owns_violation(principal(UserRole.CONTRACTOR_ADMIN, org_id=CONTRACTOR), violation)

    def test_visible_but_not_owned(self):
        violation = violation_on_trip()

        with pytest.raises(PermissionDenied):
            ensure_can_file_appeal(principal(UserRole.DRIVER, driver_id=uuid.uuid4()), violation)
        with pytest.raises(PermissionDenied):
            ensure_can_file_appeal(principal(UserRole.DRIVER, driver_id=None), violation)
        with pytest.raises(PermissionDenied):
            ensure_can_file_appeal(principal(UserRole.CONTRACTOR_ADMIN), violation)

    def test_oversight_sees_but_cannot_file(self):
        with pytest.raises(PermissionDenied):
            ensure_can_file_appeal(principal(UserRole.OVERSIGHT_ADMIN, org_id=CONTRACTOR), violation_on_trip())

    def test_contractor_cannot_file_on_ticketless_trip(self):
        violation = violation_on_trip(contractor_id=None)
        assert not owns_violation(principal(UserRole.CONTRACTOR_ADMIN, org_id=CONTRACTOR), violation)


class TestCommentRights:
    def appeal(self):
        return Appeal(id=uuid.uuid4(), driver_id=DRIVER, contractor_id=CONTRACTOR)

    def test_participants(self):
        appeal = self.appeal()

        assert is_participant(principal(UserRole.DRIVER, driver_id=DRIVER), appeal)
        assert is_participant(principal(UserRole.CONTRACTOR_ADMIN, org_id=CONTRACTOR), appeal)
        assert not is_participant(principal(UserRole.DRIVER, driver_id=uuid.uuid4()), appeal)
        assert not is_participant(principal(UserRole.CITY_ADMIN), appeal)

    def test_staff_always_comment(self):
        for role in (UserRole.CITY_ADMIN, UserRole.OVERSIGHT_ADMIN, UserRole.TECHNICAL_ADMIN):
            ensure_can_comment(principal(role), self.appeal())

    def test_strangers_denied(self):
        for stranger in (principal(UserRole.CONTRACTOR_ADMIN), principal(UserRole.LANDFILL_USER)):
            with pytest.raises(PermissionDenied):
                ensure_can_comment(stranger, self.appeal())


def test_require_role():
    require_role(principal(UserRole.CITY_ADMIN), REVIEWER_ROLES)
    with pytest.raises(PermissionDenied):
        require_role(principal(UserRole.DRIVER), REVIEWER_ROLES)
