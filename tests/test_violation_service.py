"""Violation listing, details, manual creation and manual status changes."""

import pytest

from violation_service.core.constants import (
    AppealStatus,
    ViolationDetectedBy,
    ViolationStatus,
    ViolationType,
)
from violation_service.core.exceptions import (
    InvalidInput,
    InvalidStatusTransition,
    NotFound,
    PermissionDenied,
)
from violation_service.models.violations import Violation
from violation_service.services.appeal_service import AppealService
from violation_service.services.violation_service import CreateViolationInput, ViolationService
from violation_service.services.violation_store import ViolationFilter


def manual(trip_id, type="OVER_CAPACITY"):
    return CreateViolationInput(
        trip_id=trip_id,
        type=type,
        detected_by="system",
        severity="high",
        description="reported by the landfill operator",
    )


class TestListViolations:
    async def test_records_carry_trip_graph_and_appeal_summary(self, db, world):
        violation_id = await world.violation(world.trip_a_id)
        await AppealService(db).create(world.driver_1(), violation_id, "OTHER", "the road was blocked")

        items = await ViolationService(db).list(world.oversight(), ViolationFilter())

        assert [item.violation.id for item in items] == [violation_id]
        item = items[0]
        trip = item.violation.trip
        assert trip.driver.full_name == "Aibek Nurlanov"
        assert trip.vehicle.plate_number == "123ABC02"
        assert trip.ticket.contractor.name == "Clean City LLP"
        assert trip.ticket.cleaning_area.name == "Almaly district"
        assert trip.polygon.name == "North landfill"
        assert item.summary.has_active_appeal
        assert item.summary.last_appeal.status == AppealStatus.SUBMITTED

    async def test_driver_filter_is_forced(self, db, world):
        mine = await world.violation(world.trip_a_id)
        await world.violation(world.trip_b_id)

        items = await ViolationService(db).list(world.driver_1(), ViolationFilter(driver_id=world.driver_2_id))
        assert [item.violation.id for item in items] == [mine]

    async def test_technical_sees_only_camera_contested_violations(self, db, world):
        contested = await world.violation(world.trip_a_id, detected_by=ViolationDetectedBy.LPR)
        await world.violation(world.trip_b_id, detected_by=ViolationDetectedBy.LPR)
        other_reason = await world.violation(world.trip_b_id, detected_by=ViolationDetectedBy.VOLUME)
        await AppealService(db).create(world.driver_1(), contested, "CAMERA_ERROR", "camera misread my plate")
        await AppealService(db).create(world.driver_2(), other_reason, "OTHER", "sensor was miscalibrated")

        items = await ViolationService(db).list(world.technical(), ViolationFilter())
        assert [item.violation.id for item in items] == [contested]

    async def test_unsupported_role_is_denied(self, db, world):
        with pytest.raises(PermissionDenied):
            await ViolationService(db).list(world.landfill(), ViolationFilter())


class TestViolationDetails:
    async def test_details_include_appeals_and_history(self, db, world):
        violation_id = await world.violation()
        appeals = AppealService(db)
        details = await appeals.create(world.driver_1(), violation_id, "OTHER", "the road was blocked")
        appeal_id = details.appeal.id
        await appeals.act(world.city(), appeal_id, "start-review")
        await appeals.act(world.city(), appeal_id, "approve")

        details = await ViolationService(db).get_details(world.contractor_a(), violation_id)

        assert details.violation.status == ViolationStatus.CANCELED
        assert [a.id for a in details.appeals] == [appeal_id]
        assert details.appeals[0].comments[0].message == "the road was blocked"
        assert [(h.old_status, h.new_status) for h in details.history] == [
            (ViolationStatus.OPEN, ViolationStatus.CANCELED)
        ]
        assert not details.summary.has_active_appeal

    async def test_details_outside_scope(self, db, world):
        violation_id = await world.violation(world.trip_b_id)
        with pytest.raises(NotFound):
            await ViolationService(db).get_details(world.driver_1(), violation_id)


class TestCreateManual:
    async def test_city_creates_with_initial_log(self, db, world):
        city = world.city()
        item = await ViolationService(db).create_manual(city, manual(world.trip_b_id))
        violation = item.violation

        assert violation.status == ViolationStatus.OPEN
        assert violation.type == ViolationType.OVER_CAPACITY
        assert violation.detected_by == ViolationDetectedBy.SYSTEM
        logs = await world.violation_logs(violation.id)
        assert [(log.old_status, log.new_status, log.note, log.changed_by) for log in logs] == [
            (None, ViolationStatus.OPEN, "manual creation", city.user_id)
        ]

    async def test_oversight_limited_to_its_contractors(self, db, world):
        service = ViolationService(db)

        await service.create_manual(world.oversight(), manual(world.trip_a_id))
        with pytest.raises(PermissionDenied):
            await service.create_manual(world.oversight(), manual(world.trip_b_id))

        # a trip without a ticket has no owning contractor to check
        item = await service.create_manual(world.oversight(), manual(world.trip_c_id))
        assert item.violation.trip_id == world.trip_c_id

    async def test_other_roles_cannot_create(self, db, world):
        for principal in (world.driver_1(), world.contractor_a(), world.technical()):
            with pytest.raises(PermissionDenied):
                await ViolationService(db).create_manual(principal, manual(world.trip_a_id))

    async def test_missing_trip_and_bad_enums(self, db, world):
        service = ViolationService(db)
        with pytest.raises(NotFound):
            await service.create_manual(world.city(), manual(world.ticket_a_id))
        with pytest.raises(InvalidInput):
            await service.create_manual(world.city(), manual(world.trip_a_id, type="LATE_ARRIVAL"))


class TestUpdateStatus:
    async def test_manual_resolution(self, db, world):
        violation_id = await world.violation()
        violation = await ViolationService(db).update_status(world.oversight(), violation_id, "fixed", "paid on site")

        assert violation.status == ViolationStatus.FIXED
        stored = await world.fetch(Violation, violation_id)
        assert stored.status == ViolationStatus.FIXED
        assert stored.description == "paid on site"
        logs = await world.violation_logs(violation_id)
        assert logs[-1].note == "paid on site"

    async def test_status_change_without_note_keeps_description(self, db, world):
        service = ViolationService(db)
        created = await service.create_manual(world.city(), manual(world.trip_a_id))
        violation_id = created.violation.id

        await service.update_status(world.city(), violation_id, "CANCELED")

        stored = await world.fetch(Violation, violation_id)
        assert stored.status == ViolationStatus.CANCELED
        assert stored.description == "reported by the landfill operator"

    async def test_terminal_violation_cannot_change(self, db, world):
        violation_id = await world.violation(status=ViolationStatus.CANCELED)
        with pytest.raises(InvalidStatusTransition):
            await ViolationService(db).update_status(world.city(), violation_id, "FIXED")

    async def test_only_editors(self, db, world):
        violation_id = await world.violation()
        with pytest.raises(PermissionDenied):
            await ViolationService(db).update_status(world.contractor_a(), violation_id, "CANCELED")
        with pytest.raises(InvalidInput):
            await ViolationService(db).update_status(world.city(), violation_id, "DISMISSED")
