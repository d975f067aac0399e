"""Appeal state machine table."""

import pytest

from violation_service.core.constants import AppealAction, AppealStatus, ViolationStatus
from violation_service.core.exceptions import InvalidStatusTransition
from violation_service.services.appeal_lifecycle import APPEAL_TRANSITIONS, resolve_transition

ALLOWED = {
    (AppealStatus.SUBMITTED, AppealAction.START_REVIEW): AppealStatus.UNDER_REVIEW,
    (AppealStatus.NEED_INFO, AppealAction.START_REVIEW): AppealStatus.UNDER_REVIEW,
    (AppealStatus.UNDER_REVIEW, AppealAction.REQUEST_INFO): AppealStatus.NEED_INFO,
    (AppealStatus.UNDER_REVIEW, AppealAction.APPROVE): AppealStatus.APPROVED,
    (AppealStatus.NEED_INFO, AppealAction.APPROVE): AppealStatus.APPROVED,
    (AppealStatus.UNDER_REVIEW, AppealAction.REJECT): AppealStatus.REJECTED,
    (AppealStatus.NEED_INFO, AppealAction.REJECT): AppealStatus.REJECTED,
    (AppealStatus.APPROVED, AppealAction.CLOSE): AppealStatus.CLOSED,
    (AppealStatus.REJECTED, AppealAction.CLOSE): AppealStatus.CLOSED,
}


@pytest.mark.parametrize("status", list(AppealStatus))
@pytest.mark.parametrize("action", list(AppealAction))
def test_transition_table(status, action):
    expected = ALLOWED.get((status, action))
    if expected is None:
        with pytest.raises(InvalidStatusTransition):
            resolve_transition(status, action)
    else:
        assert resolve_transition(status, action).target == expected


def test_only_resolutions_cascade():
    cascades = {
        action: transition.violation_target
        for action, transition in APPEAL_TRANSITIONS.items()
        if transition.violation_target is not None
    }
    assert cascades == {
        AppealAction.APPROVE: ViolationStatus.CANCELED,
        AppealAction.REJECT: ViolationStatus.FIXED,
    }


def test_closed_is_terminal():
    for action in AppealAction:
        with pytest.raises(InvalidStatusTransition):
            resolve_transition(AppealStatus.CLOSED, action)


@pytest.mark.parametrize(
    "raw,action",
    [
        ("start-review", AppealAction.START_REVIEW),
        ("request_info", AppealAction.REQUEST_INFO),
        ("UNDER_REVIEW", AppealAction.START_REVIEW),
        ("need_info", AppealAction.REQUEST_INFO),
        (" Approve ", AppealAction.APPROVE),
    ],
)
def test_action_aliases(raw, action):
    assert AppealAction.parse(raw) == action
