import pytest

from autoclock_core.constants import AttendanceStatus
from autoclock_core.models import ActionKind, AttendanceSnapshot, OfflineAction, Trigger

from conftest import T0


@pytest.mark.parametrize("status,rest,leave,holiday", [
    ("Rest Day", True, False, False),
    ("REST DAY", True, False, False),
    ("On leave", False, True, False),
    ("holiday", False, False, True),
    ("In Progress", False, False, False),
])
def test_day_flags_follow_status(status, rest, leave, holiday):
    snapshot = AttendanceSnapshot(status=status)
    assert (snapshot.is_rest_day, snapshot.is_on_leave, snapshot.is_holiday) == (rest, leave, holiday)


def test_blank_values_are_normalised():
    snapshot = AttendanceSnapshot(status="  ", clock_in_time=" ", clock_out_time="")

    assert snapshot.status == AttendanceStatus.NOT_STARTED
    assert not snapshot.has_clocked_in
    assert not snapshot.has_clocked_out


def test_from_payload_accepts_both_key_styles():
    camel = AttendanceSnapshot.from_payload({"status": "In Progress", "timeIn": "09:00", "workingHours": 3})
    snake = AttendanceSnapshot.from_payload({"status": "In Progress", "time_in": "09:00", "working_hours": 3})

    assert camel == snake
    assert camel.working_hours == 3.0


def test_from_payload_empty_body():
    snapshot = AttendanceSnapshot.from_payload({})

    assert snapshot.status == AttendanceStatus.NOT_STARTED
    assert snapshot.working_hours == 0.0


def test_snapshot_is_immutable():
    snapshot = AttendanceSnapshot()
    with pytest.raises(AttributeError):
        snapshot.status = "Holiday"


def test_trigger_action_mapping():
    assert Trigger.from_action(ActionKind.CLOCK_OUT) is Trigger.CLOCK_OUT
    assert Trigger.from_action("clock-in") is Trigger.CLOCK_IN
    assert Trigger.CLOCK_IN.to_action() is ActionKind.CLOCK_IN
    assert Trigger.PERIODIC_CHECK.to_action() is None


def test_offline_action_record():
    action = OfflineAction(kind=ActionKind.CLOCK_IN, occurred_at=T0, seq=4)

    restored = OfflineAction.from_record(action.to_record())

    assert restored == action
    assert restored.seq == 4
    assert restored.as_processed().processed is True
    assert action.processed is False
