"""
Value types shared by the engine, the scheduler, and the collaborators.

AttendanceSnapshot — one read of today's DTR, never mutated.
OfflineAction      — a clock action deferred while the network was down.
Trigger / Outcome  — closed sets the engine matches on exhaustively.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from .constants import AttendanceStatus


class ActionKind(str, Enum):
    CLOCK_IN = "clock-in"
    CLOCK_OUT = "clock-out"


class Trigger(Enum):
    CLOCK_IN = "clock-in"
    CLOCK_OUT = "clock-out"
    PERIODIC_CHECK = "periodic-check"

    @classmethod
    def from_action(cls, kind):
        return cls(ActionKind(kind).value)

    def to_action(self):
        """The offline action this trigger defers to, or None for periodic checks."""
        if self is Trigger.PERIODIC_CHECK:
            return None
        return ActionKind(self.value)


class Outcome(Enum):
    CLOCKED_IN = "clocked-in"
    CLOCKED_OUT = "clocked-out"
    QUEUED = "queued"
    REPLAYED = "replayed"
    SKIPPED = "skipped"
    FAILED = "failed"


def status_equals(actual, expected):
    if not actual or not expected:
        return False
    return actual.strip().lower() == expected.strip().lower()


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


@dataclass(frozen=True)
class AttendanceSnapshot:
    status: str = AttendanceStatus.NOT_STARTED
    clock_in_time: Optional[str] = None
    clock_out_time: Optional[str] = None
    working_hours: float = 0.0

    def __post_init__(self):
        if not self.status or not self.status.strip():
            object.__setattr__(self, "status", AttendanceStatus.NOT_STARTED)
        object.__setattr__(self, "clock_in_time", _blank_to_none(self.clock_in_time))
        object.__setattr__(self, "clock_out_time", _blank_to_none(self.clock_out_time))

    @classmethod
    def from_payload(cls, data):
        """Build a snapshot from the attendance API JSON body."""
        data = data or {}
        hours = data.get("workingHours", data.get("working_hours")) or 0
        try:
            hours = float(hours)
        except (TypeError, ValueError):
            hours = 0.0
        return cls(
            status=data.get("status") or AttendanceStatus.NOT_STARTED,
            clock_in_time=data.get("timeIn") or data.get("time_in"),
            clock_out_time=data.get("timeOut") or data.get("time_out"),
            working_hours=hours,
        )

    @property
    def is_rest_day(self) -> bool:
        return status_equals(self.status, AttendanceStatus.REST_DAY)

    @property
    def is_on_leave(self) -> bool:
        return status_equals(self.status, AttendanceStatus.ON_LEAVE)

    @property
    def is_holiday(self) -> bool:
        return status_equals(self.status, AttendanceStatus.HOLIDAY)

    @property
    def is_non_working_day(self) -> bool:
        return self.is_rest_day or self.is_on_leave or self.is_holiday

    @property
    def is_completed(self) -> bool:
        return status_equals(self.status, AttendanceStatus.COMPLETED)

    @property
    def has_clocked_in(self) -> bool:
        return self.clock_in_time is not None

    @property
    def has_clocked_out(self) -> bool:
        return self.clock_out_time is not None


@dataclass(frozen=True)
class OfflineAction:
    kind: ActionKind
    occurred_at: datetime
    processed: bool = False
    seq: int = field(default=0, compare=False)

    def to_record(self):
        return {
            "seq": self.seq,
            "kind": self.kind.value,
            "occurredAt": self.occurred_at.isoformat(),
            "processed": self.processed,
        }

    @classmethod
    def from_record(cls, record):
        return cls(
            kind=ActionKind(record["kind"]),
            occurred_at=datetime.fromisoformat(record["occurredAt"]),
            processed=bool(record.get("processed", False)),
            seq=int(record["seq"]),
        )

    def as_processed(self):
        return replace(self, processed=True)
