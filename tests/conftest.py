import logging
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.jobstores.base import JobLookupError

from autoclock_core.config import AutomationConfig
from autoclock_core.constants import AttendanceStatus
from autoclock_core.errors import ApiError, AuthError
from autoclock_core.models import AttendanceSnapshot
from autoclock_core.network import OfflineQueue

T0 = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeProbe:
    def __init__(self, online=True):
        self.online = online
        self.calls = 0

    def is_reachable(self):
        self.calls += 1
        return self.online


class FakeClient:
    """In-memory attendance API. Clocking in/out updates the snapshot it serves."""

    def __init__(self, snapshot=None, token="access-token", refresh_ok=True, delay=0.0):
        self.snapshot = snapshot or AttendanceSnapshot()
        self.token = token
        self.refresh_ok = refresh_ok
        self.fail_clock = False
        self.delay = delay
        self.calls = []
        self._active = 0
        self.max_concurrent = 0
        self._guard = threading.Lock()

    @property
    def clock_calls(self):
        return [c for c in self.calls if c in ("clock_in", "clock_out")]

    def has_valid_credentials(self):
        return bool(self.token)

    def refresh_credentials(self):
        self.calls.append("refresh")
        if not self.refresh_ok:
            raise AuthError("refresh rejected")

    def fetch_today_attendance(self):
        self.calls.append("fetch")
        return self.snapshot

    def clock_in(self):
        self._clock("clock_in")
        self.snapshot = replace(self.snapshot, status=AttendanceStatus.IN_PROGRESS,
                                clock_in_time="2026-10-19T09:00:05")

    def clock_out(self):
        self._clock("clock_out")
        self.snapshot = replace(self.snapshot, clock_out_time="2026-10-19T18:00:00")

    def _clock(self, name):
        with self._guard:
            self._active += 1
            self.max_concurrent = max(self.max_concurrent, self._active)
        try:
            if self.delay:
                time.sleep(self.delay)
            self.calls.append(name)
            if self.fail_clock:
                raise ApiError(f"{name} failed: HTTP 500")
        finally:
            with self._guard:
                self._active -= 1


class FakeJob:
    def __init__(self, func, trigger, kwargs):
        self.func = func
        self.trigger = trigger
        self.kwargs = kwargs
        self.id = kwargs.get("id")
        self.removed = False

    def remove(self):
        if self.removed:
            raise JobLookupError(self.id)
        self.removed = True


class FakeBackend:
    """Stands in for BackgroundScheduler; jobs are fired by calling job.func()."""

    def __init__(self):
        self.running = False
        self.added = []
        self.shutdown_calls = 0
        self.listeners = []

    def add_job(self, func, trigger, **kwargs):
        job = FakeJob(func, trigger, kwargs)
        self.added.append(job)
        return job

    def add_listener(self, callback, mask=None):
        self.listeners.append((callback, mask))

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.shutdown_calls += 1
        self.running = False


@pytest.fixture(autouse=True)
def _reset_logger():
    logger = logging.getLogger("autoclock")
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def queue(tmp_path):
    return OfflineQueue(tmp_path / "data" / "offline.jsonl")


@pytest.fixture
def config():
    return AutomationConfig(work_hours_per_shift=timedelta(hours=9), check_interval_minutes=5)


@pytest.fixture
def backend():
    return FakeBackend()
