"""
JobScheduler — owns every timer that drives the AutomationEngine.

  startup clock-in   — one-shot, STARTUP_CLOCK_IN_DELAY_SEC after start
  shift clock-out    — one-shot, start time + work hours per shift
  periodic check     — recurring, every check_interval_minutes

No business logic lives here. Callbacks are wrapped so an exception is
logged and the job carries on (recurring) or simply ends (one-shot).
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_MISSED
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from .config import log
from .constants import STARTUP_CLOCK_IN_DELAY_SEC
from .models import Trigger


class JobKind(Enum):
    STARTUP_CLOCK_IN = "startup-clock-in"
    SHIFT_CLOCK_OUT = "shift-clock-out"
    PERIODIC_CHECK = "periodic-check"


class JobState(Enum):
    ACTIVE = "active"
    FIRED = "fired"
    MISSED = "missed"
    STOPPED = "stopped"


@dataclass
class ScheduledJob:
    kind: JobKind
    handle: Any
    fire_at: Optional[datetime] = None
    interval: Optional[timedelta] = None
    state: JobState = JobState.ACTIVE

    @property
    def recurring(self):
        return self.interval is not None


def create_backend():
    return BackgroundScheduler(job_defaults={"coalesce": True, "max_instances": 1})


class JobScheduler:

    def __init__(self, config, engine, backend=None, clock=None, start_time=None):
        self._config = config
        self._engine = engine
        self._backend = backend if backend is not None else create_backend()
        self._clock = clock or (lambda: datetime.now().astimezone())
        self.start_time = start_time or self._clock()
        self._jobs = {}
        self._lock = threading.Lock()
        self._backend.add_listener(self._on_missed, EVENT_JOB_MISSED)

    @property
    def jobs(self):
        with self._lock:
            return dict(self._jobs)

    # ─── Registration ────────────────────────────────────────

    def schedule_clock_in(self):
        if not self._config.auto_clock_in_enabled:
            log.info("Auto clock-in is disabled")
            return None
        fire_at = self._clock() + timedelta(seconds=STARTUP_CLOCK_IN_DELAY_SEC)
        job = self._add_one_shot(JobKind.STARTUP_CLOCK_IN, Trigger.CLOCK_IN, fire_at)
        log.info("Clock-in scheduled for startup (%s)", fire_at.strftime("%H:%M:%S"))
        return job

    def schedule_clock_out(self):
        if not self._config.auto_clock_out_enabled:
            log.info("Auto clock-out is disabled")
            return None
        shift = self._config.work_hours_per_shift
        fire_at = self.start_time + shift
        if fire_at <= self._clock():
            log.warning("Clock-out time %s has already passed — not scheduled",
                        fire_at.strftime("%Y-%m-%d %H:%M:%S"))
            return None
        job = self._add_one_shot(JobKind.SHIFT_CLOCK_OUT, Trigger.CLOCK_OUT, fire_at)
        log.info("Clock-out scheduled for %s (%.1f hours from start)",
                 fire_at.strftime("%Y-%m-%d %H:%M:%S"), shift.total_seconds() / 3600)
        return job

    def start_periodic_check(self):
        minutes = self._config.check_interval_minutes
        kind = JobKind.PERIODIC_CHECK
        handle = self._backend.add_job(
            self._wrap(kind, Trigger.PERIODIC_CHECK),
            "interval",
            minutes=minutes,
            id=kind.value,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        job = ScheduledJob(kind=kind, handle=handle, interval=timedelta(minutes=minutes))
        self._track(job)
        log.info("Periodic check started (every %d minutes)", minutes)
        return job

    # ─── Lifecycle ───────────────────────────────────────────

    def start(self):
        if not self._backend.running:
            self._backend.start()
            log.info("Scheduler started with %d job(s)", len(self.jobs))

    def stop_all_jobs(self):
        """Cancel every job and stop the backend. Safe to call repeatedly."""
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()

        for job in jobs:
            try:
                job.handle.remove()
            except JobLookupError:
                pass
            job.state = JobState.STOPPED

        if self._backend.running:
            # wait=True lets an in-flight evaluation finish its API call
            self._backend.shutdown(wait=True)
        log.info("All scheduled jobs stopped (%d cancelled)", len(jobs))

    # ─── Helpers ─────────────────────────────────────────────

    def _add_one_shot(self, kind, trigger, fire_at):
        handle = self._backend.add_job(
            self._wrap(kind, trigger),
            "date",
            run_date=fire_at,
            id=kind.value,
            replace_existing=True,
            # A one-shot fires late rather than never (suspend, sleep, busy executor)
            misfire_grace_time=None,
        )
        job = ScheduledJob(kind=kind, handle=handle, fire_at=fire_at)
        self._track(job)
        return job

    def _track(self, job):
        with self._lock:
            previous = self._jobs.get(job.kind)
            self._jobs[job.kind] = job
        if previous is not None and previous.handle is not job.handle:
            previous.state = JobState.STOPPED

    def _wrap(self, kind, trigger):
        def fire():
            try:
                outcome = self._engine.evaluate_and_act(trigger)
                log.debug("Job %s finished: %s", kind.value, outcome.value)
            except Exception as e:
                log.error("Job %s error: %s", kind.value, e, exc_info=True)
            finally:
                if kind is not JobKind.PERIODIC_CHECK:
                    self._retire(kind)
        fire.__name__ = kind.value.replace("-", "_")
        return fire

    def _retire(self, kind):
        with self._lock:
            job = self._jobs.pop(kind, None)
        if job is not None:
            job.state = JobState.FIRED

    def _on_missed(self, event):
        try:
            kind = JobKind(event.job_id)
        except ValueError:
            return
        if kind is JobKind.PERIODIC_CHECK:
            log.warning("Periodic check missed its run at %s — next interval will cover it",
                        event.scheduled_run_time)
            return
        log.warning("Job %s missed its run at %s — not retried", kind.value, event.scheduled_run_time)
        with self._lock:
            job = self._jobs.pop(kind, None)
        if job is not None:
            job.state = JobState.MISSED
