import threading
import time
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from apscheduler.events import EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler

from autoclock_core.config import AutomationConfig
from autoclock_core.models import Outcome, Trigger
from autoclock_core.scheduler import JobKind, JobScheduler, JobState, create_backend

from conftest import T0


class RecordingEngine:
    def __init__(self, error=None):
        self.triggers = []
        self.error = error

    def evaluate_and_act(self, trigger):
        self.triggers.append(trigger)
        if self.error:
            raise self.error
        return Outcome.SKIPPED


@pytest.fixture
def engine():
    return RecordingEngine()


def make_scheduler(config, engine, backend, clock, start_time=None):
    return JobScheduler(config, engine, backend=backend, clock=clock, start_time=start_time)


def test_clock_in_fires_shortly_after_start(config, engine, backend, clock):
    scheduler = make_scheduler(config, engine, backend, clock)

    job = scheduler.schedule_clock_in()

    [added] = backend.added
    assert added.trigger == "date"
    assert added.kwargs["run_date"] == T0 + timedelta(seconds=5)
    assert job.kind is JobKind.STARTUP_CLOCK_IN
    assert job.state is JobState.ACTIVE


def test_clock_in_disabled_registers_nothing(engine, backend, clock):
    config = AutomationConfig(auto_clock_in_enabled=False)
    scheduler = make_scheduler(config, engine, backend, clock)

    assert scheduler.schedule_clock_in() is None
    assert backend.added == []


def test_clock_out_fires_after_work_hours(config, engine, backend, clock):
    scheduler = make_scheduler(config, engine, backend, clock, start_time=T0)

    job = scheduler.schedule_clock_out()

    assert backend.added[0].kwargs["run_date"] == T0 + timedelta(hours=9)
    assert job.fire_at == T0 + timedelta(hours=9)


def test_clock_out_in_the_past_is_never_scheduled(config, engine, backend, clock, caplog):
    scheduler = make_scheduler(config, engine, backend, clock, start_time=T0 - timedelta(hours=10))

    assert scheduler.schedule_clock_out() is None
    assert backend.added == []
    assert engine.triggers == []
    assert "already passed" in caplog.text


def test_clock_out_disabled_registers_nothing(engine, backend, clock):
    config = AutomationConfig(auto_clock_out_enabled=False)
    scheduler = make_scheduler(config, engine, backend, clock)

    assert scheduler.schedule_clock_out() is None
    assert backend.added == []


def test_periodic_check_uses_configured_interval(engine, backend, clock):
    config = AutomationConfig(check_interval_minutes=7)
    scheduler = make_scheduler(config, engine, backend, clock)

    job = scheduler.start_periodic_check()

    [added] = backend.added
    assert added.trigger == "interval"
    assert added.kwargs["minutes"] == 7
    assert added.kwargs["max_instances"] == 1
    assert job.recurring

    added.func()
    added.func()
    assert engine.triggers == [Trigger.PERIODIC_CHECK, Trigger.PERIODIC_CHECK]


def test_failing_recurring_job_keeps_running(config, backend, clock):
    engine = RecordingEngine(error=RuntimeError("boom"))
    scheduler = make_scheduler(config, engine, backend, clock)
    scheduler.start_periodic_check()

    backend.added[0].func()
    backend.added[0].func()

    assert len(engine.triggers) == 2
    assert JobKind.PERIODIC_CHECK in scheduler.jobs


def test_one_shot_retires_after_firing_even_on_error(config, backend, clock):
    engine = RecordingEngine(error=RuntimeError("boom"))
    scheduler = make_scheduler(config, engine, backend, clock)
    job = scheduler.schedule_clock_in()

    backend.added[0].func()

    assert engine.triggers == [Trigger.CLOCK_IN]
    assert job.state is JobState.FIRED
    assert JobKind.STARTUP_CLOCK_IN not in scheduler.jobs


def test_stop_all_jobs_is_idempotent(config, engine, backend, clock):
    scheduler = make_scheduler(config, engine, backend, clock, start_time=T0)
    jobs = [scheduler.schedule_clock_in(), scheduler.schedule_clock_out(), scheduler.start_periodic_check()]
    scheduler.start()

    scheduler.stop_all_jobs()
    scheduler.stop_all_jobs()

    assert scheduler.jobs == {}
    assert all(j.handle.removed for j in jobs)
    assert all(j.state is JobState.STOPPED for j in jobs)
    assert backend.shutdown_calls == 1


def test_stop_with_no_jobs(config, engine, backend, clock):
    scheduler = make_scheduler(config, engine, backend, clock)

    scheduler.stop_all_jobs()

    assert scheduler.jobs == {}
    assert backend.shutdown_calls == 0


def test_stop_tolerates_job_already_gone(config, engine, backend, clock):
    scheduler = make_scheduler(config, engine, backend, clock)
    job = scheduler.start_periodic_check()
    job.handle.removed = True

    scheduler.stop_all_jobs()

    assert job.state is JobState.STOPPED


def test_real_backend_jobs_are_cancelled(config, engine, clock):
    backend = BackgroundScheduler()
    scheduler = JobScheduler(config, engine, backend=backend, clock=clock, start_time=T0)
    scheduler.schedule_clock_in()
    scheduler.start_periodic_check()
    assert len(backend.get_jobs()) == 2

    scheduler.stop_all_jobs()

    assert backend.get_jobs() == []


# ─── Missed runs ─────────────────────────────────────────────────

def test_one_shots_never_expire_from_lateness(config, engine, backend, clock):
    scheduler = make_scheduler(config, engine, backend, clock, start_time=T0)
    scheduler.schedule_clock_in()
    scheduler.schedule_clock_out()

    assert [job.kwargs["misfire_grace_time"] for job in backend.added] == [None, None]
    assert backend.listeners == [(scheduler._on_missed, EVENT_JOB_MISSED)]


def test_missed_one_shot_is_logged_and_retired(config, engine, backend, clock, caplog):
    scheduler = make_scheduler(config, engine, backend, clock, start_time=T0)
    job = scheduler.schedule_clock_out()
    [(on_missed, _)] = backend.listeners

    on_missed(SimpleNamespace(job_id="shift-clock-out", scheduled_run_time=job.fire_at))

    assert job.state is JobState.MISSED
    assert JobKind.SHIFT_CLOCK_OUT not in scheduler.jobs
    assert "shift-clock-out missed its run" in caplog.text
    assert engine.triggers == []


def test_missed_periodic_check_stays_active(config, engine, backend, clock, caplog):
    scheduler = make_scheduler(config, engine, backend, clock)
    job = scheduler.start_periodic_check()
    [(on_missed, _)] = backend.listeners

    on_missed(SimpleNamespace(job_id="periodic-check", scheduled_run_time=T0))
    on_missed(SimpleNamespace(job_id="someone-else", scheduled_run_time=T0))

    assert job.state is JobState.ACTIVE
    assert scheduler.jobs[JobKind.PERIODIC_CHECK] is job
    assert "Periodic check missed" in caplog.text


def late_clock():
    # Startup clock-in lands a few seconds in the past, as after a suspend
    return datetime.now().astimezone() - timedelta(seconds=10)


class SignallingEngine:
    def __init__(self, delay=0.0):
        self.delay = delay
        self.started = threading.Event()
        self.finished = threading.Event()

    def evaluate_and_act(self, trigger):
        self.started.set()
        time.sleep(self.delay)
        self.finished.set()
        return Outcome.SKIPPED


def test_real_backend_runs_overdue_one_shot(config):
    engine = SignallingEngine()
    scheduler = JobScheduler(config, engine, backend=create_backend(), clock=late_clock)
    job = scheduler.schedule_clock_in()

    scheduler.start()
    try:
        assert engine.finished.wait(timeout=5)
    finally:
        scheduler.stop_all_jobs()

    assert job.state in (JobState.FIRED, JobState.STOPPED)
    assert job.state is not JobState.MISSED


def test_stop_waits_for_in_flight_evaluation(config):
    engine = SignallingEngine(delay=0.3)
    scheduler = JobScheduler(config, engine, backend=create_backend(), clock=late_clock)
    scheduler.schedule_clock_in()
    scheduler.start_periodic_check()

    scheduler.start()
    assert engine.started.wait(timeout=5)
    assert not engine.finished.is_set()

    scheduler.stop_all_jobs()

    assert engine.finished.is_set()
    assert scheduler.jobs == {}
