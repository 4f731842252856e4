"""
AutomationEngine — decides and performs at most one clock action per trigger.

Order of checks for every invocation:
  reachability → credentials → today's snapshot → non-working day →
  shift completed → clock-in / clock-out eligibility → one API call.

Every public entry point holds the same lock, so two triggers never hit the
attendance API at the same time. A trigger that arrives mid-evaluation waits.
"""

import threading
from datetime import datetime
from typing import NamedTuple, Optional

from .config import log
from .errors import ApiError, AuthError, AutomationError, QueueError
from .models import ActionKind, Outcome, Trigger


class Decision(NamedTuple):
    action: Optional[ActionKind]
    reason: str
    warn: bool = False


def decide(trigger, snapshot):
    """Pure decision policy. Returns the action to perform (or None) and why."""
    if snapshot.is_non_working_day:
        return Decision(None, "skipped, non-working day")
    if snapshot.is_completed:
        return Decision(None, "skipped, shift is completed")

    if trigger is Trigger.CLOCK_IN:
        if snapshot.has_clocked_in:
            return Decision(None, "already clocked in")
        return Decision(ActionKind.CLOCK_IN, "not clocked in yet")

    if trigger is Trigger.CLOCK_OUT:
        if not snapshot.has_clocked_in:
            return Decision(None, "cannot clock out — not clocked in yet", warn=True)
        if snapshot.has_clocked_out:
            return Decision(None, "already clocked out")
        return Decision(ActionKind.CLOCK_OUT, "clocked in, not clocked out")

    if trigger is Trigger.PERIODIC_CHECK:
        if not snapshot.has_clocked_in:
            return Decision(ActionKind.CLOCK_IN, "not clocked in yet")
        if not snapshot.has_clocked_out:
            return Decision(ActionKind.CLOCK_OUT, "clocked in, not clocked out")
        return Decision(None, "already clocked out")

    raise ValueError(f"Unknown trigger: {trigger!r}")


class AutomationEngine:

    def __init__(self, config, client, probe, queue, clock=None):
        self._config = config
        self._client = client
        self._probe = probe
        self._queue = queue
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._lock = threading.Lock()

    # ─── Public entry points ─────────────────────────────────

    def evaluate_and_act(self, trigger):
        with self._serialized(trigger.value):
            try:
                return self._evaluate(trigger)
            except AutomationError as e:
                log.error("[%s] unhandled %s: %s", trigger.value, type(e).__name__, e)
            except Exception as e:
                log.error("[%s] unexpected error: %s", trigger.value, e, exc_info=True)
            return Outcome.FAILED

    def replay_offline_queue(self):
        with self._serialized("replay"):
            try:
                pending = self._queue.list_unprocessed()
            except QueueError as e:
                log.error("[replay] cannot read offline queue: %s", e)
                return Outcome.FAILED
            if not pending:
                log.info("[replay] no offline actions pending")
                return Outcome.SKIPPED
            return self._replay(pending)

    def manual_check(self):
        """One-off evaluation outside the schedule (CLI --check)."""
        return self.evaluate_and_act(Trigger.PERIODIC_CHECK)

    # ─── Evaluation ──────────────────────────────────────────

    def _serialized(self, label):
        if self._lock.locked():
            log.info("[%s] another evaluation in progress — waiting", label)
        return self._lock

    def _evaluate(self, trigger):
        log.info("[%s] evaluating...", trigger.value)
        reachable = self._probe.is_reachable()

        if not reachable:
            return self._handle_offline(trigger)

        if trigger is Trigger.PERIODIC_CHECK:
            try:
                pending = self._queue.list_unprocessed()
            except QueueError as e:
                log.error("[%s] cannot read offline queue (continuing with live check): %s",
                          trigger.value, e)
                pending = []
            if pending:
                log.info("[%s] network is back — replaying %d offline action(s)",
                         trigger.value, len(pending))
                return self._replay(pending)

        return self._act_online(trigger)

    def _handle_offline(self, trigger):
        if not self._config.offline_fallback_enabled:
            log.warning("[%s] no internet connection and offline fallback disabled — nothing done",
                        trigger.value)
            return Outcome.SKIPPED

        kind = trigger.to_action()
        if kind is None:
            log.info("[%s] offline — periodic check skipped until the network returns", trigger.value)
            return Outcome.SKIPPED

        try:
            self._queue.append(kind, self._clock())
        except QueueError as e:
            log.error("[%s] offline and could not queue action (lost for this cycle): %s",
                      trigger.value, e)
            return Outcome.FAILED
        log.info("[%s] offline — queued %s for replay", trigger.value, kind.value)
        return Outcome.QUEUED

    def _act_online(self, trigger):
        """Credential check, snapshot, decision, and the single API call."""
        label = trigger.value
        try:
            self._ensure_credentials()
        except AuthError as e:
            log.error("[%s] authentication error — no action taken: %s", label, e)
            return Outcome.FAILED

        try:
            snapshot = self._client.fetch_today_attendance()
        except ApiError as e:
            log.error("[%s] could not fetch attendance (reachable=yes): %s", label, e)
            return Outcome.FAILED

        decision = decide(trigger, snapshot)
        if decision.action is None:
            level = log.warning if decision.warn else log.info
            level("[%s] %s (status=%s, reachable=yes)", label, decision.reason, snapshot.status)
            return Outcome.SKIPPED

        return self._perform(label, decision.action, snapshot.status)

    def _ensure_credentials(self):
        if not self._client.has_valid_credentials():
            raise AuthError("No authentication token available")
        self._client.refresh_credentials()

    def _perform(self, label, action, status):
        if action is ActionKind.CLOCK_IN:
            call, done = self._client.clock_in, Outcome.CLOCKED_IN
        else:
            call, done = self._client.clock_out, Outcome.CLOCKED_OUT

        log.info("[%s] performing %s (status=%s)", label, action.value, status)
        try:
            call()
        except ApiError as e:
            log.error("[%s] %s failed, will retry on next trigger: %s", label, action.value, e)
            return Outcome.FAILED
        log.info("[%s] %s successful at %s", label, action.value, self._clock().strftime("%H:%M:%S"))
        return done

    # ─── Offline replay ──────────────────────────────────────

    def _replay(self, pending):
        """Re-run each action in enqueue order; stop at the first failure."""
        for index, action in enumerate(pending):
            label = f"replay #{action.seq} {action.kind.value}"
            log.info("[%s] queued at %s", label, action.occurred_at.isoformat())
            outcome = self._act_online(Trigger.from_action(action.kind))
            if outcome is Outcome.FAILED:
                log.warning("[%s] failed — %d action(s) left for the next check",
                            label, len(pending) - index)
                return Outcome.FAILED
            try:
                self._queue.mark_processed(action)
            except QueueError as e:
                log.error("[%s] could not mark processed: %s", label, e)
                return Outcome.FAILED
        log.info("[replay] %d offline action(s) processed", len(pending))
        return Outcome.REPLAYED
