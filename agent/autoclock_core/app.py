"""
AgentApp — wires the collaborators, runs the startup sequence, and blocks
until SIGINT/SIGTERM.

Startup: reachability → credentials → schedule jobs → wait for shutdown.
Shutdown: stop_all_jobs() exactly once; an in-flight evaluation finishes.
"""

import signal
import threading

from .api import AttendanceClient, EnvTokenStore
from .config import log
from .constants import AGENT_VERSION
from .engine import AutomationEngine
from .errors import AuthError, QueueError
from .network import OfflineQueue, ReachabilityProbe
from .scheduler import JobScheduler


class AgentApp:

    def __init__(self, settings, client=None, probe=None, queue=None, engine=None, scheduler=None):
        self._settings = settings
        automation = settings.automation
        self.client = client or AttendanceClient(settings, token_store=EnvTokenStore(settings.env_file))
        self.probe = probe or ReachabilityProbe()
        self.queue = queue or OfflineQueue(settings.offline_data_path)
        self.engine = engine or AutomationEngine(automation, self.client, self.probe, self.queue)
        self.scheduler = scheduler or JobScheduler(automation, self.engine)
        self._shutdown = threading.Event()
        self._stopped = False
        self._stop_lock = threading.Lock()

    def run(self):
        """Start the agent. Blocks until stop() or a termination signal. Returns True if jobs ran."""
        log.info("Starting Attendance Automation v%s...", AGENT_VERSION)
        if not self.start():
            return False
        self._install_signal_handlers()
        log.info("Attendance automation is now running...")
        try:
            self._shutdown.wait()
        finally:
            self.stop_all_jobs()
        return True

    def start(self):
        """Startup checks and job registration. Returns False if startup was aborted."""
        automation = self._settings.automation

        online = self.probe.is_reachable()
        if not online:
            log.warning("No internet connection detected")
            if not automation.offline_fallback_enabled:
                log.error("Offline mode is disabled. Exiting.")
                return False
            log.info("Continuing in offline mode")
        else:
            if not self.client.has_valid_credentials():
                log.error("No access token set up (EMAPTA_TOKEN)")
                return False
            try:
                self.client.refresh_credentials()
            except AuthError as e:
                log.error("Token refresh failed at startup: %s", e)
                return False

        try:
            pending = self.queue.pending_count()
        except QueueError as e:
            log.warning("Offline queue unreadable at startup: %s", e)
            pending = 0
        if pending:
            log.info("%d offline action(s) from a previous session await replay", pending)

        self.scheduler.schedule_clock_in()
        self.scheduler.schedule_clock_out()
        self.scheduler.start_periodic_check()
        self.scheduler.start()
        return True

    def stop(self):
        self._shutdown.set()

    def stop_all_jobs(self):
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
        log.info("Shutting down gracefully...")
        self.scheduler.stop_all_jobs()
        log.info("AgentApp shut down.")

    def _install_signal_handlers(self):
        if threading.current_thread() is not threading.main_thread():
            return

        def handler(signum, _frame):
            log.info("Received %s", signal.Signals(signum).name)
            self.stop()

        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)
