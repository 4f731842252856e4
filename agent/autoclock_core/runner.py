"""
Entry point, command-line options, and auto-restart wrapper.
"""

import argparse
import sys
import time

from .app import AgentApp
from .config import log, safe_print, load_settings, setup_logging
from .constants import AGENT_VERSION
from .errors import ConfigError, QueueError
from .models import Outcome

EXIT_OK = 0
EXIT_STARTUP_ABORTED = 1
EXIT_CONFIG_ERROR = 2


def build_parser():
    parser = argparse.ArgumentParser(
        prog="autoclock",
        description="Automatic clock-in/clock-out against the attendance API.",
    )
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env if present)")
    parser.add_argument("--check", action="store_true",
                        help="Run a single attendance check now and exit")
    parser.add_argument("--clear-queue", action="store_true",
                        help="Drop all queued offline actions and exit")
    parser.add_argument("--version", action="version", version="%(prog)s " + AGENT_VERSION)
    return parser


def main(argv=None):
    """Primary agent entry point. Returns a process exit code."""
    args = build_parser().parse_args(argv)
    safe_print("Attendance Automation v" + AGENT_VERSION)

    settings = load_settings(args.env_file)
    setup_logging(settings.log_level, settings.log_file_path)
    log.info("Loaded settings for %s (work hours=%.1f, interval=%dmin, offline fallback=%s)",
             settings.base_url,
             settings.automation.work_hours_per_shift.total_seconds() / 3600,
             settings.automation.check_interval_minutes,
             settings.automation.offline_fallback_enabled)

    app = AgentApp(settings)

    if args.clear_queue:
        try:
            app.queue.clear_all()
        except QueueError as e:
            log.error("%s", e)
            return EXIT_STARTUP_ABORTED
        return EXIT_OK

    if args.check:
        outcome = app.engine.manual_check()
        log.info("Manual check finished: %s", outcome.value)
        return EXIT_STARTUP_ABORTED if outcome is Outcome.FAILED else EXIT_OK

    return EXIT_OK if app.run() else EXIT_STARTUP_ABORTED


def run_with_auto_restart(argv=None):
    """
    Wrapper that restarts main() after a crash.
    Configuration errors and clean exits are final. The crash counter resets
    if the agent ran for 2+ minutes (not a boot-loop).
    """
    crash_count = 0
    crash_window = 120
    max_rapid_crashes = 10

    while True:
        start_time = time.time()
        try:
            code = main(argv)
            sys.exit(code)
        except ConfigError as e:
            safe_print(f"Configuration error: {e}")
            log.error("Configuration error: %s", e)
            sys.exit(EXIT_CONFIG_ERROR)
        except KeyboardInterrupt:
            safe_print("\nAgent stopped by user.")
            sys.exit(EXIT_OK)
        except Exception as e:
            elapsed = time.time() - start_time
            log.error("Agent crashed after %.0fs: %s", elapsed, e, exc_info=True)

            if elapsed > crash_window:
                crash_count = 0
            crash_count += 1

            if crash_count >= max_rapid_crashes:
                wait = 120
                log.warning("Many rapid crashes (%d). Waiting %ds...", crash_count, wait)
            else:
                wait = min(10 * crash_count, 60)

            log.info("Restarting in %ds (crash %d)...", wait, crash_count)
            time.sleep(wait)
