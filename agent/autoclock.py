"""
Attendance Automation — Clock-in/Clock-out Agent
=================================================
Clocks in shortly after start, clocks out once the shift length has
elapsed, and checks in periodically. Actions attempted while offline are
queued to disk and replayed, in order, once the network is back.

Usage:
    python autoclock.py [--env-file PATH] [--check] [--clear-queue]
"""

from autoclock_core.runner import run_with_auto_restart


if __name__ == "__main__":
    run_with_auto_restart()
