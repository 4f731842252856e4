"""
autoclock_core — Attendance clock-in/clock-out automation agent
================================================================
Architecture: APScheduler background timers → one serialized engine.

  constants.py    → Version, timeouts, API paths, status strings
  errors.py       → AuthError / ApiError / QueueError / ConfigError
  config.py       → Logging setup, settings from env / .env, safe_print
  models.py       → Trigger, Outcome, AttendanceSnapshot, OfflineAction
  http_client.py  → HTTP session with retry/pooling + CA bundle
  api.py          → AttendanceClient (token refresh, DTR, clock in/out)
  network.py      → Reachability probe, offline action queue
  engine.py       → AutomationEngine (decision policy + offline replay)
  scheduler.py    → JobScheduler (startup clock-in, clock-out, periodic check)
  app.py          → AgentApp (startup sequence, signals, shutdown)
  runner.py       → main() + auto-restart wrapper
"""
