"""
Constants, timeouts, endpoints, and attendance status strings.
"""

AGENT_VERSION = "1.0.0"
USER_AGENT = "AttendanceAutomation/" + AGENT_VERSION

# ─── Scheduling ──────────────────────────────────────────────────
STARTUP_CLOCK_IN_DELAY_SEC = 5     # Let other subsystems settle before the first clock-in
DEFAULT_WORK_HOURS = 9
DEFAULT_CHECK_INTERVAL_MIN = 5
MAX_WORK_HOURS = 24
MAX_CHECK_INTERVAL_MIN = 24 * 60

# ─── Network ─────────────────────────────────────────────────────
API_TIMEOUT = 30                   # Attendance API calls
PROBE_TIMEOUT = 5                  # Per reachability endpoint
PROBE_URLS = (
    "https://www.google.com",
    "https://www.cloudflare.com",
    "https://1.1.1.1",
)

# ─── Attendance API ──────────────────────────────────────────────
TOKEN_PATH = "/auth/v1/auth/protocol/openid-connect/token"
ATTENDANCE_LOGIN_PATH = "/time-and-attendance/ta/v1/dtr/attendance/login"
ATTENDANCE_LOGOUT_PATH = "/time-and-attendance/ta/v1/dtr/attendance/logout"
OAUTH_CLIENT_ID = "EMAPTA-MYEMAPTAWEB"
OAUTH_SCOPE = "openid"


class AttendanceStatus:
    """Status strings as returned by the attendance API (compare case-insensitively)."""

    REST_DAY = "Rest Day"
    ON_LEAVE = "On leave"
    COMPLETED = "Completed"
    HOLIDAY = "Holiday"
    IN_PROGRESS = "In Progress"
    NOT_STARTED = "Not started"
