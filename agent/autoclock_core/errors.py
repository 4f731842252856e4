"""
Error taxonomy. Collaborators raise these; the engine converts them to log lines.
"""


class AutomationError(Exception):
    """Base class for every error the agent knows how to handle."""


class AuthError(AutomationError):
    """Missing, invalid, or unrefreshable credentials."""


class ApiError(AutomationError):
    """A remote attendance call failed or timed out."""


class QueueError(AutomationError):
    """The offline queue could not be read or written."""


class ConfigError(AutomationError):
    """Invalid or missing configuration. Fatal at startup only."""
