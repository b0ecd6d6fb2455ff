"""
Exception hierarchy for App Scout.

Input problems are raised before any network call is made.  Collaborator
failures (App Store, Claude, keyword scorer) are all ServiceError so callers
can decide in one place whether to isolate or propagate them.
"""


class AppScoutError(Exception):
    """Base class for every error raised by App Scout."""

    def __init__(self, message: str, details: str = ""):
        self.message = message
        self.details = details
        super().__init__(self.message)


class InputValidationError(AppScoutError):
    """Operator input was rejected (bad app id, empty keywords, bad concurrency)."""


class ServiceError(AppScoutError):
    """A remote collaborator failed or returned an unusable response."""


class AppNotFound(ServiceError):
    """The App Store has no app with the requested id."""


class NetworkError(ServiceError):
    """Transport-level failure talking to a remote service."""
