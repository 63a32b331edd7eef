"""
Error taxonomy for the trip core.

Route handlers map these to HTTP responses in main.py; everything else
propagates as-is.
"""


class TripError(Exception):
    """Base class for trip-core errors"""


class MalformedInput(TripError):
    """Raised by strict callers when a payload cannot be used at all.

    The normalizers never raise this themselves; they degrade to an empty trip.
    """


class UpstreamFailure(TripError):
    """AI generation or another upstream collaborator failed"""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider


class PreconditionViolation(TripError):
    """A trip would be persisted in a state that must never be stored"""
