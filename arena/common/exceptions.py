"""
Domain exceptions shared by the API and Worker services.
"""


class ArenaError(Exception):
    """Base class for all domain errors."""

    pass


class NotFoundError(ArenaError):
    """Raised when a contest, question, test case or submission is missing."""

    pass


class ValidationError(ArenaError):
    """Raised when input or catalog data fails validation."""

    pass


class AdmissionError(ArenaError):
    """Raised when the contest gate denies a run or submit request."""

    pass


class ContestEndedError(AdmissionError):
    """Raised when a request arrives after the contest end time."""

    pass


class ContestNotStartedError(AdmissionError):
    """Raised when a request arrives before the contest start time."""

    pass


class NotParticipantError(AdmissionError):
    """Raised when a user submits to a contest they have not joined."""

    pass


class InvalidAccessCodeError(AdmissionError):
    """Raised when joining a private contest with a wrong access code."""

    pass


class ParticipantLimitError(AdmissionError):
    """Raised when a contest has reached its participant cap."""

    pass


class InfrastructureError(ArenaError):
    """
    Raised by the execution client when the execution service itself fails.

    Never raised past the verdict engine: a failing test case is
    classified as a runtime error instead.
    """

    pass
