"""Domain errors raised by the scheduling and delivery services.

Routes never catch these; ``salonbook.main`` maps them to HTTP responses.
"""


class SchedulingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(SchedulingError):
    """Malformed date/time, unknown referenced id, or outside business hours."""

    status_code = 400


class NotFound(SchedulingError):
    status_code = 404


class Conflict(SchedulingError):
    """The requested interval overlaps a booking or blackout window."""

    status_code = 409


class InvalidState(SchedulingError):
    """The entity's current status does not allow the requested transition."""

    status_code = 422
