"""
Booking Domain Errors

Every failure the engine can report to a caller. Each error carries the
HTTP status and machine-readable code the API layer renders.
"""

from shared.domain.base import DomainError


class BookingError(DomainError):
    """Base class for booking failures"""

    status_code = 400
    code = 'booking_error'


class InvalidRange(BookingError):
    """Malformed dates, or a stay starting before today"""

    status_code = 400
    code = 'invalid_range'


class InvalidPrice(BookingError):
    """Negative total price"""

    status_code = 400
    code = 'invalid_price'


class OverlapsConfirmed(BookingError):
    """The requested dates overlap a confirmed booking"""

    status_code = 409
    code = 'overlaps_confirmed'

    def __init__(self, message: str, conflicting_ids=()):
        super().__init__(message)
        self.conflicting_ids = tuple(conflicting_ids)


class InvalidTransition(BookingError):
    """The booking's current status does not allow the requested change"""

    status_code = 409
    code = 'invalid_transition'


class NotAuthorized(BookingError):
    """The actor is not allowed to perform the operation"""

    status_code = 403
    code = 'not_authorized'


class NotFound(BookingError):
    """Unknown booking or property"""

    status_code = 404
    code = 'not_found'


class CalendarBusy(BookingError):
    """The property's calendar stayed locked longer than the configured timeout"""

    status_code = 503
    code = 'calendar_busy'
