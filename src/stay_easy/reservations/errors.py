# stay_easy/reservations/errors.py


class BookingError(Exception):
    """Base class for every error the engine reports to a caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    status_code = 400


class AuthorizationError(BookingError):
    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class ConflictError(BookingError):
    status_code = 409


class RoomUnavailableError(ConflictError):
    """A conditional room update matched no row: someone else got there first."""


class InvalidTransitionError(ConflictError):
    """The reservation or block booking is not in a state that allows the operation."""


class PaymentGatewayError(BookingError):
    status_code = 502


class SignatureError(PaymentGatewayError):
    status_code = 400


class PersistenceError(BookingError):
    status_code = 500
