"""Typed failures raised by the services and rendered by the API exception handler."""

from fastapi import status


class BookingError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed input (bad offset string, nothing to update, ...)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(BookingError):
    """Business rule violation: slot already booked, past appointment, ..."""

    status_code = status.HTTP_409_CONFLICT


class ForbiddenError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
