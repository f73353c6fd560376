"""
Domain errors raised by the services.

The API layer maps each class to one HTTP status; the services never deal
with HTTP themselves.
"""

from datetime import date

from budgety.utils.dates import parse_month


class BudgetyError(Exception):
    """Base class for errors a client can act on."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthenticatedError(BudgetyError):
    """Missing, unknown or expired session."""


class ForbiddenError(BudgetyError):
    """Authenticated, but not allowed to do this."""


class NotFoundError(BudgetyError):
    """Entity missing, or outside the caller's family."""


class InvalidRequestError(BudgetyError):
    """Request is well-formed but breaks a business rule."""


def require_month(month: str) -> date:
    """Parse a ``YYYY-MM`` month or reject the request."""
    try:
        return parse_month(month)
    except ValueError as e:
        raise InvalidRequestError(str(e))
