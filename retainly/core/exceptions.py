"""
Domain errors raised by the engine services.

Services raise these and never build HTTP responses themselves. The REST
layer maps them to status codes in retainly.core.api.exceptions:

    NotFoundError    -> 404
    ConflictError    -> 409
    BadRequestError  -> 400
"""


class RetainlyError(Exception):
    """Base exception for engine errors."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotFoundError(RetainlyError):
    """Raised when a plan, subscription, offer, campaign or assignment is absent."""


class ConflictError(RetainlyError):
    """Raised when a write collides with existing state."""


class BadRequestError(RetainlyError):
    """Raised when input or current state does not allow the operation."""
