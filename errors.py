"""
Domain exceptions for the subscription core.

Every exception carries a human-readable message and the HTTP status the
JSON error handler in app.py should answer with. None of them is recovered
inside the core; they propagate to the caller.
"""


class CoreError(Exception):
    """Base exception for subscription core errors"""
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(CoreError):
    """Raised when input is rejected before any write"""
    status_code = 400


class PermissionDeniedError(CoreError):
    """Raised when the actor may not perform the operation"""
    status_code = 403


class NotFoundError(CoreError):
    """Raised when the entity to read or mutate no longer exists"""
    status_code = 404


class ConflictError(CoreError):
    """Raised when the write conflicts with stored state"""
    status_code = 409


class DuplicateUserError(ConflictError):
    """Raised when an auth code with the same email already exists"""
    pass


class StaleWriteError(ConflictError):
    """Raised when a write carries an outdated version"""
    pass


class InvalidTransitionError(ConflictError):
    """Raised when a refund request cannot move to the requested status"""
    pass
