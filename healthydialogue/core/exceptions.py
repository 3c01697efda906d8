"""
Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; ``main`` registers a single
handler that renders them in the same envelope as ``HTTPException``.
"""


class DomainError(Exception):
    """Base class for expected, caller-facing failures"""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Referenced record does not exist or is not owned by the caller"""
    status_code = 404


class ForbiddenError(DomainError):
    """No active enrollment authorizes the action"""
    status_code = 403


class ConflictError(DomainError):
    """Request collides with existing state (e.g. a pending access request)"""
    status_code = 409


class ValidationError(DomainError):
    """Missing or malformed input"""
    status_code = 400
