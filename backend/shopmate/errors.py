# Overview: Typed error hierarchy shared by services and routes.

"""
Service errors for ShopMate.

Every error a service can raise on purpose is a subclass of ServiceError and
carries the HTTP status the API answers with. Routes catch by type, never by
message text, and storage engine error codes never leak past the service
layer (a duplicate key becomes Conflict, a lock timeout becomes
TransientStorageFailure).

    ServiceError
    +-- InvalidInput              400
    +-- Unauthorized              401
    +-- InvalidToken              403
    +-- Forbidden                 403
    +-- NotFound                  404
    +-- Conflict                  400
    +-- InsufficientStock         400
    +-- TransientStorageFailure   500
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, client-reportable failures."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class InvalidInput(ServiceError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(ServiceError):
    status_code = 401
    default_message = "Unauthorized"


class InvalidToken(ServiceError):
    """Bad signature, expired, malformed, or wrong kind of token."""
    status_code = 403
    default_message = "Invalid token"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class Conflict(ServiceError):
    # Duplicates are reported as a plain bad request by this API
    status_code = 400
    default_message = "Already exists"


class InsufficientStock(ServiceError):
    status_code = 400
    default_message = "Insufficient stock"


class TransientStorageFailure(ServiceError):
    """Storage was unreachable, locked past the timeout, or failed mid-write."""
    status_code = 500
    default_message = "Database error"


def error_response(exc: ServiceError) -> tuple[dict, int]:
    """Render a ServiceError as the JSON body and status used by every route."""
    return {"error": str(exc)}, exc.status_code
