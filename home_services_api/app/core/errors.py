"""
Error taxonomy shared by the service layer.

Services raise subclasses of ``ServiceError``; routers translate them to
HTTP responses with ``raise_http_error``.  ``ServiceError`` derives from
``ValueError`` so that callers which only care about "the request was
rejected" can keep catching ``ValueError``.
"""

from typing import NoReturn

from fastapi import HTTPException, status


class ServiceError(ValueError):
    """Base class for user-visible service errors."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidArgumentError(ServiceError):
    """Malformed or semantically invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(ServiceError):
    """The caller's role does not allow the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class UnauthorizedError(ServiceError):
    """Missing or invalid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ConflictError(ServiceError):
    """A unique field is already taken or a concurrent write won the race."""

    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(ServiceError):
    """The requested booking status change is not an edge of the lifecycle."""

    status_code = status.HTTP_409_CONFLICT


def raise_http_error(exc: ServiceError) -> NoReturn:
    """Re-raise a service error as the matching ``HTTPException``."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    raise HTTPException(status_code=exc.status_code, detail=str(exc), headers=headers) from exc
