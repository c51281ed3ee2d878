"""Service exception → HTTPException translation shared by the routers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from coursehub.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[ServiceError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
)


def http_error(exc: ServiceError) -> HTTPException:
    """Map a service error to its HTTP status; raise the result ``from None``."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    logger.warning(
        "%s rejected (%d): %s", type(exc).__name__, status_code, exc.message
    )
    return HTTPException(status_code=status_code, detail=exc.message)
