# src/app/routers/errors.py
from __future__ import annotations

import logging

from fastapi import HTTPException, status

from src.app.domain.errors import (
    AlreadyPartneredError,
    CommentPermissionError,
    InvalidInviteCodeError,
    InviteCodeExhaustedError,
    NotAMemberError,
    NotFoundError,
    PartnerbookError,
    ProfileValidationError,
    RecipeAccessError,
    RecipeValidationError,
    SelfInviteError,
    StoreUnavailableError,
    WriteFailedError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[PartnerbookError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AlreadyPartneredError, status.HTTP_409_CONFLICT),
    (SelfInviteError, status.HTTP_400_BAD_REQUEST),
    (InvalidInviteCodeError, status.HTTP_400_BAD_REQUEST),
    (RecipeValidationError, status.HTTP_400_BAD_REQUEST),
    (ProfileValidationError, status.HTTP_400_BAD_REQUEST),
    (NotAMemberError, status.HTTP_403_FORBIDDEN),
    (RecipeAccessError, status.HTTP_403_FORBIDDEN),
    (CommentPermissionError, status.HTTP_403_FORBIDDEN),
    (InviteCodeExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (WriteFailedError, status.HTTP_502_BAD_GATEWAY),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def http_error(exc: PartnerbookError) -> HTTPException:
    """Translate a domain error into the HTTP response the client sees."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            if code >= 500:
                logger.error("Request failed: %s", exc)
            return HTTPException(status_code=code, detail=str(exc))
    logger.error("Unmapped domain error: %r", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
