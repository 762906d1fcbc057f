# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Turn failed service results into HTTP errors."""

import logging

from fastapi import HTTPException, status

from tourneygate_server.core.results import ErrorKind, Result

logger = logging.getLogger(__name__)

STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_ROLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.EXPIRED: status.HTTP_410_GONE,
    ErrorKind.DEACTIVATED: status.HTTP_410_GONE,
    ErrorKind.MAX_USES_REACHED: status.HTTP_410_GONE,
    ErrorKind.ALREADY_USED: status.HTTP_410_GONE,
    ErrorKind.ALREADY_MEMBER: status.HTTP_409_CONFLICT,
    ErrorKind.EMAIL_TAKEN: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INCONSISTENT_OWNERSHIP_STATE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: Result):
    """Return result.value or raise the matching HTTPException.

    The response body carries the error code and the user-facing message,
    never result.detail.
    """
    if result.ok:
        return result.value
    if result.fatal:
        logger.critical("Fatal result surfaced to client: %s", result.detail)
    code = STATUS_CODES.get(result.error, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(
        status_code=code,
        detail={"code": result.error.value, "message": result.message},
    )
