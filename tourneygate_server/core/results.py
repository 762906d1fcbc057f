# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Operation results and the error taxonomy.

Expected domain outcomes (expired token, missing permission) are returned as
failed results. Exceptions are reserved for storage faults, which the
``storage_guard`` decorator turns into ``STORAGE_FAILURE`` results.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from tourneygate_server.storage.base import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID_ROLE = "invalid_role"
    EXPIRED = "expired"
    DEACTIVATED = "deactivated"
    MAX_USES_REACHED = "max_uses_reached"
    ALREADY_MEMBER = "already_member"
    ALREADY_USED = "already_used"
    EMAIL_TAKEN = "email_taken"
    STORAGE_FAILURE = "storage_failure"
    INCONSISTENT_OWNERSHIP_STATE = "inconsistent_ownership_state"


# Short, user-facing. Never include storage details here.
ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.UNAUTHENTICATED: "You are not a member of this tournament.",
    ErrorKind.FORBIDDEN: "You do not have permission to do this.",
    ErrorKind.NOT_FOUND: "Not found.",
    ErrorKind.INVALID_ROLE: "This role cannot be used here.",
    ErrorKind.EXPIRED: "This invitation has expired.",
    ErrorKind.DEACTIVATED: "This invitation has been deactivated.",
    ErrorKind.MAX_USES_REACHED: "This invitation was already used.",
    ErrorKind.ALREADY_MEMBER: "You are already a member of this tournament.",
    ErrorKind.ALREADY_USED: "This invitation was already used and can no longer be deactivated.",
    ErrorKind.EMAIL_TAKEN: "This email address is already registered.",
    ErrorKind.STORAGE_FAILURE: "Something went wrong. Please try again.",
    ErrorKind.INCONSISTENT_OWNERSHIP_STATE: (
        "Ownership transfer failed and could not be rolled back. An administrator has been notified."
    ),
}


class Result(BaseModel, Generic[T]):
    """Success flag plus either a value or one error kind."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    ok: bool
    value: T | None = None
    error: ErrorKind | None = None
    detail: str | None = None  # internal, for logs

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, detail: str | None = None) -> "Result":
        return cls(ok=False, error=error, detail=detail)

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        return ERROR_MESSAGES[self.error]

    @property
    def fatal(self) -> bool:
        """Needs manual remediation; must not be retried."""
        return self.error == ErrorKind.INCONSISTENT_OWNERSHIP_STATE


def storage_guard(func: Callable[..., Awaitable[Result]]) -> Callable[..., Awaitable[Result]]:
    """Re-wrap storage faults and corrupt records as STORAGE_FAILURE results."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Result:
        try:
            return await func(*args, **kwargs)
        except StorageError as e:
            logger.exception("Storage failure in %s", func.__name__)
            return Result.failure(ErrorKind.STORAGE_FAILURE, str(e))
        except ValidationError as e:
            logger.exception("Corrupt record in %s", func.__name__)
            return Result.failure(ErrorKind.STORAGE_FAILURE, f"corrupt record: {e.error_count()} errors")

    return wrapper
