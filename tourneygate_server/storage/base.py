# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Storage collaborator interface.

Records are plain dicts keyed by their ``id``. Implementations must make every
single-record write atomic. There are no multi-record transactions.
"""

from abc import ABC, abstractmethod
from typing import Any

USERS = "users"
TOURNAMENTS = "tournaments"
MEMBERSHIPS = "memberships"
INVITATIONS = "invitations"

COLLECTIONS = (USERS, TOURNAMENTS, MEMBERSHIPS, INVITATIONS)


class StorageError(Exception):
    """Storage unreachable, write rejected, or contention beyond retry."""


class Storage(ABC):
    """Abstract key-value store with conditional writes."""

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def put(self, collection: str, key: str, record: dict[str, Any]) -> None:
        """Insert or fully overwrite a record."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        key: str,
        changes: dict[str, Any],
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Apply changes if the record exists and every ``where`` field matches.

        Returns the updated record, or None when missing or the condition failed.
        """

    @abstractmethod
    async def delete(
        self,
        collection: str,
        key: str,
        where: dict[str, Any] | None = None,
    ) -> bool:
        """Delete if present and ``where`` matches. True if a record was removed."""

    @abstractmethod
    async def query_by_field(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def insert_if_absent(
        self,
        collection: str,
        key: str,
        record: dict[str, Any],
        unique_on: tuple[str, ...],
    ) -> bool:
        """Insert unless a record with the same ``unique_on`` values exists.

        The check and the insert are one atomic step. Returns False when
        another record already holds those values.
        """

    @abstractmethod
    async def increment_if_below(
        self,
        collection: str,
        key: str,
        field: str,
        ceiling: int,
        append_field: str | None = None,
        append_value: Any = None,
        where: dict[str, Any] | None = None,
    ) -> int | None:
        """Atomically bump an integer field unless it has reached ``ceiling``.

        A ceiling of 0 means unlimited. When ``append_field`` is given,
        ``append_value`` is appended to that list field in the same write.
        Returns the new value, or None if the record is missing, at the
        ceiling, or fails the ``where`` condition.
        """


def matches(record: dict[str, Any], where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    return all(record.get(field) == value for field, value in where.items())
