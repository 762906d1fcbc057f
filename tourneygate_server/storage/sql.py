# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""SQL storage over SQLAlchemy async sessions.

Each operation runs in its own session and transaction, so writes to different
records are never grouped. Conditional writes are ``UPDATE ... WHERE`` and the
redemption counter is bumped with compare-and-swap on its current value.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import Table, delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourneygate_server.models import Invitation, Tournament, TournamentMembership, User
from tourneygate_server.storage.base import (
    INVITATIONS,
    MEMBERSHIPS,
    TOURNAMENTS,
    USERS,
    Storage,
    StorageError,
)

logger = logging.getLogger(__name__)

_TABLES: dict[str, Table] = {
    USERS: User.__table__,
    TOURNAMENTS: Tournament.__table__,
    MEMBERSHIPS: TournamentMembership.__table__,
    INVITATIONS: Invitation.__table__,
}

MAX_CAS_RETRIES = 5


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _from_db(value: Any) -> Any:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlStorage(Storage):
    """Storage backed by the tables in ``tourneygate_server.models``."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e

    @staticmethod
    def _table(collection: str) -> Table:
        table = _TABLES.get(collection)
        if table is None:
            raise StorageError(f"Unknown collection: {collection}")
        return table

    @staticmethod
    def _values(table: Table, record: dict[str, Any]) -> dict[str, Any]:
        return {k: _to_db(v) for k, v in record.items() if k in table.c}

    @staticmethod
    def _conditions(table: Table, where: dict[str, Any] | None) -> list:
        conds = []
        for field, value in (where or {}).items():
            if field not in table.c:
                raise StorageError(f"Unknown field {field} on {table.name}")
            conds.append(table.c[field] == _to_db(value))
        return conds

    @staticmethod
    def _record(row) -> dict[str, Any] | None:
        if row is None:
            return None
        return {k: _from_db(v) for k, v in row.items()}

    async def _select_one(self, session: AsyncSession, table: Table, key: str):
        result = await session.execute(select(table).where(table.c.id == key))
        return result.mappings().first()

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        table = self._table(collection)
        async with self._transaction() as session:
            return self._record(await self._select_one(session, table, key))

    async def put(self, collection: str, key: str, record: dict[str, Any]) -> None:
        table = self._table(collection)
        values = self._values(table, {**record, "id": key})
        async with self._transaction() as session:
            existing = await self._select_one(session, table, key)
            if existing is None:
                await session.execute(table.insert().values(**values))
            else:
                await session.execute(update(table).where(table.c.id == key).values(**values))

    async def update(
        self,
        collection: str,
        key: str,
        changes: dict[str, Any],
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        table = self._table(collection)
        conds = self._conditions(table, where)
        async with self._transaction() as session:
            result = await session.execute(
                update(table)
                .where(table.c.id == key, *conds)
                .values(**self._values(table, changes))
            )
            if result.rowcount != 1:
                return None
            return self._record(await self._select_one(session, table, key))

    async def delete(
        self,
        collection: str,
        key: str,
        where: dict[str, Any] | None = None,
    ) -> bool:
        table = self._table(collection)
        conds = self._conditions(table, where)
        async with self._transaction() as session:
            result = await session.execute(delete(table).where(table.c.id == key, *conds))
            return result.rowcount == 1

    async def query_by_field(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        table = self._table(collection)
        conds = self._conditions(table, {field: value})
        async with self._transaction() as session:
            result = await session.execute(select(table).where(*conds))
            return [self._record(row) for row in result.mappings().all()]

    async def insert_if_absent(
        self,
        collection: str,
        key: str,
        record: dict[str, Any],
        unique_on: tuple[str, ...],
    ) -> bool:
        table = self._table(collection)
        values = self._values(table, {**record, "id": key})
        conds = self._conditions(table, {field: record.get(field) for field in unique_on})
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    if await self._select_one(session, table, key) is not None:
                        return False
                    if conds:
                        taken = await session.execute(select(table.c.id).where(*conds).limit(1))
                        if taken.first() is not None:
                            return False
                    await session.execute(table.insert().values(**values))
        except IntegrityError:
            # a concurrent insert won the unique constraint
            logger.debug("Insert into %s rejected by unique %s", collection, unique_on)
            return False
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e
        return True

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
        table = self._table(collection)
        conds = self._conditions(table, where)
        for attempt in range(MAX_CAS_RETRIES):
            async with self._transaction() as session:
                row = await self._select_one(session, table, key)
                if row is None or any(row[f] != _to_db(v) for f, v in (where or {}).items()):
                    return None
                current = row[field] or 0
                if ceiling > 0 and current >= ceiling:
                    return None
                values: dict[str, Any] = {field: current + 1}
                if append_field:
                    values[append_field] = [*(row[append_field] or []), append_value]
                result = await session.execute(
                    update(table)
                    .where(table.c.id == key, table.c[field] == current, *conds)
                    .values(**values)
                )
                if result.rowcount == 1:
                    return current + 1
            logger.debug("CAS miss on %s.%s for %s (attempt %d)", collection, field, key, attempt + 1)
        raise StorageError(f"Too much contention on {collection}.{field} for {key}")
