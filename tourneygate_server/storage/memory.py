# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Process-local storage. Lost on restart; used for single-node setups and tests."""

import asyncio
import copy
from collections import defaultdict
from typing import Any

from tourneygate_server.storage.base import COLLECTIONS, Storage, StorageError, matches


class MemoryStorage(Storage):
    """Dict-of-dicts store. One lock serialises every operation."""

    def __init__(self) -> None:
        self._data: defaultdict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in COLLECTIONS:
            raise StorageError(f"Unknown collection: {collection}")
        return self._data[collection]

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        async with self._lock:
            record = self._collection(collection).get(key)
            return copy.deepcopy(record) if record is not None else None

    async def put(self, collection: str, key: str, record: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        async with self._lock:
            self._collection(collection)[key] = copy.deepcopy(record)

    async def update(
        self,
        collection: str,
        key: str,
        changes: dict[str, Any],
        where: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        async with self._lock:
            record = self._collection(collection).get(key)
            if record is None or not matches(record, where):
                return None
            record.update(copy.deepcopy(changes))
            return copy.deepcopy(record)

    async def delete(
        self,
        collection: str,
        key: str,
        where: dict[str, Any] | None = None,
    ) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            records = self._collection(collection)
            record = records.get(key)
            if record is None or not matches(record, where):
                return False
            del records[key]
            return True

    async def query_by_field(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        async with self._lock:
            return [
                copy.deepcopy(r)
                for r in self._collection(collection).values()
                if r.get(field) == value
            ]

    async def insert_if_absent(
        self,
        collection: str,
        key: str,
        record: dict[str, Any],
        unique_on: tuple[str, ...],
    ) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            records = self._collection(collection)
            wanted = {field: record.get(field) for field in unique_on}
            if key in records or (wanted and any(matches(r, wanted) for r in records.values())):
                return False
            records[key] = copy.deepcopy(record)
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
        await asyncio.sleep(0)
        async with self._lock:
            record = self._collection(collection).get(key)
            if record is None or not matches(record, where):
                return None
            current = record.get(field) or 0
            if ceiling > 0 and current >= ceiling:
                return None
            record[field] = current + 1
            if append_field:
                record[append_field] = [*(record.get(append_field) or []), append_value]
            return record[field]
