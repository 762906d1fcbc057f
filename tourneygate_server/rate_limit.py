# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Sliding-window rate limits for the public invite endpoints.

Each request is charged to two windows: one per client address, which caps
token guessing, and one per well-formed token, which caps hammering a single
leaked link from many addresses.
"""

import math
import time
from collections import defaultdict, deque
from dataclasses import dataclass

from fastapi import HTTPException, Request, status


@dataclass(frozen=True)
class Limit:
    per_client: int
    per_token: int
    window: float = 60.0


LIMITS: dict[str, Limit] = {
    "/api/v1/invite/status": Limit(per_client=30, per_token=60),
    "/api/v1/invite/accept": Limit(per_client=10, per_token=20),
}


class SlidingWindow:
    """Recent hit timestamps per key."""

    def __init__(self) -> None:
        self._hits: defaultdict[tuple[str, str], deque[float]] = defaultdict(deque)

    def hit(self, key: tuple[str, str], limit: int, window: float) -> float | None:
        """Record a hit unless the key is over its limit; then return seconds to wait."""
        now = time.monotonic()
        hits = self._hits[key]
        while hits and hits[0] <= now - window:
            hits.popleft()
        if len(hits) >= limit:
            return hits[0] + window - now
        hits.append(now)
        return None

    def clear(self) -> None:
        self._hits.clear()


_clients = SlidingWindow()
_tokens = SlidingWindow()


def _client_key(request: Request) -> str:
    """Prefer X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host or "unknown"
    return "unknown"


def _path(request: Request) -> str:
    return request.url.path.rstrip("/")


def _reject(wait: float) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={"code": "rate_limited", "message": "Too many requests. Please try again later."},
        headers={"Retry-After": str(max(1, math.ceil(wait)))},
    )


def reset() -> None:
    _clients.clear()
    _tokens.clear()


async def rate_limit_invite_dep(request: Request) -> None:
    """Router dependency: per-client window on the invite endpoints."""
    path = _path(request)
    limit = LIMITS.get(path)
    if limit is None:
        return
    wait = _clients.hit((_client_key(request), path), limit.per_client, limit.window)
    if wait is not None:
        raise _reject(wait)


def check_token_rate(request: Request, token: str) -> None:
    """Per-token window. Call after the token shape check so junk never gets a bucket."""
    path = _path(request)
    limit = LIMITS.get(path)
    if limit is None:
        return
    wait = _tokens.hit((token, path), limit.per_token, limit.window)
    if wait is not None:
        raise _reject(wait)
