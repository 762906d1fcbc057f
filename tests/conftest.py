# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Everything runs against MemoryStorage unless a test builds its own store."""

import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient

from tourneygate_server import rate_limit
from tourneygate_server.auth import create_access_token
from tourneygate_server.core.records import MembershipRecord, utcnow
from tourneygate_server.core.roles import GlobalRole, TournamentRole
from tourneygate_server.core.tokens import generate_id
from tourneygate_server.database import get_store
from tourneygate_server.main import app
from tourneygate_server.services.tournaments import create_tournament
from tourneygate_server.services.users import create_user
from tourneygate_server.storage.base import MEMBERSHIPS
from tourneygate_server.storage.memory import MemoryStorage


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
async def client(store):
    app.dependency_overrides[get_store] = lambda: store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(store):
    async def _make(name: str, global_role: GlobalRole = GlobalRole.USER, is_anonymous: bool = False):
        email = None if is_anonymous else f"{name.lower()}@example.com"
        result = await create_user(
            store, name, email=email, global_role=global_role, is_anonymous=is_anonymous
        )
        assert result.ok, result.detail
        return result.value

    return _make


@pytest.fixture
def add_member(store):
    """Write an accepted membership directly, bypassing invitations."""

    async def _add(tournament_id: str, user, role: TournamentRole, team_ids=()):
        now = utcnow()
        membership = MembershipRecord(
            id=generate_id(),
            user_id=user.id,
            tournament_id=tournament_id,
            role=role,
            team_ids=list(team_ids),
            accepted_at=now,
            created_at=now,
            updated_at=now,
        )
        await store.put(MEMBERSHIPS, membership.id, membership.to_storage())
        return membership

    return _add


@pytest.fixture
async def owner(make_user):
    return await make_user("Olivia")


@pytest.fixture
async def tournament(store, owner):
    result = await create_tournament(store, "Spring Cup", owner.id)
    assert result.ok, result.detail
    return result.value


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


@pytest.fixture
def headers():
    return auth_headers
