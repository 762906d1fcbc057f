# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invitation lifecycle: create, validate, accept, deactivate."""

import asyncio
import logging
from datetime import timedelta

import pytest

from tourneygate_server.core.records import (
    InvitationRecord,
    InvitationState,
    derive_invitation_state,
    utcnow,
)
from tourneygate_server.core.results import ErrorKind
from tourneygate_server.core.roles import GlobalRole, TournamentRole
from tourneygate_server.core.tokens import is_valid_token_format
from tourneygate_server.services import invitations
from tourneygate_server.services.invitations import InvitationOptions
from tourneygate_server.services.memberships import find_membership, get_members
from tourneygate_server.storage.base import INVITATIONS, MEMBERSHIPS, StorageError

ORIGIN = "https://app.example.com"


@pytest.fixture
def invite(store, owner, tournament):
    async def _invite(role=TournamentRole.VIEWER, actor=None, **options):
        options.setdefault("expires_in_days", 7)
        result = await invitations.create_invitation(
            store,
            InvitationOptions(tournament_id=tournament.id, role=role, **options),
            actor or owner,
            ORIGIN,
        )
        return result

    return _invite


def _invitation(**fields) -> InvitationRecord:
    now = utcnow()
    defaults = dict(
        id="inv", token="t" * 32, tournament_id="tour", role=TournamentRole.VIEWER,
        created_by="u", created_at=now, expires_at=now + timedelta(days=1),
    )
    return InvitationRecord(**{**defaults, **fields})


def test_derived_state():
    assert derive_invitation_state(_invitation()) == InvitationState.PENDING
    assert derive_invitation_state(_invitation(use_count=1)) == InvitationState.EXHAUSTED
    assert derive_invitation_state(_invitation(max_uses=0, use_count=50)) == InvitationState.PENDING
    assert derive_invitation_state(_invitation(max_uses=3, use_count=1)) == InvitationState.PENDING


def test_derived_state_precedence():
    past = utcnow() - timedelta(seconds=1)
    assert derive_invitation_state(
        _invitation(is_active=False, expires_at=past, use_count=1)
    ) == InvitationState.DEACTIVATED
    assert derive_invitation_state(
        _invitation(expires_at=past, use_count=1)
    ) == InvitationState.EXPIRED


async def test_create_returns_link(invite):
    result = await invite(TournamentRole.TRAINER, team_ids=["t1"], label="Team Red")
    assert result.ok
    created = result.value
    token = created.invitation.token
    assert is_valid_token_format(token)
    assert created.invite_link == f"{ORIGIN}/invite?token={token}"
    assert created.invitation.team_ids == ["t1"]
    assert created.invitation.use_count == 0
    assert created.invitation.max_uses == 1
    assert created.invitation.is_active


async def test_team_ids_dropped_for_non_trainers(invite):
    result = await invite(TournamentRole.COLLABORATOR, team_ids=["t1"])
    assert result.value.invitation.team_ids == []


async def test_owner_invitation_rejected(invite):
    result = await invite(TournamentRole.OWNER)
    assert result.error == ErrorKind.INVALID_ROLE


async def test_guest_cannot_create(invite, tournament, make_user, add_member):
    guest = await make_user("Gus", global_role=GlobalRole.GUEST)
    await add_member(tournament.id, guest, TournamentRole.CO_ADMIN)
    result = await invite(actor=guest)
    assert result.error == ErrorKind.FORBIDDEN


async def test_non_member_cannot_create(invite, make_user):
    outsider = await make_user("Mallory")
    result = await invite(actor=outsider)
    assert result.error == ErrorKind.UNAUTHENTICATED


async def test_trainer_cannot_create(invite, tournament, make_user, add_member):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.TRAINER)
    result = await invite(actor=bob)
    assert result.error == ErrorKind.FORBIDDEN


async def test_co_admin_cannot_invite_co_admin(invite, tournament, make_user, add_member):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    assert (await invite(TournamentRole.CO_ADMIN, actor=bob)).error == ErrorKind.FORBIDDEN
    assert (await invite(TournamentRole.TRAINER, actor=bob)).ok


async def test_validate_shows_tournament_and_inviter(store, invite, owner, tournament):
    token = (await invite()).value.invitation.token
    result = await invitations.validate_invitation(store, token)
    assert result.ok
    assert result.value.tournament.name == "Spring Cup"
    assert result.value.inviter.id == owner.id


async def test_validate_unknown_token(store):
    result = await invitations.validate_invitation(store, "x" * 32)
    assert result.error == ErrorKind.NOT_FOUND


async def test_expired_regardless_of_remaining_uses(store, invite):
    created = (await invite(max_uses=5)).value.invitation
    await store.update(INVITATIONS, created.id, {"expires_at": utcnow() - timedelta(minutes=1)})
    result = await invitations.validate_invitation(store, created.token)
    assert result.error == ErrorKind.EXPIRED


async def test_accept_creates_membership(store, invite, owner, tournament, make_user):
    bob = await make_user("Bob")
    created = (await invite(TournamentRole.TRAINER, team_ids=["t1"])).value.invitation

    result = await invitations.accept_invitation(store, created.token, bob.id)
    assert result.ok
    membership = result.value
    assert membership.role == TournamentRole.TRAINER
    assert membership.team_ids == ["t1"]
    assert membership.invited_by == owner.id
    assert membership.accepted_at is not None

    stored = await invitations.get_invitation_by_token(store, created.token)
    assert stored.value.use_count == 1
    assert stored.value.used_by == [bob.id]


async def test_single_use_invitation_exhausts(store, invite, tournament, make_user):
    bob = await make_user("Bob")
    cara = await make_user("Cara")
    token = (await invite()).value.invitation.token

    assert (await invitations.accept_invitation(store, token, bob.id)).ok
    result = await invitations.accept_invitation(store, token, cara.id)
    assert result.error == ErrorKind.MAX_USES_REACHED
    assert await find_membership(store, tournament.id, cara.id) is None


async def test_accept_twice_is_already_member(store, invite, make_user):
    bob = await make_user("Bob")
    token = (await invite(max_uses=0)).value.invitation.token
    assert (await invitations.accept_invitation(store, token, bob.id)).ok
    result = await invitations.accept_invitation(store, token, bob.id)
    assert result.error == ErrorKind.ALREADY_MEMBER


async def test_unlimited_invitation(store, invite, make_user):
    token = (await invite(max_uses=0)).value.invitation.token
    for name in ("Bob", "Cara", "Dan"):
        user = await make_user(name)
        assert (await invitations.accept_invitation(store, token, user.id)).ok
    stored = (await invitations.get_invitation_by_token(store, token)).value
    assert stored.use_count == 3
    assert stored.is_active


async def test_concurrent_redemptions_respect_max_uses(store, invite, tournament, make_user):
    users = [await make_user(f"Player{i}") for i in range(6)]
    token = (await invite(max_uses=2)).value.invitation.token

    results = await asyncio.gather(
        *(invitations.accept_invitation(store, token, u.id) for u in users)
    )
    assert sum(r.ok for r in results) == 2
    assert {r.error for r in results if not r.ok} == {ErrorKind.MAX_USES_REACHED}

    stored = (await invitations.get_invitation_by_token(store, token)).value
    assert stored.use_count == 2
    assert len(stored.used_by) == 2
    members = (await get_members(store, tournament.id)).value
    assert len(members) == 3


async def test_same_user_concurrent_redemptions(store, invite, tournament, make_user):
    bob = await make_user("Bob")
    token = (await invite(max_uses=0)).value.invitation.token

    results = await asyncio.gather(
        invitations.accept_invitation(store, token, bob.id),
        invitations.accept_invitation(store, token, bob.id),
    )
    assert sorted(r.ok for r in results) == [False, True]
    assert [r.error for r in results if not r.ok] == [ErrorKind.ALREADY_MEMBER]

    assert len(await store.query_by_field(MEMBERSHIPS, "user_id", bob.id)) == 1
    stored = (await invitations.get_invitation_by_token(store, token)).value
    assert stored.use_count == 1
    assert stored.used_by == [bob.id]


async def test_failed_claim_removes_membership(store, invite, tournament, make_user, monkeypatch):
    bob = await make_user("Bob")
    token = (await invite()).value.invitation.token

    async def contended(*args, **kwargs):
        raise StorageError("Too much contention on invitations.use_count")

    monkeypatch.setattr(store, "increment_if_below", contended)
    result = await invitations.accept_invitation(store, token, bob.id)
    assert result.error == ErrorKind.STORAGE_FAILURE
    assert await find_membership(store, tournament.id, bob.id) is None
    stored = (await invitations.get_invitation_by_token(store, token)).value
    assert stored.use_count == 0


async def test_failed_cleanup_is_logged(store, invite, tournament, make_user, monkeypatch, caplog):
    bob = await make_user("Bob")
    token = (await invite()).value.invitation.token

    async def down(*args, **kwargs):
        raise StorageError("connection reset")

    monkeypatch.setattr(store, "increment_if_below", down)
    monkeypatch.setattr(store, "delete", down)
    with caplog.at_level(logging.ERROR):
        result = await invitations.accept_invitation(store, token, bob.id)
    assert result.error == ErrorKind.STORAGE_FAILURE
    assert any("unclaimed membership" in r.getMessage() for r in caplog.records)


async def test_deactivation_during_redemption(store, invite, owner, tournament, make_user, monkeypatch):
    bob = await make_user("Bob")
    created = (await invite(max_uses=0)).value.invitation
    insert = store.insert_if_absent

    async def insert_then_deactivate(*args, **kwargs):
        inserted = await insert(*args, **kwargs)
        assert (await invitations.deactivate_invitation(store, created.id, owner.id)).ok
        return inserted

    monkeypatch.setattr(store, "insert_if_absent", insert_then_deactivate)
    result = await invitations.accept_invitation(store, created.token, bob.id)
    assert result.error == ErrorKind.DEACTIVATED
    assert await find_membership(store, tournament.id, bob.id) is None

    stored = (await invitations.get_invitation_by_token(store, created.token)).value
    assert not stored.is_active
    assert stored.use_count == 0
    assert stored.used_by == []


async def test_guest_redemption_allowed_by_default(store, invite, make_user):
    guest = await make_user("Gus", global_role=GlobalRole.GUEST)
    token = (await invite(TournamentRole.TRAINER)).value.invitation.token
    result = await invitations.accept_invitation(store, token, guest.id)
    assert result.ok
    assert result.value.role == TournamentRole.TRAINER


async def test_guest_redemption_can_be_disabled(store, invite, make_user):
    guest = await make_user("Gus", global_role=GlobalRole.GUEST)
    anon = await make_user("Anon", is_anonymous=True)
    token = (await invite(max_uses=0)).value.invitation.token
    for user in (guest, anon):
        result = await invitations.accept_invitation(store, token, user.id, allow_guests=False)
        assert result.error == ErrorKind.FORBIDDEN
    stored = (await invitations.get_invitation_by_token(store, token)).value
    assert stored.use_count == 0


async def test_deactivate_is_idempotent(store, invite, owner):
    created = (await invite()).value.invitation
    first = await invitations.deactivate_invitation(store, created.id, owner.id)
    second = await invitations.deactivate_invitation(store, created.id, owner.id)
    assert first.ok and second.ok
    assert not second.value.is_active

    result = await invitations.validate_invitation(store, created.token)
    assert result.error == ErrorKind.DEACTIVATED


async def test_deactivate_used_invitation(store, invite, owner, make_user):
    bob = await make_user("Bob")
    created = (await invite(max_uses=3)).value.invitation
    assert (await invitations.accept_invitation(store, created.token, bob.id)).ok

    result = await invitations.deactivate_invitation(store, created.id, owner.id)
    assert result.error == ErrorKind.ALREADY_USED
    stored = (await invitations.get_invitation_by_token(store, created.token)).value
    assert stored.is_active


async def test_deactivate_requires_manager(store, invite, tournament, make_user, add_member):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.COLLABORATOR)
    created = (await invite()).value.invitation
    result = await invitations.deactivate_invitation(store, created.id, bob.id)
    assert result.error == ErrorKind.FORBIDDEN


async def test_list_active_invitations(store, invite, owner, make_user):
    used = (await invite()).value.invitation
    deactivated = (await invite()).value.invitation
    pending = (await invite()).value.invitation
    bob = await make_user("Bob")
    await invitations.accept_invitation(store, used.token, bob.id)
    await invitations.deactivate_invitation(store, deactivated.id, owner.id)

    result = await invitations.list_active_invitations(store, pending.tournament_id)
    assert [i.id for i in result.value] == [pending.id]


async def test_storage_failure_is_a_result(store, invite, monkeypatch):
    async def broken(*args, **kwargs):
        raise StorageError("connection refused")

    monkeypatch.setattr(store, "query_by_field", broken)
    result = await invitations.validate_invitation(store, "x" * 32)
    assert result.error == ErrorKind.STORAGE_FAILURE
    assert "connection" not in result.message
