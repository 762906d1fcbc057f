# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ownership transfer, including the compensating write."""

import logging

import pytest

from tourneygate_server.core.results import ErrorKind
from tourneygate_server.core.roles import TournamentRole
from tourneygate_server.services.invitations import InvitationOptions, accept_invitation, create_invitation
from tourneygate_server.services.memberships import get_members, load_membership
from tourneygate_server.services.ownership import transfer_ownership
from tourneygate_server.services.tournaments import create_tournament
from tourneygate_server.services.users import create_user
from tourneygate_server.storage.base import MEMBERSHIPS, StorageError
from tourneygate_server.storage.memory import MemoryStorage


class FlakyStorage(MemoryStorage):
    """Fails promotions to owner; optionally fails the restore as well."""

    def __init__(self, fail_restore: bool = False, raise_on_promote: bool = True) -> None:
        super().__init__()
        self.fail_restore = fail_restore
        self.raise_on_promote = raise_on_promote
        self.armed = False
        self._owner_writes = 0

    async def update(self, collection, key, changes, where=None):
        if self.armed and collection == MEMBERSHIPS and changes.get("role") == TournamentRole.OWNER:
            self._owner_writes += 1
            if self._owner_writes == 1:
                if self.raise_on_promote:
                    raise StorageError("write timed out")
                return None
            if self.fail_restore:
                raise StorageError("still down")
        return await super().update(collection, key, changes, where)


def _owners(members):
    return [m for m in members if m.role == TournamentRole.OWNER]


async def _roles(store, tournament_id):
    members = (await get_members(store, tournament_id)).value
    return {m.user_id: m.role for m in members}


async def test_transfer_to_co_admin(store, owner, tournament, make_user, add_member):
    bob = await make_user("Bob")
    cara = await make_user("Cara")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    bystander = await add_member(tournament.id, cara, TournamentRole.TRAINER, ["t1"])

    result = await transfer_ownership(store, tournament.id, bob.id, owner.id)
    assert result.ok
    assert result.value.old_owner.role == TournamentRole.CO_ADMIN
    assert result.value.new_owner.role == TournamentRole.OWNER

    roles = await _roles(store, tournament.id)
    assert roles == {
        owner.id: TournamentRole.CO_ADMIN,
        bob.id: TournamentRole.OWNER,
        cara.id: TournamentRole.TRAINER,
    }
    untouched = await load_membership(store, bystander.id)
    assert untouched == bystander


async def test_transfer_to_non_co_admin(store, owner, tournament, make_user, add_member):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.COLLABORATOR)
    before = await _roles(store, tournament.id)

    result = await transfer_ownership(store, tournament.id, bob.id, owner.id)
    assert result.error == ErrorKind.INVALID_ROLE
    assert await _roles(store, tournament.id) == before


async def test_transfer_to_self(store, owner, tournament):
    result = await transfer_ownership(store, tournament.id, owner.id, owner.id)
    assert result.error == ErrorKind.INVALID_ROLE


async def test_transfer_to_non_member(store, owner, tournament, make_user):
    stranger = await make_user("Stranger")
    result = await transfer_ownership(store, tournament.id, stranger.id, owner.id)
    assert result.error == ErrorKind.NOT_FOUND


async def test_only_owner_transfers(store, tournament, make_user, add_member):
    bob = await make_user("Bob")
    cara = await make_user("Cara")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    await add_member(tournament.id, cara, TournamentRole.CO_ADMIN)

    result = await transfer_ownership(store, tournament.id, cara.id, bob.id)
    assert result.error == ErrorKind.FORBIDDEN


async def test_non_member_actor(store, tournament, make_user, add_member):
    bob = await make_user("Bob")
    outsider = await make_user("Mallory")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    result = await transfer_ownership(store, tournament.id, bob.id, outsider.id)
    assert result.error == ErrorKind.UNAUTHENTICATED


@pytest.fixture
def flaky_tournament():
    """Owner Olivia and co-admin Bob in a tournament on a FlakyStorage."""

    async def _build(**flags):
        store = FlakyStorage(**flags)
        owner = (await create_user(store, "Olivia", email="olivia@example.com")).value
        bob = (await create_user(store, "Bob", email="bob@example.com")).value
        tournament = (await create_tournament(store, "Spring Cup", owner.id)).value
        created = await create_invitation(
            store,
            InvitationOptions(tournament_id=tournament.id, role=TournamentRole.CO_ADMIN),
            owner,
            "https://app.example.com",
        )
        assert (await accept_invitation(store, created.value.invitation.token, bob.id)).ok
        store.armed = True
        return store, tournament, owner, bob

    return _build


@pytest.mark.parametrize("raise_on_promote, expected", [
    (True, ErrorKind.STORAGE_FAILURE),
    (False, ErrorKind.INVALID_ROLE),
])
async def test_failed_promotion_is_rolled_back(flaky_tournament, raise_on_promote, expected):
    store, tournament, owner, bob = await flaky_tournament(raise_on_promote=raise_on_promote)

    result = await transfer_ownership(store, tournament.id, bob.id, owner.id)
    assert result.error == expected
    assert not result.fatal

    roles = await _roles(store, tournament.id)
    assert roles[owner.id] == TournamentRole.OWNER
    assert roles[bob.id] == TournamentRole.CO_ADMIN


async def test_failed_rollback_is_fatal(flaky_tournament, caplog):
    store, tournament, owner, bob = await flaky_tournament(fail_restore=True)

    with caplog.at_level(logging.CRITICAL):
        result = await transfer_ownership(store, tournament.id, bob.id, owner.id)
    assert result.error == ErrorKind.INCONSISTENT_OWNERSHIP_STATE
    assert result.fatal
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    members = (await get_members(store, tournament.id)).value
    assert _owners(members) == []


async def test_at_most_one_owner_after_transfers(store, owner, tournament, make_user, add_member):
    bob = await make_user("Bob")
    cara = await make_user("Cara")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    await add_member(tournament.id, cara, TournamentRole.CO_ADMIN)

    assert (await transfer_ownership(store, tournament.id, bob.id, owner.id)).ok
    assert (await transfer_ownership(store, tournament.id, cara.id, bob.id)).ok
    assert (await transfer_ownership(store, tournament.id, cara.id, owner.id)).error == ErrorKind.FORBIDDEN

    members = (await get_members(store, tournament.id)).value
    assert [m.user_id for m in _owners(members)] == [cara.id]
