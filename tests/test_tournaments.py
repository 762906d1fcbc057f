# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tournament and user services."""

from tourneygate_server.core.results import ErrorKind
from tourneygate_server.core.roles import GlobalRole, TournamentRole
from tourneygate_server.services import tournaments, users
from tourneygate_server.services.invitations import InvitationOptions, create_invitation
from tourneygate_server.services.memberships import (
    create_owner_membership,
    find_membership,
    get_members,
    get_user_memberships,
)
from tourneygate_server.storage.base import INVITATIONS, MEMBERSHIPS, TOURNAMENTS, StorageError


async def test_guest_cannot_create_tournament(store, make_user):
    guest = await make_user("Gus", global_role=GlobalRole.GUEST)
    result = await tournaments.create_tournament(store, "Cup", guest.id)
    assert result.error == ErrorKind.FORBIDDEN


async def test_unknown_user_cannot_create_tournament(store):
    result = await tournaments.create_tournament(store, "Cup", "nobody")
    assert result.error == ErrorKind.UNAUTHENTICATED


async def test_list_user_tournaments(store, owner, tournament, make_user, add_member):
    bob = await make_user("Bob")
    other = (await tournaments.create_tournament(store, "Autumn Cup", bob.id)).value
    await add_member(tournament.id, bob, TournamentRole.VIEWER)

    result = await tournaments.list_user_tournaments(store, bob.id)
    assert [(t.id, m.role) for t, m in result.value] == [
        (other.id, TournamentRole.OWNER),
        (tournament.id, TournamentRole.VIEWER),
    ]


async def test_delete_tournament(store, owner, tournament, make_user, add_member):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    created = await create_invitation(
        store, InvitationOptions(tournament_id=tournament.id, role=TournamentRole.VIEWER), owner, "http://x"
    )

    assert (await tournaments.delete_tournament(store, tournament.id, bob.id)).error == ErrorKind.FORBIDDEN
    assert (await tournaments.delete_tournament(store, tournament.id, owner.id)).ok

    assert (await tournaments.get_tournament(store, tournament.id)).error == ErrorKind.NOT_FOUND
    assert (await get_members(store, tournament.id)).value == []
    assert (await get_user_memberships(store, bob.id)).value == []
    kept = await store.get(INVITATIONS, created.value.invitation.id)
    assert kept is not None
    assert not kept["is_active"]


async def test_email_is_unique_and_lowercased(store):
    first = await users.create_user(store, "Ann", email="Ann@Example.com")
    assert first.value.email == "ann@example.com"
    second = await users.create_user(store, "Ann B", email="ann@example.com ")
    assert second.error == ErrorKind.EMAIL_TAKEN


async def test_anonymous_user_has_no_email(store):
    result = await users.create_user(store, "Anon", email="a@example.com", is_anonymous=True)
    assert result.value.email is None


async def test_set_global_role_admin_only(store, make_user):
    admin = await make_user("Ada", global_role=GlobalRole.ADMIN)
    bob = await make_user("Bob")

    assert (await users.set_global_role(store, admin.id, GlobalRole.GUEST, bob.id)).error == ErrorKind.FORBIDDEN
    result = await users.set_global_role(store, bob.id, GlobalRole.ADMIN, admin.id)
    assert result.value.global_role == GlobalRole.ADMIN
    assert (await users.set_global_role(store, "ghost", GlobalRole.USER, admin.id)).error == ErrorKind.NOT_FOUND


async def test_delete_removes_owner_membership_last(store, owner, tournament, make_user, add_member, monkeypatch):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    deleted = []
    delete = store.delete

    async def tracking_delete(collection, key, where=None):
        if collection == MEMBERSHIPS:
            deleted.append((await store.get(MEMBERSHIPS, key))["user_id"])
        elif collection == TOURNAMENTS:
            deleted.append("tournament")
        return await delete(collection, key, where)

    monkeypatch.setattr(store, "delete", tracking_delete)
    assert (await tournaments.delete_tournament(store, tournament.id, owner.id)).ok
    assert deleted == ["tournament", bob.id, owner.id]


async def test_interrupted_delete_keeps_owner(store, owner, tournament, make_user, add_member, monkeypatch):
    bob = await make_user("Bob")
    await add_member(tournament.id, bob, TournamentRole.CO_ADMIN)
    delete = store.delete

    async def flaky_delete(collection, key, where=None):
        if collection == MEMBERSHIPS:
            raise StorageError("write timed out")
        return await delete(collection, key, where)

    monkeypatch.setattr(store, "delete", flaky_delete)
    result = await tournaments.delete_tournament(store, tournament.id, owner.id)
    assert result.error == ErrorKind.STORAGE_FAILURE
    assert (await tournaments.get_tournament(store, tournament.id)).error == ErrorKind.NOT_FOUND
    remaining = await find_membership(store, tournament.id, owner.id)
    assert remaining is not None
    assert remaining.role == TournamentRole.OWNER


async def test_owner_membership_is_unique(store, owner, tournament):
    result = await create_owner_membership(store, tournament.id, owner.id)
    assert result.error == ErrorKind.ALREADY_MEMBER
    assert len((await get_members(store, tournament.id)).value) == 1
