# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Membership store: who holds which role in a tournament.

Every mutation loads the actor's own membership in the same tournament and
asks the permission matrix before writing.
"""

import logging

from tourneygate_server.core.permissions import (
    can_change_role,
    can_manage_tournament,
    can_remove_member,
    can_set_role_to,
)
from tourneygate_server.core.records import MembershipRecord, utcnow
from tourneygate_server.core.results import ErrorKind, Result, storage_guard
from tourneygate_server.core.roles import TournamentRole
from tourneygate_server.core.tokens import generate_id
from tourneygate_server.storage.base import MEMBERSHIPS, Storage

logger = logging.getLogger(__name__)

# one accepted membership per user and tournament
MEMBERSHIP_UNIQUE = ("tournament_id", "user_id")


async def load_membership(store: Storage, membership_id: str) -> MembershipRecord | None:
    raw = await store.get(MEMBERSHIPS, membership_id)
    return MembershipRecord.model_validate(raw) if raw else None


async def find_membership(store: Storage, tournament_id: str, user_id: str) -> MembershipRecord | None:
    """Accepted membership of user_id in tournament_id, if any."""
    for raw in await store.query_by_field(MEMBERSHIPS, "tournament_id", tournament_id):
        if raw.get("user_id") == user_id and raw.get("accepted_at") is not None:
            return MembershipRecord.model_validate(raw)
    return None


@storage_guard
async def create_owner_membership(store: Storage, tournament_id: str, user_id: str) -> Result:
    """Owner membership for a new tournament. Call exactly once, at creation."""
    now = utcnow()
    membership = MembershipRecord(
        id=generate_id(),
        user_id=user_id,
        tournament_id=tournament_id,
        role=TournamentRole.OWNER,
        team_ids=[],
        accepted_at=now,
        created_at=now,
        updated_at=now,
    )
    if not await store.insert_if_absent(
        MEMBERSHIPS, membership.id, membership.to_storage(), unique_on=MEMBERSHIP_UNIQUE
    ):
        return Result.failure(ErrorKind.ALREADY_MEMBER, f"user {user_id} already in tournament")
    logger.info("Owner membership created: tournament=%s user=%s", tournament_id, user_id)
    return Result.success(membership)


@storage_guard
async def get_members(store: Storage, tournament_id: str) -> Result:
    """Accepted memberships of a tournament."""
    rows = await store.query_by_field(MEMBERSHIPS, "tournament_id", tournament_id)
    members = [
        MembershipRecord.model_validate(raw)
        for raw in rows
        if raw.get("accepted_at") is not None
    ]
    members.sort(key=lambda m: m.created_at)
    return Result.success(members)


@storage_guard
async def get_membership(store: Storage, tournament_id: str, user_id: str) -> Result:
    """Value is the membership or None."""
    return Result.success(await find_membership(store, tournament_id, user_id))


@storage_guard
async def get_co_admins(store: Storage, tournament_id: str) -> Result:
    """Candidates for an ownership transfer."""
    rows = await store.query_by_field(MEMBERSHIPS, "tournament_id", tournament_id)
    return Result.success([
        MembershipRecord.model_validate(raw)
        for raw in rows
        if raw.get("role") == TournamentRole.CO_ADMIN and raw.get("accepted_at") is not None
    ])


@storage_guard
async def get_user_memberships(store: Storage, user_id: str) -> Result:
    rows = await store.query_by_field(MEMBERSHIPS, "user_id", user_id)
    return Result.success([
        MembershipRecord.model_validate(raw) for raw in rows if raw.get("accepted_at") is not None
    ])


async def _load_target_and_actor(
    store: Storage, membership_id: str, actor_user_id: str
) -> tuple[MembershipRecord | None, MembershipRecord | None, Result | None]:
    target = await load_membership(store, membership_id)
    if target is None:
        return None, None, Result.failure(ErrorKind.NOT_FOUND, f"membership {membership_id}")
    actor = await find_membership(store, target.tournament_id, actor_user_id)
    if actor is None:
        return target, None, Result.failure(ErrorKind.UNAUTHENTICATED, "actor has no membership")
    return target, actor, None


@storage_guard
async def change_role(
    store: Storage,
    membership_id: str,
    new_role: TournamentRole,
    actor_user_id: str,
    new_team_ids: list[str] | None = None,
) -> Result:
    """Overwrite a member's role. Team assignments are cleared unless the new role is trainer."""
    target, actor, error = await _load_target_and_actor(store, membership_id, actor_user_id)
    if error:
        return error
    if not can_change_role(actor.role, target.role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{actor.role.value} may not act on {target.role.value}")
    if not can_set_role_to(actor.role, target.role, new_role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{actor.role.value} may not assign {new_role.value}")

    if new_role == TournamentRole.TRAINER:
        team_ids = list(new_team_ids) if new_team_ids is not None else target.team_ids
    else:
        team_ids = []
    updated = await store.update(
        MEMBERSHIPS,
        membership_id,
        {"role": new_role, "team_ids": team_ids, "updated_at": utcnow()},
        where={"role": target.role},
    )
    if updated is None:
        # role changed (or row vanished) since the permission check
        return Result.failure(ErrorKind.FORBIDDEN, "membership changed concurrently")
    logger.info(
        "Role changed: membership=%s %s -> %s by %s",
        membership_id, target.role.value, new_role.value, actor_user_id,
    )
    return Result.success(MembershipRecord.model_validate(updated))


@storage_guard
async def update_trainer_teams(
    store: Storage,
    membership_id: str,
    team_ids: list[str],
    actor_user_id: str,
) -> Result:
    target = await load_membership(store, membership_id)
    if target is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"membership {membership_id}")
    if target.role != TournamentRole.TRAINER:
        return Result.failure(ErrorKind.INVALID_ROLE, "only trainers have team assignments")
    actor = await find_membership(store, target.tournament_id, actor_user_id)
    if actor is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "actor has no membership")
    if not can_manage_tournament(actor.role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{actor.role.value} may not assign teams")

    updated = await store.update(
        MEMBERSHIPS,
        membership_id,
        {"team_ids": list(team_ids), "updated_at": utcnow()},
        where={"role": TournamentRole.TRAINER},
    )
    if updated is None:
        return Result.failure(ErrorKind.INVALID_ROLE, "member is no longer a trainer")
    return Result.success(MembershipRecord.model_validate(updated))


@storage_guard
async def remove_member(store: Storage, membership_id: str, actor_user_id: str) -> Result:
    """Delete a membership. The owner can never be removed."""
    target, actor, error = await _load_target_and_actor(store, membership_id, actor_user_id)
    if error:
        return error
    if target.role == TournamentRole.OWNER:
        return Result.failure(ErrorKind.FORBIDDEN, "the owner cannot be removed")
    if not can_remove_member(actor.role, target.role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{actor.role.value} may not remove {target.role.value}")

    removed = await store.delete(MEMBERSHIPS, membership_id, where={"role": target.role})
    if not removed:
        return Result.failure(ErrorKind.FORBIDDEN, "membership changed concurrently")
    logger.info("Member removed: membership=%s by %s", membership_id, actor_user_id)
    return Result.success(target)
