# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tournament creation and deletion - the two places that touch the owner membership outside a transfer."""

import logging

from tourneygate_server.core.permissions import can_create_tournament, can_delete_tournament
from tourneygate_server.core.records import TournamentRecord, utcnow
from tourneygate_server.core.results import ErrorKind, Result, storage_guard
from tourneygate_server.core.roles import TournamentRole
from tourneygate_server.core.tokens import generate_id
from tourneygate_server.services.memberships import (
    create_owner_membership,
    find_membership,
    get_user_memberships,
)
from tourneygate_server.services.users import load_user
from tourneygate_server.storage.base import INVITATIONS, MEMBERSHIPS, TOURNAMENTS, Storage

logger = logging.getLogger(__name__)


@storage_guard
async def create_tournament(store: Storage, name: str, actor_user_id: str) -> Result:
    """Create a tournament owned by the actor. Value is the TournamentRecord."""
    actor = await load_user(store, actor_user_id)
    if actor is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "unknown actor")
    if not can_create_tournament(actor.global_role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{actor.global_role.value} may not create tournaments")

    tournament = TournamentRecord(
        id=generate_id(),
        name=name.strip(),
        created_by=actor.id,
        created_at=utcnow(),
    )
    await store.put(TOURNAMENTS, tournament.id, tournament.to_storage())
    owner = await create_owner_membership(store, tournament.id, actor.id)
    if not owner.ok:
        # a tournament without an owner must not exist
        await store.delete(TOURNAMENTS, tournament.id)
        return owner
    logger.info("Tournament created: id=%s by %s", tournament.id, actor.id)
    return Result.success(tournament)


@storage_guard
async def get_tournament(store: Storage, tournament_id: str) -> Result:
    raw = await store.get(TOURNAMENTS, tournament_id)
    if raw is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"tournament {tournament_id}")
    return Result.success(TournamentRecord.model_validate(raw))


@storage_guard
async def list_user_tournaments(store: Storage, user_id: str) -> Result:
    """(tournament, membership) pairs for every tournament the user belongs to."""
    memberships = await get_user_memberships(store, user_id)
    if not memberships.ok:
        return memberships
    pairs = []
    for membership in memberships.value:
        raw = await store.get(TOURNAMENTS, membership.tournament_id)
        if raw is not None:
            pairs.append((TournamentRecord.model_validate(raw), membership))
    pairs.sort(key=lambda p: p[0].created_at, reverse=True)
    return Result.success(pairs)


@storage_guard
async def delete_tournament(store: Storage, tournament_id: str, actor_user_id: str) -> Result:
    """Owner only. Memberships go, invitations are deactivated and kept for audit."""
    raw = await store.get(TOURNAMENTS, tournament_id)
    if raw is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"tournament {tournament_id}")
    actor = await find_membership(store, tournament_id, actor_user_id)
    if actor is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "actor has no membership")
    if not can_delete_tournament(actor.role):
        return Result.failure(ErrorKind.FORBIDDEN, "only the owner can delete the tournament")

    for invitation in await store.query_by_field(INVITATIONS, "tournament_id", tournament_id):
        if invitation.get("is_active"):
            await store.update(INVITATIONS, invitation["id"], {"is_active": False})
    await store.delete(TOURNAMENTS, tournament_id)
    # tournament first, owner membership last
    memberships = await store.query_by_field(MEMBERSHIPS, "tournament_id", tournament_id)
    memberships.sort(key=lambda m: m.get("role") == TournamentRole.OWNER)
    for membership in memberships:
        await store.delete(MEMBERSHIPS, membership["id"])
    logger.info("Tournament deleted: id=%s by %s", tournament_id, actor_user_id)
    return Result.success(TournamentRecord.model_validate(raw))
