# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ownership transfer: owner steps down to co-admin, a co-admin steps up.

Two single-record writes with one compensating write. There is no
transaction spanning both memberships, so a failure between the writes is
rolled back by restoring the old owner, and a failed rollback is reported as
INCONSISTENT_OWNERSHIP_STATE.
"""

import logging

from pydantic import BaseModel

from tourneygate_server.core.permissions import can_transfer_ownership
from tourneygate_server.core.records import MembershipRecord, utcnow
from tourneygate_server.core.results import ErrorKind, Result, storage_guard
from tourneygate_server.core.roles import TournamentRole
from tourneygate_server.services.memberships import find_membership
from tourneygate_server.storage.base import MEMBERSHIPS, Storage, StorageError

logger = logging.getLogger(__name__)


class OwnershipTransfer(BaseModel):
    old_owner: MembershipRecord
    new_owner: MembershipRecord


async def _restore_owner(store: Storage, old_owner: MembershipRecord, reason: str) -> Result:
    try:
        restored = await store.update(
            MEMBERSHIPS,
            old_owner.id,
            {"role": TournamentRole.OWNER, "updated_at": utcnow()},
            where={"role": TournamentRole.CO_ADMIN},
        )
    except StorageError:
        logger.exception("Compensating write raised for membership %s", old_owner.id)
        restored = None
    if restored is None:
        logger.critical(
            "Tournament %s has no owner: promotion failed (%s) and restoring membership %s failed. "
            "Manual repair required.",
            old_owner.tournament_id, reason, old_owner.id,
        )
        return Result.failure(
            ErrorKind.INCONSISTENT_OWNERSHIP_STATE,
            f"tournament {old_owner.tournament_id}: owner demoted, rollback failed ({reason})",
        )
    logger.warning("Ownership transfer rolled back for tournament %s: %s", old_owner.tournament_id, reason)
    return Result.success(MembershipRecord.model_validate(restored))


@storage_guard
async def transfer_ownership(
    store: Storage,
    tournament_id: str,
    new_owner_user_id: str,
    actor_user_id: str,
) -> Result:
    """Hand ownership to an existing co-admin. Value is an OwnershipTransfer."""
    actor = await find_membership(store, tournament_id, actor_user_id)
    if actor is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "actor has no membership")
    if not can_transfer_ownership(actor.role):
        return Result.failure(ErrorKind.FORBIDDEN, "only the owner can transfer ownership")

    target = await find_membership(store, tournament_id, new_owner_user_id)
    if target is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"user {new_owner_user_id} is not a member")
    if target.id == actor.id or target.role != TournamentRole.CO_ADMIN:
        return Result.failure(ErrorKind.INVALID_ROLE, "ownership can only go to a co-admin")

    demoted = await store.update(
        MEMBERSHIPS,
        actor.id,
        {"role": TournamentRole.CO_ADMIN, "updated_at": utcnow()},
        where={"role": TournamentRole.OWNER},
    )
    if demoted is None:
        return Result.failure(ErrorKind.FORBIDDEN, "actor is no longer the owner")

    try:
        promoted = await store.update(
            MEMBERSHIPS,
            target.id,
            {"role": TournamentRole.OWNER, "updated_at": utcnow()},
            where={"role": TournamentRole.CO_ADMIN},
        )
    except StorageError as e:
        logger.exception("Promotion write failed for membership %s", target.id)
        rollback = await _restore_owner(store, actor, str(e))
        if not rollback.ok:
            return rollback
        return Result.failure(ErrorKind.STORAGE_FAILURE, str(e))

    if promoted is None:
        rollback = await _restore_owner(store, actor, "target is no longer a co-admin")
        if not rollback.ok:
            return rollback
        return Result.failure(ErrorKind.INVALID_ROLE, "target is no longer a co-admin")

    logger.info(
        "Ownership of tournament %s transferred from %s to %s",
        tournament_id, actor_user_id, new_owner_user_id,
    )
    return Result.success(
        OwnershipTransfer(
            old_owner=MembershipRecord.model_validate(demoted),
            new_owner=MembershipRecord.model_validate(promoted),
        )
    )
