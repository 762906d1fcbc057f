# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tournament API - create, list, delete, transfer ownership."""

from fastapi import APIRouter, Depends, HTTPException, status

from tourneygate_server.api.errors import unwrap
from tourneygate_server.api.schemas import (
    MembershipResponse,
    OwnershipTransferRequest,
    OwnershipTransferResponse,
    TournamentCreate,
    TournamentResponse,
)
from tourneygate_server.auth import get_current_user
from tourneygate_server.core.permissions import can_view_tournament
from tourneygate_server.core.records import MembershipRecord, UserRecord
from tourneygate_server.core.roles import TournamentRole
from tourneygate_server.database import get_store
from tourneygate_server.services import ownership, tournaments
from tourneygate_server.services.memberships import find_membership
from tourneygate_server.storage.base import Storage

router = APIRouter(prefix="/tournaments", tags=["tournaments"])


async def require_membership(store: Storage, tournament_id: str, user_id: str) -> MembershipRecord:
    """The caller's membership in the tournament; 404 for non-members so ids cannot be enumerated."""
    membership = await find_membership(store, tournament_id, user_id)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tournament not found")
    return membership


@router.post("", response_model=TournamentResponse)
async def create_tournament(
    body: TournamentCreate,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> TournamentResponse:
    """Create a tournament; the caller becomes its owner."""
    tournament = unwrap(await tournaments.create_tournament(store, body.name, user.id))
    return TournamentResponse(**tournament.model_dump(), my_role=TournamentRole.OWNER)


@router.get("", response_model=list[TournamentResponse])
async def list_my_tournaments(
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> list[TournamentResponse]:
    """Tournaments the caller is a member of, newest first."""
    pairs = unwrap(await tournaments.list_user_tournaments(store, user.id))
    return [
        TournamentResponse(**t.model_dump(), my_role=m.role)
        for t, m in pairs
    ]


@router.get("/{tournament_id}", response_model=TournamentResponse)
async def get_tournament(
    tournament_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> TournamentResponse:
    membership = await require_membership(store, tournament_id, user.id)
    if not can_view_tournament(membership.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    tournament = unwrap(await tournaments.get_tournament(store, tournament_id))
    return TournamentResponse(**tournament.model_dump(), my_role=membership.role)


@router.delete("/{tournament_id}")
async def delete_tournament(
    tournament_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> dict:
    """Delete a tournament. Owner only; invitations are deactivated, not deleted."""
    unwrap(await tournaments.delete_tournament(store, tournament_id, user.id))
    return {"status": "deleted", "id": tournament_id}


@router.post("/{tournament_id}/transfer-ownership", response_model=OwnershipTransferResponse)
async def transfer_ownership(
    tournament_id: str,
    body: OwnershipTransferRequest,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> OwnershipTransferResponse:
    """Make an existing co-admin the owner; the caller becomes co-admin."""
    transfer = unwrap(
        await ownership.transfer_ownership(store, tournament_id, body.new_owner_user_id, user.id)
    )
    return OwnershipTransferResponse(
        old_owner=MembershipResponse(**transfer.old_owner.model_dump()),
        new_owner=MembershipResponse(**transfer.new_owner.model_dump()),
    )
