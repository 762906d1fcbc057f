# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Member management API - list, change role, assign teams, remove."""

from fastapi import APIRouter, Depends, HTTPException, status

from tourneygate_server.api.errors import unwrap
from tourneygate_server.api.schemas import MembershipResponse, RoleChange, TeamAssignment
from tourneygate_server.auth import get_current_user
from tourneygate_server.core.permissions import can_view_members
from tourneygate_server.core.records import MembershipRecord, UserRecord
from tourneygate_server.database import get_store
from tourneygate_server.routers.tournaments import require_membership
from tourneygate_server.services import memberships
from tourneygate_server.storage.base import Storage

router = APIRouter(prefix="/tournaments/{tournament_id}/members", tags=["members"])


def _response(m: MembershipRecord) -> MembershipResponse:
    return MembershipResponse(**m.model_dump())


async def _require_viewer(store: Storage, tournament_id: str, user_id: str) -> None:
    membership = await require_membership(store, tournament_id, user_id)
    if not can_view_members(membership.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view members")


async def _require_in_tournament(store: Storage, tournament_id: str, membership_id: str) -> None:
    target = await memberships.load_membership(store, membership_id)
    if target is None or target.tournament_id != tournament_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")


@router.get("", response_model=list[MembershipResponse])
async def list_members(
    tournament_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> list[MembershipResponse]:
    """List members. Owner and co-admins only."""
    await _require_viewer(store, tournament_id, user.id)
    return [_response(m) for m in unwrap(await memberships.get_members(store, tournament_id))]


@router.get("/co-admins", response_model=list[MembershipResponse])
async def list_co_admins(
    tournament_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> list[MembershipResponse]:
    """Co-admins, i.e. the possible targets of an ownership transfer."""
    await _require_viewer(store, tournament_id, user.id)
    return [_response(m) for m in unwrap(await memberships.get_co_admins(store, tournament_id))]


@router.patch("/{membership_id}/role", response_model=MembershipResponse)
async def change_role(
    tournament_id: str,
    membership_id: str,
    body: RoleChange,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> MembershipResponse:
    await _require_in_tournament(store, tournament_id, membership_id)
    result = await memberships.change_role(store, membership_id, body.role, user.id, body.team_ids)
    return _response(unwrap(result))


@router.put("/{membership_id}/teams", response_model=MembershipResponse)
async def update_teams(
    tournament_id: str,
    membership_id: str,
    body: TeamAssignment,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> MembershipResponse:
    """Replace a trainer's team assignments."""
    await _require_in_tournament(store, tournament_id, membership_id)
    result = await memberships.update_trainer_teams(store, membership_id, body.team_ids, user.id)
    return _response(unwrap(result))


@router.delete("/{membership_id}")
async def remove_member(
    tournament_id: str,
    membership_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> dict:
    await _require_in_tournament(store, tournament_id, membership_id)
    unwrap(await memberships.remove_member(store, membership_id, user.id))
    return {"status": "removed", "id": membership_id}
