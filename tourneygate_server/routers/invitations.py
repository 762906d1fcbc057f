# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invitation management API for owners and co-admins."""

from fastapi import APIRouter, Depends, HTTPException, status

from tourneygate_server.api.errors import unwrap
from tourneygate_server.api.schemas import InvitationCreate, InvitationCreated, InvitationResponse
from tourneygate_server.auth import get_current_user
from tourneygate_server.config import settings
from tourneygate_server.core.permissions import can_view_invitations
from tourneygate_server.core.records import UserRecord
from tourneygate_server.database import get_store
from tourneygate_server.routers.tournaments import require_membership
from tourneygate_server.services import invitations
from tourneygate_server.services.invitations import InvitationOptions
from tourneygate_server.storage.base import INVITATIONS, Storage

router = APIRouter(prefix="/tournaments/{tournament_id}/invitations", tags=["invitations"])


@router.post("", response_model=InvitationCreated)
async def create_invitation(
    tournament_id: str,
    body: InvitationCreate,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> InvitationCreated:
    """Create an invitation link. Defaults: 7 days, single use."""
    options = InvitationOptions(
        tournament_id=tournament_id,
        role=body.role,
        team_ids=body.team_ids,
        label=body.label,
        expires_in_days=body.expires_in_days or settings.invite_default_expires_days,
        max_uses=body.max_uses if body.max_uses is not None else settings.invite_default_max_uses,
    )
    created = unwrap(
        await invitations.create_invitation(
            store, options, user, settings.app_base_url, settings.invite_token_length
        )
    )
    return InvitationCreated(
        invitation=InvitationResponse(**created.invitation.model_dump()),
        invite_link=created.invite_link,
    )


@router.get("", response_model=list[InvitationResponse])
async def list_invitations(
    tournament_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> list[InvitationResponse]:
    """List pending invitations (active, unexpired, under quota)."""
    membership = await require_membership(store, tournament_id, user.id)
    if not can_view_invitations(membership.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to view invitations")
    pending = unwrap(await invitations.list_active_invitations(store, tournament_id))
    return [InvitationResponse(**i.model_dump()) for i in pending]


@router.post("/{invitation_id}/deactivate", response_model=InvitationResponse)
async def deactivate_invitation(
    tournament_id: str,
    invitation_id: str,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> InvitationResponse:
    """Deactivate an unused invitation. Repeating the call is a no-op."""
    raw = await store.get(INVITATIONS, invitation_id)
    if raw is None or raw.get("tournament_id") != tournament_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    invitation = unwrap(await invitations.deactivate_invitation(store, invitation_id, user.id))
    return InvitationResponse(**invitation.model_dump())
