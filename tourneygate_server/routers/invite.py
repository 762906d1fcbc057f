# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Public invite API - inspect and accept an invitation via the token from the link."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from tourneygate_server.api.errors import unwrap
from tourneygate_server.api.schemas import InvitationStatus, InviteAccept, MembershipResponse, PartyResponse
from tourneygate_server.auth import get_current_user, get_optional_user_id
from tourneygate_server.config import settings
from tourneygate_server.core.records import UserRecord
from tourneygate_server.core.tokens import is_valid_token_format
from tourneygate_server.database import get_store
from tourneygate_server.rate_limit import check_token_rate, rate_limit_invite_dep
from tourneygate_server.services import invitations
from tourneygate_server.services.memberships import find_membership
from tourneygate_server.storage.base import Storage

router = APIRouter(prefix="/invite", tags=["invite"], dependencies=[Depends(rate_limit_invite_dep)])


def _check_token(request: Request, token: str) -> None:
    # malformed tokens never reach storage
    if not is_valid_token_format(token, settings.invite_token_length):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "not_found", "message": "Not found."},
        )
    check_token_rate(request, token)


@router.get("/status", response_model=InvitationStatus)
async def invite_status(
    request: Request,
    token: str = Query(..., description="Invitation token from the invite link"),
    user_id: str | None = Depends(get_optional_user_id),
    store: Storage = Depends(get_store),
) -> InvitationStatus:
    """Show what the invitation grants and who sent it, before the user accepts."""
    _check_token(request, token)
    preview = unwrap(await invitations.validate_invitation(store, token))
    inv = preview.invitation
    is_member = False
    if user_id:
        is_member = await find_membership(store, inv.tournament_id, user_id) is not None
    return InvitationStatus(
        role=inv.role,
        team_ids=inv.team_ids,
        label=inv.label,
        expires_at=inv.expires_at,
        tournament=PartyResponse(**preview.tournament.model_dump()) if preview.tournament else None,
        inviter=PartyResponse(**preview.inviter.model_dump()) if preview.inviter else None,
        is_member=is_member,
    )


@router.post("/accept", response_model=MembershipResponse)
async def invite_accept(
    request: Request,
    body: InviteAccept,
    user: UserRecord = Depends(get_current_user),
    store: Storage = Depends(get_store),
) -> MembershipResponse:
    """Redeem the invitation for the signed-in user. Returns the new membership."""
    _check_token(request, body.token)
    membership = unwrap(
        await invitations.accept_invitation(
            store, body.token, user.id, allow_guests=settings.allow_guest_redemption
        )
    )
    return MembershipResponse(**membership.model_dump())
