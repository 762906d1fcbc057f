# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invitation lifecycle: create, validate, accept, deactivate.

Invitations carry no status column. Whether one is pending, deactivated,
expired or exhausted is always computed by ``derive_invitation_state`` from
is_active, expires_at, use_count and max_uses.
"""

import logging
from datetime import timedelta

from pydantic import BaseModel, Field

from tourneygate_server.core.permissions import (
    can_create_invitations,
    get_assignable_roles,
    is_guest,
)
from tourneygate_server.core.records import (
    InvitationRecord,
    InvitationState,
    MembershipRecord,
    TournamentRecord,
    UserRecord,
    derive_invitation_state,
    utcnow,
)
from tourneygate_server.core.results import ErrorKind, Result, storage_guard
from tourneygate_server.core.roles import GlobalRole, TournamentRole
from tourneygate_server.core.tokens import DEFAULT_TOKEN_LENGTH, generate_id, generate_token
from tourneygate_server.services.memberships import MEMBERSHIP_UNIQUE, find_membership
from tourneygate_server.storage.base import (
    INVITATIONS,
    MEMBERSHIPS,
    TOURNAMENTS,
    USERS,
    Storage,
    StorageError,
)

logger = logging.getLogger(__name__)

_STATE_ERRORS = {
    InvitationState.DEACTIVATED: ErrorKind.DEACTIVATED,
    InvitationState.EXPIRED: ErrorKind.EXPIRED,
    InvitationState.EXHAUSTED: ErrorKind.MAX_USES_REACHED,
}


class InvitationOptions(BaseModel):
    """What to invite for. max_uses 0 means unlimited."""

    tournament_id: str
    role: TournamentRole
    team_ids: list[str] = Field(default_factory=list)
    label: str | None = Field(default=None, max_length=255)
    expires_in_days: float = Field(default=7, gt=0)
    max_uses: int = Field(default=1, ge=0)


class Party(BaseModel):
    id: str
    name: str


class InvitationPreview(BaseModel):
    """What the invitee sees before committing."""

    invitation: InvitationRecord
    tournament: Party | None = None
    inviter: Party | None = None


class CreatedInvitation(BaseModel):
    invitation: InvitationRecord
    invite_link: str


def build_invite_link(origin: str, token: str) -> str:
    return f"{origin.rstrip('/')}/invite?token={token}"


async def _find_by_token(store: Storage, token: str) -> InvitationRecord | None:
    rows = await store.query_by_field(INVITATIONS, "token", token)
    return InvitationRecord.model_validate(rows[0]) if rows else None


@storage_guard
async def create_invitation(
    store: Storage,
    options: InvitationOptions,
    actor: UserRecord,
    origin: str,
    token_length: int = DEFAULT_TOKEN_LENGTH,
) -> Result:
    """Create an invitation token and its shareable link. Value is a CreatedInvitation."""
    if is_guest(actor.global_role):
        return Result.failure(ErrorKind.FORBIDDEN, "guests cannot create invitations")
    if options.role == TournamentRole.OWNER:
        return Result.failure(ErrorKind.INVALID_ROLE, "ownership cannot be granted by invitation")

    membership = await find_membership(store, options.tournament_id, actor.id)
    if membership is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "actor has no membership")
    if not can_create_invitations(membership.role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{membership.role.value} may not invite")
    if options.role not in get_assignable_roles(membership.role):
        return Result.failure(
            ErrorKind.FORBIDDEN, f"{membership.role.value} may not assign {options.role.value}"
        )

    now = utcnow()
    invitation = InvitationRecord(
        id=generate_id(),
        token=generate_token(token_length),
        tournament_id=options.tournament_id,
        role=options.role,
        team_ids=list(options.team_ids) if options.role == TournamentRole.TRAINER else [],
        label=options.label,
        created_by=actor.id,
        created_at=now,
        expires_at=now + timedelta(days=options.expires_in_days),
        max_uses=options.max_uses,
        use_count=0,
        used_by=[],
        is_active=True,
    )
    await store.put(INVITATIONS, invitation.id, invitation.to_storage())
    logger.info(
        "Invitation created: id=%s tournament=%s role=%s max_uses=%d by %s",
        invitation.id, invitation.tournament_id, invitation.role.value, invitation.max_uses, actor.id,
    )
    return Result.success(
        CreatedInvitation(invitation=invitation, invite_link=build_invite_link(origin, invitation.token))
    )


async def _preview(store: Storage, invitation: InvitationRecord) -> InvitationPreview:
    tournament = inviter = None
    raw_tournament = await store.get(TOURNAMENTS, invitation.tournament_id)
    if raw_tournament:
        t = TournamentRecord.model_validate(raw_tournament)
        tournament = Party(id=t.id, name=t.name)
    raw_inviter = await store.get(USERS, invitation.created_by)
    if raw_inviter:
        u = UserRecord.model_validate(raw_inviter)
        inviter = Party(id=u.id, name=u.display_name)
    return InvitationPreview(invitation=invitation, tournament=tournament, inviter=inviter)


@storage_guard
async def validate_invitation(store: Storage, token: str) -> Result:
    """Value is an InvitationPreview when the invitation is pending."""
    invitation = await _find_by_token(store, token)
    if invitation is None:
        return Result.failure(ErrorKind.NOT_FOUND, "unknown invitation token")
    state = derive_invitation_state(invitation)
    if state != InvitationState.PENDING:
        return Result.failure(_STATE_ERRORS[state], f"invitation {invitation.id} is {state.value}")
    return Result.success(await _preview(store, invitation))


@storage_guard
async def accept_invitation(
    store: Storage,
    token: str,
    user_id: str,
    allow_guests: bool = True,
) -> Result:
    """Redeem an invitation for user_id. Value is the new MembershipRecord.

    The membership is inserted first, unique per (tournament, user), then one
    use is claimed through the storage's atomic increment, which also requires
    the invitation to still be active. If the claim is rejected or fails the
    membership is deleted again.
    """
    validation = await validate_invitation(store, token)
    if not validation.ok:
        return validation
    invitation: InvitationRecord = validation.value.invitation

    if not allow_guests:
        raw_user = await store.get(USERS, user_id)
        user = UserRecord.model_validate(raw_user) if raw_user else None
        if user is None or user.global_role == GlobalRole.GUEST or user.is_anonymous:
            return Result.failure(ErrorKind.FORBIDDEN, "guest redemption is disabled")

    now = utcnow()
    membership = MembershipRecord(
        id=generate_id(),
        user_id=user_id,
        tournament_id=invitation.tournament_id,
        role=invitation.role,
        team_ids=list(invitation.team_ids),
        invited_by=invitation.created_by,
        invited_at=invitation.created_at,
        accepted_at=now,
        created_at=now,
        updated_at=now,
    )
    inserted = await store.insert_if_absent(
        MEMBERSHIPS, membership.id, membership.to_storage(), unique_on=MEMBERSHIP_UNIQUE
    )
    if not inserted:
        return Result.failure(ErrorKind.ALREADY_MEMBER, f"user {user_id} already in tournament")

    try:
        claimed = await store.increment_if_below(
            INVITATIONS,
            invitation.id,
            "use_count",
            invitation.max_uses,
            append_field="used_by",
            append_value=user_id,
            where={"is_active": True},
        )
    except StorageError:
        await _discard_membership(store, membership)
        raise
    if claimed is None:
        await _discard_membership(store, membership)
        current = await store.get(INVITATIONS, invitation.id)
        state = derive_invitation_state(InvitationRecord.model_validate(current)) if current else None
        error = _STATE_ERRORS.get(state, ErrorKind.MAX_USES_REACHED)
        logger.info("Redemption lost race: invitation=%s user=%s (%s)", invitation.id, user_id, error.value)
        return Result.failure(error, f"invitation {invitation.id} can no longer be redeemed")

    logger.info(
        "Invitation accepted: id=%s user=%s role=%s use=%d",
        invitation.id, user_id, invitation.role.value, claimed,
    )
    return Result.success(membership)


async def _discard_membership(store: Storage, membership: MembershipRecord) -> None:
    try:
        await store.delete(MEMBERSHIPS, membership.id)
    except StorageError:
        logger.error(
            "Could not remove unclaimed membership %s (tournament=%s user=%s)",
            membership.id, membership.tournament_id, membership.user_id,
            exc_info=True,
        )


@storage_guard
async def deactivate_invitation(store: Storage, invitation_id: str, actor_user_id: str) -> Result:
    """Permanently deactivate an invitation nobody has redeemed yet.

    Deactivating an already inactive invitation is a successful no-op.
    Value is the InvitationRecord as stored afterwards.
    """
    raw = await store.get(INVITATIONS, invitation_id)
    if raw is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"invitation {invitation_id}")
    invitation = InvitationRecord.model_validate(raw)

    actor = await find_membership(store, invitation.tournament_id, actor_user_id)
    if actor is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "actor has no membership")
    if not can_create_invitations(actor.role):
        return Result.failure(ErrorKind.FORBIDDEN, f"{actor.role.value} may not manage invitations")

    if not invitation.is_active:
        return Result.success(invitation)

    updated = await store.update(
        INVITATIONS,
        invitation_id,
        {"is_active": False},
        where={"is_active": True, "use_count": 0},
    )
    if updated is None:
        current = await store.get(INVITATIONS, invitation_id)
        if current is not None and not current.get("is_active"):
            return Result.success(InvitationRecord.model_validate(current))
        return Result.failure(ErrorKind.ALREADY_USED, f"invitation {invitation_id} already redeemed")
    logger.info("Invitation deactivated: id=%s by %s", invitation_id, actor_user_id)
    return Result.success(InvitationRecord.model_validate(updated))


@storage_guard
async def list_active_invitations(store: Storage, tournament_id: str) -> Result:
    """Pending invitations of a tournament, newest first."""
    now = utcnow()
    rows = await store.query_by_field(INVITATIONS, "tournament_id", tournament_id)
    invitations = [InvitationRecord.model_validate(raw) for raw in rows]
    pending = [i for i in invitations if derive_invitation_state(i, now) == InvitationState.PENDING]
    pending.sort(key=lambda i: i.created_at, reverse=True)
    return Result.success(pending)


@storage_guard
async def get_invitation_by_token(store: Storage, token: str) -> Result:
    """Raw lookup regardless of state. Value is the invitation or None."""
    return Result.success(await _find_by_token(store, token))
