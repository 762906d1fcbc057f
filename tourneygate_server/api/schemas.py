# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tourneygate_server.core.roles import GlobalRole, TournamentRole


# Users
class UserResponse(BaseModel):
    id: str
    email: str | None = None
    display_name: str
    global_role: GlobalRole
    is_anonymous: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GlobalRoleUpdate(BaseModel):
    global_role: GlobalRole


# Tournaments
class TournamentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class TournamentResponse(BaseModel):
    id: str
    name: str
    created_by: str
    created_at: datetime
    my_role: TournamentRole | None = None

    model_config = ConfigDict(from_attributes=True)


# Members
class MembershipResponse(BaseModel):
    id: str
    user_id: str
    tournament_id: str
    role: TournamentRole
    team_ids: list[str]
    invited_by: str | None = None
    invited_at: datetime | None = None
    accepted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleChange(BaseModel):
    role: TournamentRole
    team_ids: list[str] | None = None


class TeamAssignment(BaseModel):
    team_ids: list[str]


class OwnershipTransferRequest(BaseModel):
    new_owner_user_id: str


class OwnershipTransferResponse(BaseModel):
    old_owner: MembershipResponse
    new_owner: MembershipResponse


# Invitations
class InvitationCreate(BaseModel):
    role: TournamentRole
    team_ids: list[str] = Field(default_factory=list)
    label: str | None = Field(default=None, max_length=255)
    expires_in_days: float | None = Field(default=None, gt=0)
    max_uses: int | None = Field(default=None, ge=0)


class InvitationResponse(BaseModel):
    id: str
    token: str
    tournament_id: str
    role: TournamentRole
    team_ids: list[str]
    label: str | None = None
    created_by: str
    created_at: datetime
    expires_at: datetime
    max_uses: int
    use_count: int
    used_by: list[str]
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class InvitationCreated(BaseModel):
    invitation: InvitationResponse
    invite_link: str


class PartyResponse(BaseModel):
    id: str
    name: str


class InvitationStatus(BaseModel):
    """Shown on the accept screen before the user commits."""

    role: TournamentRole
    team_ids: list[str]
    label: str | None = None
    expires_at: datetime
    tournament: PartyResponse | None = None
    inviter: PartyResponse | None = None
    is_member: bool = False


class InviteAccept(BaseModel):
    token: str


# Roles
class RoleLabel(BaseModel):
    id: str
    label: str
    description: str
