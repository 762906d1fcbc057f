# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Record types read from and written to storage."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tourneygate_server.core.roles import GlobalRole, TournamentRole


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    def to_storage(self) -> dict:
        return self.model_dump()


class UserRecord(_Record):
    id: str
    email: str | None = None
    display_name: str
    global_role: GlobalRole = GlobalRole.USER
    is_anonymous: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("email")
    @classmethod
    def _lowercase_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if v else None


class TournamentRecord(_Record):
    id: str
    name: str
    created_by: str
    created_at: datetime


class MembershipRecord(_Record):
    id: str
    user_id: str
    tournament_id: str
    role: TournamentRole
    team_ids: list[str] = Field(default_factory=list)
    invited_by: str | None = None
    invited_at: datetime | None = None
    accepted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class InvitationRecord(_Record):
    id: str
    token: str
    tournament_id: str
    role: TournamentRole
    team_ids: list[str] = Field(default_factory=list)
    label: str | None = None
    created_by: str
    created_at: datetime
    expires_at: datetime
    max_uses: int = 1  # 0 = unlimited
    use_count: int = 0
    used_by: list[str] = Field(default_factory=list)
    is_active: bool = True


class InvitationState(str, Enum):
    """Lifecycle state of an invitation, derived from its stored fields."""

    PENDING = "pending"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


def derive_invitation_state(invitation: InvitationRecord, now: datetime | None = None) -> InvitationState:
    """The one place invitation state is computed.

    Precedence: deactivated, then expired, then exhausted. A redeemed
    invitation that is still under quota stays pending.
    """
    now = now or utcnow()
    if not invitation.is_active:
        return InvitationState.DEACTIVATED
    if invitation.expires_at < now:
        return InvitationState.EXPIRED
    if invitation.max_uses > 0 and invitation.use_count >= invitation.max_uses:
        return InvitationState.EXHAUSTED
    return InvitationState.PENDING
