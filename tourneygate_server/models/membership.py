# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tournament membership model - a user's role in one tournament."""

from datetime import datetime
from sqlalchemy import JSON, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tourneygate_server.models.base import Base
from tourneygate_server.models.timestamp import UpdatedMixin


class TournamentMembership(Base, UpdatedMixin):
    """Role of a user in a tournament. team_ids only matter for trainers."""

    __tablename__ = "tournament_memberships"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_membership_tournament_user"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    tournament_id: Mapped[str] = mapped_column(
        ForeignKey("tournaments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    team_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    invited_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
