# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invitation model - redeemable link token for joining a tournament."""

from datetime import datetime
from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tourneygate_server.models.base import Base
from tourneygate_server.models.timestamp import TimestampMixin


class Invitation(Base, TimestampMixin):
    """Invitation token. Never deleted; kept for audit after expiry or deactivation."""

    __tablename__ = "invitations"
    __table_args__ = (
        CheckConstraint("max_uses = 0 OR use_count <= max_uses", name="ck_invitations_use_count_within_max"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    # no FK: rows outlive their tournament
    tournament_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    team_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str] = mapped_column(String(36), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_uses: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    use_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    used_by: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
