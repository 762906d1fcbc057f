# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tournament model - only what access control needs."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from tourneygate_server.models.base import Base
from tourneygate_server.models.timestamp import TimestampMixin


class Tournament(Base, TimestampMixin):
    """Tournament header. Schedule, teams and results live elsewhere."""

    __tablename__ = "tournaments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
