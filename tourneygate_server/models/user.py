# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User model. Rows are provisioned from the identity provider."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from tourneygate_server.models.base import Base
from tourneygate_server.models.timestamp import UpdatedMixin


class User(Base, UpdatedMixin):
    """Account identity. Guests and anonymous accounts have no email."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    global_role: Mapped[str] = mapped_column(String(16), default="user", nullable=False)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
