# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from tourneygate_server.models.base import Base
from tourneygate_server.models.user import User
from tourneygate_server.models.tournament import Tournament
from tourneygate_server.models.membership import TournamentMembership
from tourneygate_server.models.invitation import Invitation

__all__ = [
    "Base",
    "User",
    "Tournament",
    "TournamentMembership",
    "Invitation",
]
