# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Global and per-tournament roles."""

from enum import Enum


class GlobalRole(str, Enum):
    """Account-wide capability tier, independent of any tournament."""

    GUEST = "guest"
    USER = "user"
    ADMIN = "admin"


class TournamentRole(str, Enum):
    """Capability tier carried by a membership record."""

    OWNER = "owner"
    CO_ADMIN = "co-admin"
    TRAINER = "trainer"
    COLLABORATOR = "collaborator"
    VIEWER = "viewer"


# Lowest first
ROLE_HIERARCHY: tuple[TournamentRole, ...] = (
    TournamentRole.VIEWER,
    TournamentRole.COLLABORATOR,
    TournamentRole.TRAINER,
    TournamentRole.CO_ADMIN,
    TournamentRole.OWNER,
)

ROLE_LABELS: dict[TournamentRole, dict[str, str]] = {
    TournamentRole.OWNER: {"label": "Owner", "description": "Full control over the tournament"},
    TournamentRole.CO_ADMIN: {"label": "Co-admin", "description": "Can manage the tournament"},
    TournamentRole.TRAINER: {"label": "Trainer", "description": "Manages assigned teams"},
    TournamentRole.COLLABORATOR: {"label": "Helper", "description": "Can enter results"},
    TournamentRole.VIEWER: {"label": "Viewer", "description": "Read-only access"},
}

GLOBAL_ROLE_LABELS: dict[GlobalRole, dict[str, str]] = {
    GlobalRole.GUEST: {"label": "Guest", "description": "Not signed in, local data only"},
    GlobalRole.USER: {"label": "User", "description": "Standard account"},
    GlobalRole.ADMIN: {"label": "Administrator", "description": "Global administration"},
}


def is_higher_role(role_a: TournamentRole, role_b: TournamentRole) -> bool:
    """True if role_a ranks strictly above role_b."""
    return ROLE_HIERARCHY.index(role_a) > ROLE_HIERARCHY.index(role_b)


def is_downgrade(current_role: TournamentRole, new_role: TournamentRole) -> bool:
    return is_higher_role(current_role, new_role)
