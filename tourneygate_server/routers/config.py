# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Client configuration API - role labels for the UI."""

from fastapi import APIRouter, Depends

from tourneygate_server.api.schemas import RoleLabel
from tourneygate_server.auth import get_optional_user_id
from tourneygate_server.core.permissions import get_assignable_roles
from tourneygate_server.core.roles import GLOBAL_ROLE_LABELS, ROLE_LABELS, TournamentRole

router = APIRouter(prefix="/config", tags=["config"])


@router.get("/roles")
async def get_roles(
    _user_id: str | None = Depends(get_optional_user_id),
) -> dict:
    """
    Tournament and global role labels, plus which roles each tournament role may assign.
    Labels are display-only; behaviour is decided server-side.
    """
    return {
        "tournament_roles": [
            RoleLabel(id=role.value, **labels) for role, labels in ROLE_LABELS.items()
        ],
        "global_roles": [
            RoleLabel(id=role.value, **labels) for role, labels in GLOBAL_ROLE_LABELS.items()
        ],
        "assignable": {
            role.value: [r.value for r in get_assignable_roles(role)] for role in TournamentRole
        },
    }
