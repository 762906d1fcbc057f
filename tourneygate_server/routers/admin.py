# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Admin API - account-wide role management. Requires a global admin."""

from fastapi import APIRouter, Depends, HTTPException

from tourneygate_server.api.errors import unwrap
from tourneygate_server.api.schemas import GlobalRoleUpdate, UserResponse
from tourneygate_server.auth import get_current_user
from tourneygate_server.core.permissions import is_global_admin
from tourneygate_server.core.records import UserRecord
from tourneygate_server.database import get_store
from tourneygate_server.services import users
from tourneygate_server.storage.base import Storage

router = APIRouter(prefix="/admin", tags=["admin"])


async def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Dependency: require admin user."""
    if not is_global_admin(user.global_role):
        raise HTTPException(status_code=403, detail="Admin required")
    return user


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    _admin: UserRecord = Depends(require_admin),
    store: Storage = Depends(get_store),
) -> UserResponse:
    user = unwrap(await users.get_user(store, user_id))
    return UserResponse(**user.model_dump())


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def set_global_role(
    user_id: str,
    body: GlobalRoleUpdate,
    admin: UserRecord = Depends(require_admin),
    store: Storage = Depends(get_store),
) -> UserResponse:
    """Promote or demote an account (guest, user, admin)."""
    user = unwrap(await users.set_global_role(store, user_id, body.global_role, admin.id))
    return UserResponse(**user.model_dump())
