# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication API routes. Sign-in itself happens at the identity provider."""

from fastapi import APIRouter, Depends

from tourneygate_server.api.schemas import UserResponse
from tourneygate_server.auth import get_current_user
from tourneygate_server.core.records import UserRecord

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=UserResponse)
async def me(user: UserRecord = Depends(get_current_user)) -> UserResponse:
    """Return the current user."""
    return UserResponse(**user.model_dump())
