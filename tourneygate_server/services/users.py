# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User records mirrored from the identity provider."""

import logging

from tourneygate_server.core.permissions import is_global_admin
from tourneygate_server.core.records import UserRecord, utcnow
from tourneygate_server.core.results import ErrorKind, Result, storage_guard
from tourneygate_server.core.roles import GlobalRole
from tourneygate_server.core.tokens import generate_id
from tourneygate_server.storage.base import USERS, Storage

logger = logging.getLogger(__name__)


async def load_user(store: Storage, user_id: str) -> UserRecord | None:
    raw = await store.get(USERS, user_id)
    return UserRecord.model_validate(raw) if raw else None


@storage_guard
async def create_user(
    store: Storage,
    display_name: str,
    email: str | None = None,
    global_role: GlobalRole = GlobalRole.USER,
    is_anonymous: bool = False,
    user_id: str | None = None,
) -> Result:
    """Register a user record. Guests and anonymous accounts never carry an email."""
    if global_role == GlobalRole.GUEST or is_anonymous:
        email = None
    if email:
        email = email.strip().lower()
        if await store.query_by_field(USERS, "email", email):
            return Result.failure(ErrorKind.EMAIL_TAKEN, f"email {email} already registered")
    now = utcnow()
    user = UserRecord(
        id=user_id or generate_id(),
        email=email,
        display_name=display_name.strip(),
        global_role=global_role,
        is_anonymous=is_anonymous,
        created_at=now,
        updated_at=now,
    )
    await store.put(USERS, user.id, user.to_storage())
    return Result.success(user)


@storage_guard
async def get_user(store: Storage, user_id: str) -> Result:
    user = await load_user(store, user_id)
    if user is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"user {user_id}")
    return Result.success(user)


@storage_guard
async def set_global_role(
    store: Storage,
    user_id: str,
    new_role: GlobalRole,
    actor_user_id: str,
) -> Result:
    """Promote or demote an account. Global admins only."""
    actor = await load_user(store, actor_user_id)
    if actor is None:
        return Result.failure(ErrorKind.UNAUTHENTICATED, "unknown actor")
    if not is_global_admin(actor.global_role):
        return Result.failure(ErrorKind.FORBIDDEN, "admin required")
    updated = await store.update(USERS, user_id, {"global_role": new_role, "updated_at": utcnow()})
    if updated is None:
        return Result.failure(ErrorKind.NOT_FOUND, f"user {user_id}")
    logger.info("Global role of %s set to %s by %s", user_id, new_role.value, actor_user_id)
    return Result.success(UserRecord.model_validate(updated))
