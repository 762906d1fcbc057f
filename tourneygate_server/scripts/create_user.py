#!/usr/bin/env python3
# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create a user record and print a bearer token for it.

Run: python -m tourneygate_server.scripts.create_user [--admin]
For development setups without an identity provider.
"""

import asyncio
import sys

from tourneygate_server.auth import create_access_token
from tourneygate_server.core.roles import GlobalRole
from tourneygate_server.database import get_store, init_db
from tourneygate_server.services.users import create_user


async def main():
    await init_db()
    display_name = input("Display name: ").strip()
    email = input("Email: ").strip()
    if not display_name or not email:
        print("All fields required")
        sys.exit(1)
    role = GlobalRole.ADMIN if "--admin" in sys.argv[1:] else GlobalRole.USER

    result = await create_user(get_store(), display_name, email=email, global_role=role)
    if not result.ok:
        print(result.message)
        sys.exit(1)
    user = result.value
    print(f"User created: {user.id} ({role.value})")
    print(f"Token: {create_access_token({'sub': user.id})}")


if __name__ == "__main__":
    asyncio.run(main())
