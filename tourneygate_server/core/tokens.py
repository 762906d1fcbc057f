# Copyright (C) 2024 TourneyGate Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Invitation tokens and record ids."""

import logging
import random
import secrets
import uuid

logger = logging.getLogger(__name__)

# A-Z, a-z, 2-9 without the look-alikes O, I and l (0 and 1 are not in 2-9)
TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789"
DEFAULT_TOKEN_LENGTH = 32


def generate_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    """Random URL-safe token. Not checked against storage for collisions."""
    if length <= 0:
        raise ValueError("Token length must be positive")
    raw = secrets.token_bytes(length)
    return "".join(TOKEN_ALPHABET[b % len(TOKEN_ALPHABET)] for b in raw)


def _weak_uuid4() -> str:
    return str(uuid.UUID(int=random.getrandbits(128), version=4))


def generate_id() -> str:
    """Version 4 UUID string.

    Falls back to the non-cryptographic ``random`` module when the OS has no
    random source. Ids from the fallback are guessable and must never be used
    as secrets.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        logger.warning("os.urandom unavailable, generating id from non-cryptographic RNG")
        return _weak_uuid4()


def is_valid_token_format(token: str, length: int = DEFAULT_TOKEN_LENGTH) -> bool:
    """Shape check only (length and alphabet). Says nothing about whether the token exists."""
    if not isinstance(token, str) or len(token) != length:
        return False
    return all(c in TOKEN_ALPHABET for c in token)
