# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
from functools import lru_cache

import bcrypt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError


LOG = logging.getLogger(__name__)

# Hashes written by the original Node server (bcryptjs).
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def _build_hasher() -> PasswordHasher:
    kwargs = {}
    time_cost = os.getenv("LOGINBOX_ARGON2_TIME_COST")
    memory_cost = os.getenv("LOGINBOX_ARGON2_MEMORY_COST")
    if time_cost:
        kwargs["time_cost"] = int(time_cost)
    if memory_cost:
        kwargs["memory_cost"] = int(memory_cost)
    return PasswordHasher(**kwargs)


_PH = _build_hasher()


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return _PH.hash("loginbox-dummy-password")


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Mot de passe vide")
    return _PH.hash(plain)


def _verify_bcrypt(hash_value: str, plain: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hash_value.encode("ascii"))
    except ValueError:
        # Malformed hash, or a password bcrypt refuses (over 72 bytes).
        return False


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    if hash_value.startswith(BCRYPT_PREFIXES):
        return _verify_bcrypt(hash_value, plain)
    try:
        return _PH.verify(hash_value, plain)
    except VerificationError:
        return False
    except InvalidHashError:
        LOG.warning("Stored password hash could not be parsed")
        return False


def burn_verification(plain: str) -> None:
    """Spend one verification's worth of time, for identifiers with no record."""
    verify_password(_dummy_hash(), plain or "x")
