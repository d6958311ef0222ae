# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import re
import string
from typing import List

from loginbox.errors import ValidationError

FIELD_DELIMITER = ","

# ASCII only: str.isalnum() would let through non-latin letters and digits.
IDENTIFIER_RE = re.compile(r"[A-Za-z0-9]{4,30}")

PASSWORD_MIN_LENGTH = 8


def is_valid_identifier(identifier: object) -> bool:
    return isinstance(identifier, str) and IDENTIFIER_RE.fullmatch(identifier) is not None


def validate_identifier(identifier: object) -> str:
    """Return ``identifier`` unchanged or raise ``ValidationError``."""
    if not isinstance(identifier, str) or not identifier:
        raise ValidationError("Identifiant requis")
    if FIELD_DELIMITER in identifier or "\n" in identifier or "\r" in identifier:
        raise ValidationError("L'identifiant contient un caractère interdit")
    if not is_valid_identifier(identifier):
        raise ValidationError(
            "L'identifiant doit contenir entre 4 et 30 caractères alphanumériques"
        )
    return identifier


def password_policy_violations(password: str) -> List[str]:
    out: List[str] = []
    if len(password or "") < PASSWORD_MIN_LENGTH:
        out.append(f"au moins {PASSWORD_MIN_LENGTH} caractères")
    if not any(c in string.ascii_uppercase for c in password or ""):
        out.append("au moins une majuscule")
    if not any(c in string.digits for c in password or ""):
        out.append("au moins un chiffre")
    return out


def validate_password(password: str) -> str:
    missing = password_policy_violations(password)
    if missing:
        raise ValidationError("Le mot de passe doit contenir " + ", ".join(missing))
    return password
