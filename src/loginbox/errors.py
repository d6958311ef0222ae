# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy shared by the credential store and the HTTP layer."""

from __future__ import annotations


class LoginboxError(Exception):
    """Base class. ``message`` is safe to show to the caller."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LoginboxError):
    status_code = 400


class DuplicateIdentifierError(ValidationError):
    def __init__(self, identifier: str) -> None:
        super().__init__("Cet identifiant existe déjà")
        self.identifier = identifier


class AuthError(LoginboxError):
    status_code = 401

    def __init__(self, message: str = "Identifiant ou mot de passe incorrect") -> None:
        super().__init__(message)


class StorageError(LoginboxError):
    """Read/write/parse failure of the backing store. Never shown verbatim."""

    status_code = 500
