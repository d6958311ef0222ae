#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from loginbox.auth.validation import password_policy_violations
from loginbox.errors import LoginboxError
from loginbox.infra.credential_repo import store_from_env


def main() -> None:
    store = store_from_env()

    identifier = input("Identifiant: ").strip()
    pw1 = getpass("Mot de passe: ")
    pw2 = getpass("Répéter le mot de passe: ")
    if pw1 != pw2:
        raise SystemExit("Les mots de passe ne correspondent pas")

    missing = password_policy_violations(pw1)
    if missing:
        raise SystemExit("Le mot de passe doit contenir " + ", ".join(missing))

    try:
        store.insert(identifier, pw1)
    except LoginboxError as e:
        raise SystemExit(e.message or "Erreur de stockage") from e

    print(f"OK -> {identifier} ({store!r})")


if __name__ == "__main__":
    main()
