# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Credential helpers.

This package provides:
- Password hashing/verification (argon2)
- Identifier rules and the registration password policy
"""
