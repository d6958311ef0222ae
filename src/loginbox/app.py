# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import threading

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field

from loginbox.auth.validation import validate_identifier, validate_password
from loginbox.errors import AuthError, LoginboxError, StorageError
from loginbox.infra.credential_repo import CredentialStore, store_from_env

LOG = logging.getLogger(__name__)

LOGIN_OK_MESSAGE = "Connexion réussie"
REGISTER_OK_MESSAGE = "Compte créé avec succès"
INVALID_REQUEST_MESSAGE = "Requête invalide"
INTERNAL_ERROR_MESSAGE = "Erreur interne du serveur"

app = FastAPI(title="loginbox")

STATE = {"store": None}
_STATE_LOCK = threading.Lock()


def get_store() -> CredentialStore:
    """Process-wide store, built from the environment on first use."""
    with _STATE_LOCK:
        if STATE["store"] is None:
            STATE["store"] = store_from_env()
        return STATE["store"]


class Credentials(BaseModel):
    # The original form posts ``username``.
    identifier: str = Field(validation_alias=AliasChoices("identifier", "username"))
    password: str


# ------------------ Error mapping ------------------


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": INVALID_REQUEST_MESSAGE})


@app.exception_handler(StorageError)
async def _storage_error_handler(request: Request, exc: StorageError):
    LOG.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})


@app.exception_handler(LoginboxError)
async def _loginbox_error_handler(request: Request, exc: LoginboxError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception):
    LOG.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})


# ------------------ Routes ------------------


@app.post("/login")
def login_post(creds: Credentials, store: CredentialStore = Depends(get_store)):
    validate_identifier(creds.identifier)
    if not store.verify(creds.identifier, creds.password):
        LOG.info("Failed login for %s", creds.identifier)
        raise AuthError()
    LOG.info("Login for %s", creds.identifier)
    return {"message": LOGIN_OK_MESSAGE}


@app.post("/register")
def register_post(creds: Credentials, store: CredentialStore = Depends(get_store)):
    validate_identifier(creds.identifier)
    validate_password(creds.password)
    store.insert(creds.identifier, creds.password)
    return {"message": REGISTER_OK_MESSAGE}
