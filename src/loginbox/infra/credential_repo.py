# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Credential store: ``exists`` / ``verify`` / ``insert`` over pluggable backends.

- csv: ``username,password`` header, then one ``identifier,hash`` per line
- yaml: ``{"version": 1, "users": {identifier: {"password_hash": ...}}}``
- sqlite (or any SQLAlchemy URL): ``credentials`` table, UNIQUE identifier

File backends read the whole record set on every call and rewrite the whole
file on insert (temp file + ``os.replace``), so a failed write leaves the
previous content in place.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

import yaml
from sqlalchemy import Column, Integer, String, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from loginbox.auth.passwords import burn_verification, hash_password, verify_password
from loginbox.auth.validation import FIELD_DELIMITER, is_valid_identifier, validate_identifier
from loginbox.errors import DuplicateIdentifierError, StorageError, ValidationError

LOG = logging.getLogger(__name__)

CSV_HEADER = "username,password"
YAML_VERSION = 1
STORE_KINDS = ("csv", "yaml", "sqlite")


@dataclass(frozen=True)
class CredentialRecord:
    identifier: str
    password_hash: str


class CredentialStore(Protocol):
    def initialize(self) -> None: ...

    def exists(self, identifier: str) -> bool: ...

    def verify(self, identifier: str, plaintext: str) -> bool: ...

    def insert(self, identifier: str, plaintext: str) -> CredentialRecord: ...


class _StoreBase(ABC):
    """Shared exists/verify/insert logic. Backends implement ``_get`` and ``_add``.

    ``_add`` runs under the store lock and must raise
    ``DuplicateIdentifierError`` if the identifier is already stored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @abstractmethod
    def initialize(self) -> None:
        ...

    @abstractmethod
    def _get(self, identifier: str) -> Optional[CredentialRecord]:
        ...

    @abstractmethod
    def _add(self, record: CredentialRecord) -> None:
        ...

    def exists(self, identifier: str) -> bool:
        if not is_valid_identifier(identifier):
            return False
        return self._get(identifier) is not None

    def verify(self, identifier: str, plaintext: str) -> bool:
        if not is_valid_identifier(identifier) or not plaintext:
            return False
        rec = self._get(identifier)
        if rec is None:
            burn_verification(plaintext)
            return False
        return verify_password(rec.password_hash, plaintext)

    def insert(self, identifier: str, plaintext: str) -> CredentialRecord:
        validate_identifier(identifier)
        if not plaintext:
            raise ValidationError("Mot de passe requis")
        # Cheap check first so a taken identifier does not cost a hash.
        if self.exists(identifier):
            raise DuplicateIdentifierError(identifier)
        record = CredentialRecord(identifier=identifier, password_hash=hash_password(plaintext))
        with self._lock:
            self._add(record)
        LOG.info("Stored credential for %s", identifier)
        return record


# ------------------ File backends ------------------


class _FileCredentialStore(_StoreBase):
    def __init__(self, path: os.PathLike | str) -> None:
        super().__init__()
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"

    @abstractmethod
    def _parse(self, text: str) -> Dict[str, CredentialRecord]:
        ...

    @abstractmethod
    def _render(self, records: Dict[str, CredentialRecord]) -> str:
        ...

    def initialize(self) -> None:
        if self.path.exists():
            return
        self._write_records({})
        LOG.info("Created empty credential file %s", self.path)

    def _read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e

    def _load(self) -> Dict[str, CredentialRecord]:
        return self._parse(self._read_text())

    def _write_records(self, records: Dict[str, CredentialRecord]) -> None:
        text = self._render(records)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    def _get(self, identifier: str) -> Optional[CredentialRecord]:
        return self._load().get(identifier)

    def _add(self, record: CredentialRecord) -> None:
        records = self._load()
        if record.identifier in records:
            raise DuplicateIdentifierError(record.identifier)
        records[record.identifier] = record
        self._write_records(records)


class CsvCredentialStore(_FileCredentialStore):
    def _parse(self, text: str) -> Dict[str, CredentialRecord]:
        lines = text.splitlines()
        if not lines:
            return {}
        if lines[0].strip() != CSV_HEADER:
            raise StorageError(f"Unexpected header in {self.path}")

        out: Dict[str, CredentialRecord] = {}
        for lineno, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            # Split on the first delimiter only: argon2 hashes contain commas.
            identifier, sep, password_hash = line.partition(FIELD_DELIMITER)
            password_hash = password_hash.strip()
            if not sep or not password_hash or not is_valid_identifier(identifier):
                LOG.warning("Skipping malformed line %d in %s", lineno, self.path)
                continue
            if identifier in out:
                LOG.warning("Duplicate identifier %s on line %d in %s", identifier, lineno, self.path)
                continue
            out[identifier] = CredentialRecord(identifier=identifier, password_hash=password_hash)
        return out

    def _render(self, records: Dict[str, CredentialRecord]) -> str:
        lines = [CSV_HEADER]
        lines.extend(f"{r.identifier}{FIELD_DELIMITER}{r.password_hash}" for r in records.values())
        return "\n".join(lines) + "\n"


class YamlCredentialStore(_FileCredentialStore):
    def _parse(self, text: str) -> Dict[str, CredentialRecord]:
        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise StorageError(f"Invalid YAML in {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"Unexpected document in {self.path}")
        users = raw.get("users") or {}
        if not isinstance(users, dict):
            raise StorageError(f"Unexpected 'users' section in {self.path}")

        out: Dict[str, CredentialRecord] = {}
        for uname, udata in users.items():
            identifier = str(uname)
            ph = str(udata.get("password_hash") or "").strip() if isinstance(udata, dict) else ""
            if not ph or not is_valid_identifier(identifier):
                LOG.warning("Skipping malformed entry %r in %s", identifier, self.path)
                continue
            out[identifier] = CredentialRecord(identifier=identifier, password_hash=ph)
        return out

    def _render(self, records: Dict[str, CredentialRecord]) -> str:
        raw = {
            "version": YAML_VERSION,
            "users": {r.identifier: {"password_hash": r.password_hash} for r in records.values()},
        }
        return yaml.safe_dump(raw, sort_keys=False, allow_unicode=True)


# ------------------ Relational backend ------------------

Base = declarative_base()


class CredentialRow(Base):
    __tablename__ = "credentials"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(30), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)


class SqlCredentialStore(_StoreBase):
    """Credential table behind SQLAlchemy; the UNIQUE constraint backs the lock."""

    def __init__(self, url: str) -> None:
        super().__init__()
        self.url = url
        engine_args = {}
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            engine_args["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                # One shared connection, or each thread gets its own empty database.
                engine_args["poolclass"] = StaticPool
        self.engine = create_engine(url, **engine_args)
        self.SessionLocal = sessionmaker(autoflush=False, bind=self.engine)

    def __repr__(self) -> str:
        return f"SqlCredentialStore({self.engine.url.render_as_string(hide_password=True)!r})"

    def initialize(self) -> None:
        url = make_url(self.url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            try:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot create database directory: {e}") from e
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot initialise credential table: {e}") from e

    def _get(self, identifier: str) -> Optional[CredentialRecord]:
        try:
            with self.SessionLocal() as db:
                row = db.query(CredentialRow).filter(CredentialRow.identifier == identifier).first()
                if row is None:
                    return None
                return CredentialRecord(identifier=row.identifier, password_hash=row.password_hash)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot read credentials: {e}") from e

    def _add(self, record: CredentialRecord) -> None:
        try:
            with self.SessionLocal() as db:
                db.add(CredentialRow(identifier=record.identifier, password_hash=record.password_hash))
                db.commit()
        except IntegrityError as e:
            raise DuplicateIdentifierError(record.identifier) from e
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot write credentials: {e}") from e

    def dispose(self) -> None:
        self.engine.dispose()


# ------------------ Factory ------------------


def open_store(kind: str, location: str) -> CredentialStore:
    """Build and initialise a store. ``location`` is a path, or a URL for sqlite."""
    k = (kind or "csv").strip().lower()
    if k == "csv":
        store: _StoreBase = CsvCredentialStore(location)
    elif k == "yaml":
        store = YamlCredentialStore(location)
    elif k == "sqlite":
        store = SqlCredentialStore(location)
    else:
        raise ValueError(f"Unknown credential store '{kind}' (expected one of {', '.join(STORE_KINDS)})")
    store.initialize()
    return store


def store_from_env() -> CredentialStore:
    kind = os.getenv("LOGINBOX_STORE", "csv").strip().lower()
    data_dir = Path(os.getenv("LOGINBOX_DATA_DIR", "data")).resolve()
    if kind == "sqlite":
        location = os.getenv("LOGINBOX_DATABASE_URL") or f"sqlite:///{data_dir / 'users.db'}"
    else:
        default_name = "users.yml" if kind == "yaml" else "users.csv"
        location = os.getenv("LOGINBOX_USERS_PATH") or str(data_dir / default_name)
    store = open_store(kind, location)
    LOG.info("Using credential store %r", store)
    return store
