import os
from pathlib import Path

import pytest

from loginbox.errors import StorageError, ValidationError
from loginbox.infra.credential_repo import CSV_HEADER, open_store, store_from_env


def test_initialize_writes_header(tmp_path: Path):
    path = tmp_path / "nested" / "users.csv"
    open_store("csv", str(path))
    assert path.read_text(encoding="utf-8") == CSV_HEADER + "\n"


def test_file_layout(csv_store):
    csv_store.insert("alice1", "Passw0rd!")
    csv_store.insert("bob2", "Secr3tPass")
    lines = csv_store.path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "username,password"
    assert [ln.split(",", 1)[0] for ln in lines[1:]] == ["alice1", "bob2"]
    # argon2 hashes carry commas in their parameter block
    assert all(ln.split(",", 1)[1].startswith("$argon2") for ln in lines[1:])
    assert "Passw0rd!" not in "\n".join(lines)


def test_delimiter_injection_leaves_file_untouched(csv_store):
    csv_store.insert("alice1", "Passw0rd!")
    before = csv_store.path.read_bytes()
    with pytest.raises(ValidationError):
        csv_store.insert("mallory,$argon2id$v=19$forged\nadmin1", "Passw0rd!")
    assert csv_store.path.read_bytes() == before


def test_failed_rewrite_keeps_previous_content(csv_store, monkeypatch):
    csv_store.insert("alice1", "Passw0rd!")
    before = csv_store.path.read_bytes()

    def _boom(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", _boom)
    with pytest.raises(StorageError):
        csv_store.insert("bob2", "Secr3tPass")
    monkeypatch.undo()

    assert csv_store.path.read_bytes() == before
    assert not csv_store.exists("bob2")
    leftovers = [p.name for p in csv_store.path.parent.iterdir() if p.name != "users.csv"]
    assert leftovers == []


def test_unreadable_file_raises_storage_error(tmp_path: Path):
    path = tmp_path / "users.csv"
    path.write_bytes(b"username,password\n\xff\xfe,broken\n")
    store = open_store("csv", str(path))
    with pytest.raises(StorageError):
        store.exists("alice1")


def test_foreign_header_raises_storage_error(tmp_path: Path):
    path = tmp_path / "users.csv"
    path.write_text("name;hash\nalice1;x\n", encoding="utf-8")
    store = open_store("csv", str(path))
    with pytest.raises(StorageError):
        store.verify("alice1", "Passw0rd!")


def test_malformed_and_duplicate_lines_are_skipped(tmp_path: Path):
    path = tmp_path / "users.csv"
    seed = open_store("csv", str(tmp_path / "seed.csv"))
    good = seed.insert("alice1", "Passw0rd!").password_hash
    other = seed.insert("bob2", "Secr3tPass").password_hash
    path.write_text(
        "\n".join(
            [
                "username,password",
                "",
                "no-delimiter-here",
                "x,short-id",
                f"alice1,{good}",
                f"alice1,{other}",
            ]
        ),
        encoding="utf-8",
    )
    store = open_store("csv", str(path))
    assert store.verify("alice1", "Passw0rd!")
    assert not store.verify("alice1", "Secr3tPass")
    assert not store.exists("x")


def test_empty_file_is_an_empty_store(tmp_path: Path):
    path = tmp_path / "users.csv"
    path.write_text("", encoding="utf-8")
    store = open_store("csv", str(path))
    assert not store.exists("alice1")
    store.insert("alice1", "Passw0rd!")
    assert path.read_text(encoding="utf-8").startswith(CSV_HEADER + "\n")


def test_store_from_env_defaults_to_csv_in_data_dir(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("LOGINBOX_STORE", raising=False)
    monkeypatch.delenv("LOGINBOX_USERS_PATH", raising=False)
    monkeypatch.setenv("LOGINBOX_DATA_DIR", str(tmp_path))
    store = store_from_env()
    assert store.path == (tmp_path / "users.csv").resolve()
    assert store.path.exists()


def test_store_from_env_sqlite(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("LOGINBOX_STORE", "sqlite")
    monkeypatch.setenv("LOGINBOX_DATABASE_URL", f"sqlite:///{tmp_path / 'db' / 'users.db'}")
    store = store_from_env()
    try:
        store.insert("alice1", "Passw0rd!")
        assert store.verify("alice1", "Passw0rd!")
        assert (tmp_path / "db" / "users.db").exists()
    finally:
        store.dispose()


def test_bcrypt_lines_written_by_the_node_server_log_in(tmp_path: Path):
    import bcrypt

    h = bcrypt.hashpw(b"Passw0rd!", bcrypt.gensalt(10)).decode("ascii")
    path = tmp_path / "users.csv"
    path.write_text(f"username,password\nalice1,{'$2a$' + h[4:]}", encoding="utf-8")
    store = open_store("csv", str(path))
    assert store.exists("alice1")
    assert store.verify("alice1", "Passw0rd!")
    assert not store.verify("alice1", "wrong")

    # New registrations next to the old lines use argon2
    store.insert("bob2", "Secr3tPass")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[1].startswith("alice1,$2a$")
    assert lines[2].startswith("bob2,$argon2id$")
    assert store.verify("alice1", "Passw0rd!")
