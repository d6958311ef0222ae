import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest

from loginbox.infra.credential_repo import open_store


@pytest.fixture()
def csv_store(tmp_path: Path):
    return open_store("csv", str(tmp_path / "data" / "users.csv"))


@pytest.fixture(params=["csv", "yaml", "sqlite"])
def store(request, tmp_path: Path):
    """One freshly initialised store per backend."""
    kind = request.param
    if kind == "csv":
        s = open_store("csv", str(tmp_path / "users.csv"))
    elif kind == "yaml":
        s = open_store("yaml", str(tmp_path / "users.yml"))
    else:
        s = open_store("sqlite", f"sqlite:///{tmp_path / 'users.db'}")
    yield s
    if kind == "sqlite":
        s.dispose()


@pytest.fixture()
def client(csv_store):
    from fastapi.testclient import TestClient

    from loginbox.app import app, get_store

    app.dependency_overrides[get_store] = lambda: csv_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
