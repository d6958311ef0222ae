import logging

import pytest

from loginbox import __main__ as entry


@pytest.fixture()
def captured(monkeypatch):
    calls = {}
    monkeypatch.setattr(entry.uvicorn, "run", lambda *a, **kw: calls.setdefault("run", (a, kw)))
    monkeypatch.setattr(entry.logging, "basicConfig", lambda **kw: calls.setdefault("logging", kw))
    return calls


def test_defaults(captured, monkeypatch):
    for name in ("LOGINBOX_HOST", "LOGINBOX_PORT", "LOGINBOX_RELOAD", "LOGINBOX_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    entry.main()
    args, kw = captured["run"]
    assert args == ("loginbox.app:app",)
    assert kw == {"host": "0.0.0.0", "port": 3000, "reload": False, "log_level": "info"}
    assert captured["logging"]["level"] == logging.INFO


def test_trace_level_is_accepted(captured, monkeypatch):
    monkeypatch.setenv("LOGINBOX_LOG_LEVEL", "TRACE")
    entry.main()
    assert captured["logging"]["level"] == 5
    assert captured["run"][1]["log_level"] == "trace"


def test_unknown_level_exits(captured, monkeypatch):
    monkeypatch.setenv("LOGINBOX_LOG_LEVEL", "verbose")
    with pytest.raises(SystemExit):
        entry.main()
    assert "run" not in captured
