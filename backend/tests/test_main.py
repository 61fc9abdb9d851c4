import pytest
from fastapi.testclient import TestClient

from delogger import main
from delogger.core import config
from delogger.core.errors import StartupError
from delogger.services.audit_sink import MemoryAuditSink


class ClosingSink(MemoryAuditSink):
    closed = False

    def close(self):
        self.closed = True


def test_memory_sink_when_db_disabled(monkeypatch):
    monkeypatch.setattr(config, "DB_ENABLED", False)
    assert isinstance(main._open_sink(), MemoryAuditSink)


class NoDatabase:
    @classmethod
    def connect(cls, url=None):
        raise StartupError("db is unreachable")


def test_startup_error_exits(monkeypatch):
    monkeypatch.setattr(config, "DB_ENABLED", True)
    monkeypatch.setattr(main, "PostgresAuditSink", NoDatabase)
    with pytest.raises(SystemExit) as exc:
        main._open_sink()
    assert exc.value.code == 1


def test_injected_sink_is_left_open():
    sink = ClosingSink()
    with TestClient(main.create_app(sink=sink)) as client:
        assert client.post("/api/parse", content="x").status_code == 200
    assert not sink.closed
    assert len(sink.records) == 1


def test_sink_opened_on_startup_is_closed_on_shutdown(monkeypatch):
    sink = ClosingSink()
    monkeypatch.setattr(main, "_open_sink", lambda: sink)
    app = main.create_app()
    with TestClient(app) as client:
        assert app.state.sink is sink
        assert client.post("/api/parse", content="x").status_code == 200
        assert not sink.closed
    assert sink.closed
    assert len(sink.records) == 1


def test_module_app_has_parse_route():
    paths = {route.path for route in main.app.routes}
    assert "/api/parse" in paths
    assert "/api/health" in paths
