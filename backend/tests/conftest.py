import pytest
from fastapi.testclient import TestClient

from delogger.core.errors import PersistenceError
from delogger.main import create_app
from delogger.services.audit_sink import MemoryAuditSink


class FailingAuditSink(MemoryAuditSink):
    """Считает попытки вставки, но каждая из них падает."""

    def insert(self, record):
        super().insert(record)
        raise PersistenceError("database is down")


@pytest.fixture
def sink():
    return MemoryAuditSink()


@pytest.fixture
def failing_sink():
    return FailingAuditSink()


@pytest.fixture
def client(sink):
    # без `with`: startup не запускается, пул к PostgreSQL не создаётся
    return TestClient(create_app(sink=sink))


@pytest.fixture
def failing_client(failing_sink):
    return TestClient(create_app(sink=failing_sink))
