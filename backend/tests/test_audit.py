import asyncio
import threading
import time

import pytest

from delogger.core.audit import (
    AuditedResponse, AuditState, audit_scope, finalize_and_persist, new_record, persist,
)
from delogger.core.errors import AuditRecordFinalized
from delogger.services.audit_sink import MemoryAuditSink


class SlowAuditSink(MemoryAuditSink):
    def __init__(self, delay_s):
        super().__init__()
        self.delay_s = delay_s
        self.done = threading.Event()

    def insert(self, record):
        time.sleep(self.delay_s)
        super().insert(record)
        self.done.set()


def test_new_record_defaults():
    rec = new_record("10.0.0.1:5555")
    assert rec.status_code == 200
    assert rec.error_msg == ""
    assert rec.request_body == ""
    assert rec.response_body is None
    assert rec.state is AuditState.CREATED
    assert rec.timestamp.tzinfo is not None


def test_finalized_record_is_frozen():
    sink = MemoryAuditSink()
    rec = new_record()
    finalize_and_persist(rec, sink)
    assert rec.finalized
    with pytest.raises(AuditRecordFinalized):
        rec.status_code = 500
    with pytest.raises(AuditRecordFinalized):
        rec.finalize()
    assert sink.records == [rec]


def test_finalize_swallows_sink_errors(failing_sink):
    rec = new_record()
    finalize_and_persist(rec, failing_sink)
    assert rec.finalized
    assert len(failing_sink.records) == 1


def test_attached_record_is_persisted_by_the_response():
    sink = MemoryAuditSink()

    async def run():
        async with audit_scope(sink, "h:1") as audit:
            assert audit.record.state is AuditState.PROCESSING
            audit.record.succeed(b"[]")
            return audit.attach(AuditedResponse(b"[]"))

    response = asyncio.run(run())
    # ответ ещё не отправлен: в sink пусто
    assert sink.records == []

    sent = []

    async def send(message):
        sent.append(message["type"])

    asyncio.run(response({"type": "http", "client": ("h", 1)}, None, send))
    assert sent == ["http.response.start", "http.response.body"]
    [rec] = sink.records
    assert rec.finalized
    assert rec.status_code == 200


def test_scope_persists_once_on_return_without_response():
    sink = MemoryAuditSink()

    async def run():
        async with audit_scope(sink) as audit:
            audit.record.fail(405, "Method not allowed")
            return "rejected"

    assert asyncio.run(run()) == "rejected"
    [rec] = sink.records
    assert (rec.status_code, rec.error_msg) == (405, "Method not allowed")


def test_scope_persists_on_unexpected_error():
    sink = MemoryAuditSink()

    async def run():
        async with audit_scope(sink):
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(run())
    [rec] = sink.records
    assert (rec.status_code, rec.error_msg) == (500, "boom")
    assert rec.finalized


def test_scope_keeps_recorded_error_on_exception():
    sink = MemoryAuditSink()

    async def run():
        async with audit_scope(sink) as audit:
            audit.record.fail(405, "Method not allowed")
            raise ValueError("later")

    with pytest.raises(ValueError):
        asyncio.run(run())
    assert sink.records[0].status_code == 405


def test_scope_survives_sink_failure(failing_sink):
    async def run():
        async with audit_scope(failing_sink) as audit:
            audit.record.succeed(b"[]")
        return "done"

    assert asyncio.run(run()) == "done"
    assert len(failing_sink.records) == 1


def test_persist_gives_up_after_deadline(caplog):
    sink = SlowAuditSink(delay_s=0.5)
    rec = new_record("h:1")

    started = time.monotonic()
    asyncio.run(persist(rec, sink, timeout_s=0.05))
    elapsed = time.monotonic() - started

    assert elapsed < 0.4
    assert "timed out" in caplog.text
    sink.done.wait(2)
