import enum
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional

import anyio
import anyio.to_thread
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect
from starlette.responses import Response

from . import config
from .errors import AuditRecordFinalized

if TYPE_CHECKING:
    from ..services.audit_sink import AuditSink

logger = logging.getLogger(__name__)


class AuditState(enum.Enum):
    CREATED = "created"
    PROCESSING = "processing"
    FINALIZED = "finalized"


@dataclass
class AuditRecord:
    """Одна запись аудита = один HTTP-запрос (строка таблицы delogged)."""

    timestamp: datetime
    remote_addr: str = ""
    request_body: str = ""
    response_body: Optional[bytes] = None   # JSON ровно в том виде, в каком ушёл клиенту
    status_code: int = 200
    error_msg: str = ""
    state: AuditState = field(default=AuditState.CREATED, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "state", None) is AuditState.FINALIZED:
            raise AuditRecordFinalized(f"cannot set {name!r} on a finalized audit record")
        object.__setattr__(self, name, value)

    def fail(self, status_code: int, error_msg: str) -> None:
        self.status_code = status_code
        self.error_msg = error_msg

    def succeed(self, response_body: bytes) -> None:
        self.response_body = response_body

    def finalize(self) -> None:
        if self.state is AuditState.FINALIZED:
            raise AuditRecordFinalized("audit record already finalized")
        self.state = AuditState.FINALIZED

    @property
    def finalized(self) -> bool:
        return self.state is AuditState.FINALIZED

    def as_row(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "remote_addr": self.remote_addr,
            "request_body": self.request_body,
            "response_body": self.response_body,
            "status_code": self.status_code,
            "error_msg": self.error_msg,
        }


def new_record(remote_addr: str = "") -> AuditRecord:
    return AuditRecord(timestamp=datetime.now(timezone.utc), remote_addr=remote_addr)


def finalize_and_persist(record: AuditRecord, sink: "AuditSink") -> None:
    """Финализирует запись и передаёт её в sink. Ошибки sink только логируются."""
    record.finalize()
    try:
        sink.insert(record)
    except Exception as e:
        logger.error("Failed to insert audit record for %s: %s", record.remote_addr, e)


async def persist(record: AuditRecord, sink: "AuditSink", timeout_s: float = config.DB_INSERT_TIMEOUT_S) -> None:
    """
    Финализация + вставка с общим дедлайном на вызов (ожидание пула, connect,
    сам INSERT). По истечении дедлайна поток брошен, ошибка только логируется.
    """
    # отмена запроса не должна прервать запись аудита
    with anyio.CancelScope(shield=True):
        with anyio.move_on_after(timeout_s) as deadline:
            await anyio.to_thread.run_sync(finalize_and_persist, record, sink, abandon_on_cancel=True)
    if deadline.cancelled_caught:
        logger.error("Failed to insert audit record for %s: timed out after %ss", record.remote_addr, timeout_s)


class AuditedResponse(Response):
    """
    Ответ, после отправки которого пишется аудит (background).
    Ошибка записи клиенту только логируется, аудит всё равно выполняется.
    """

    async def __call__(self, scope, receive, send) -> None:
        background, self.background = self.background, None
        try:
            await super().__call__(scope, receive, send)
        except (OSError, ClientDisconnect) as e:
            logger.error("Error writing response for %s: %s", peer_addr(scope.get("client")), e)
        finally:
            if background is not None:
                with anyio.CancelScope(shield=True):
                    await background()


def peer_addr(client) -> str:
    if not client:
        return ""
    host, port = client
    return f"{host}:{port}"


class AuditScope:
    """Запись аудита одного запроса и признак того, что она уже передана ответу."""

    def __init__(self, sink: "AuditSink", remote_addr: str = ""):
        self.sink = sink
        self.record = new_record(remote_addr)
        self.handed_off = False

    def attach(self, response: AuditedResponse) -> AuditedResponse:
        """Вешает финализацию на ответ: запись уйдёт в sink после отправки."""
        response.background = BackgroundTask(persist, self.record, self.sink)
        self.handed_off = True
        return response


@asynccontextmanager
async def audit_scope(sink: "AuditSink", remote_addr: str = "") -> AsyncIterator[AuditScope]:
    """
    Обёртка над обработкой запроса:
        async with audit_scope(sink, addr) as audit:
            ...
            return audit.attach(response)
    Запись финализируется и пишется в sink ровно один раз: после отправки
    ответа, если он передан через attach, иначе при выходе из блока
    (исключение, return без ответа).
    """
    audit = AuditScope(sink, remote_addr)
    audit.record.state = AuditState.PROCESSING
    try:
        yield audit
    except Exception as e:
        if not audit.record.error_msg:
            audit.record.fail(500, str(e) or type(e).__name__)
        raise
    finally:
        if not audit.handed_off:
            await persist(audit.record, sink)
