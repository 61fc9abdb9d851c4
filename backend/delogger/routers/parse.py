import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

from ..core import config
from ..core.audit import AuditedResponse, AuditRecord, audit_scope, peer_addr
from ..core.deps import get_sink
from ..core.errors import BodyReadError, MethodNotAllowed, RequestError
from ..models.schemas import dump_entries
from ..services.classifier import classify_text, decode_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["parse"])


class ParsedLogResponse(AuditedResponse):
    media_type = "application/json"


class RejectedResponse(AuditedResponse):
    media_type = "text/plain"


async def read_body(request: Request) -> bytes:
    try:
        return await request.body()
    except Exception as e:
        raise BodyReadError(str(e)) from e


async def _process(request: Request, record: AuditRecord, remote_addr: str) -> Response:
    if request.method != "POST":
        raise MethodNotAllowed(f"method {request.method} not allowed")

    body = await read_body(request)
    log_text = decode_body(body)
    record.request_body = log_text
    logger.info("Received log data of size %d bytes", len(body))

    entries = classify_text(log_text)
    payload = dump_entries(entries)
    record.succeed(payload)

    logger.info("Successfully parsed %d lines for request from %s", len(entries), remote_addr)
    return ParsedLogResponse(
        content=payload,
        headers={"Access-Control-Allow-Origin": config.CORS_ALLOW_ORIGIN},
    )


async def parse_api(request: Request) -> Response:
    """
    Принимает произвольный текст (POST), возвращает JSON-массив:
      [{"timestamp": ..., "level": ..., "message": ...}, {"raw": ...}, ...]
    Каждый запрос (успешный или нет) пишется в аудит ровно один раз,
    после отправки ответа клиенту.
    """
    remote_addr = peer_addr(request.client)
    logger.info("Received request from %s for %s %s", remote_addr, request.method, request.url.path)

    async with audit_scope(get_sink(request), remote_addr) as audit:
        try:
            return audit.attach(await _process(request, audit.record, remote_addr))
        except RequestError as e:
            audit.record.fail(e.status_code, e.message)
            logger.warning("Rejected request from %s: %s", remote_addr, e)
            return audit.attach(RejectedResponse(e.message, status_code=e.status_code))


# без фильтра по методам: любой метод (TRACE, CONNECT, нестандартный) доходит
# до обработчика, и отказ 405 тоже попадает в аудит
router.add_route(config.PARSE_PATH, parse_api)
