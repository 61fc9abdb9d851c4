import logging
from typing import Optional

from fastapi import FastAPI

from .core import config
from .core.errors import StartupError
from .core.log_setup import configure_logging
from .routers import parse
from .services.audit_sink import AuditSink, MemoryAuditSink, PostgresAuditSink

logger = logging.getLogger(__name__)


def _open_sink() -> AuditSink:
    if not config.DB_ENABLED:
        logger.warning("DB_ENABLED=false: audit records are kept in memory only")
        return MemoryAuditSink()
    try:
        return PostgresAuditSink.connect()
    except StartupError as e:
        logger.critical("Unable to start: %s", e)
        raise SystemExit(1) from None


def create_app(sink: Optional[AuditSink] = None) -> FastAPI:
    """
    sink=None -> пул к PostgreSQL создаётся на startup и закрывается на shutdown.
    Готовый sink (тесты, отладка) используется как есть: приложение его не закрывает.
    """
    app = FastAPI(title="Delogger API", version="0.1.0", description="Free-text log line classifier")
    app.state.sink = sink
    app.state.owns_sink = False

    app.include_router(parse.router, prefix=config.API_PREFIX)

    @app.get(f"{config.API_PREFIX}/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        configure_logging()
        logger.info("Starting delogger backend...")
        if app.state.sink is None:
            app.state.sink = _open_sink()
            app.state.owns_sink = True
        logger.info("Backend service available at port %d.", config.SERVER_PORT)

    @app.on_event("shutdown")
    def _shutdown():
        if app.state.owns_sink:
            app.state.sink.close()

    return app


# uvicorn delogger.main:app --port 8001
app = create_app()
