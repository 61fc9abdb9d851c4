from fastapi import Request

from ..services.audit_sink import AuditSink


def get_sink(request: Request) -> AuditSink:
    # пул создаётся на старте приложения (main._startup) и лежит в app.state;
    # маршрут /api/parse обычный starlette Route, поэтому без Depends
    return request.app.state.sink
