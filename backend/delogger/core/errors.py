class DeloggerError(Exception):
    """Базовое исключение сервиса."""


class RequestError(DeloggerError):
    """Ошибка обработки одного запроса: завершает только этот запрос."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.message)
        self.detail = detail


class MethodNotAllowed(RequestError):
    status_code = 405
    message = "Method not allowed"


class BodyReadError(RequestError):
    status_code = 500
    message = "Could not read request body"


class SerializationError(RequestError):
    status_code = 500
    message = "Error creating JSON response"


class PersistenceError(DeloggerError):
    """Не удалось записать аудит-запись (в т.ч. таймаут). Только логируется."""


class StartupError(DeloggerError):
    """БД недоступна или схему не удалось создать при старте. Фатально."""


class AuditRecordFinalized(DeloggerError):
    """Попытка изменить аудит-запись после финализации."""
