import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from sqlalchemy import Text, cast, insert, literal, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Insert

from ..core import config
from ..core.audit import AuditRecord
from ..core.db import create_db_engine, init_schema
from ..core.errors import PersistenceError
from ..models.tables import DeloggedRow

logger = logging.getLogger(__name__)


class AuditSink(ABC):
    """Куда пишутся финализированные аудит-записи. Должен быть потокобезопасным."""

    @abstractmethod
    def insert(self, record: AuditRecord) -> None:
        """Сохраняет запись; при неудаче бросает PersistenceError."""

    def close(self) -> None:
        pass


class MemoryAuditSink(AuditSink):
    """In-process sink: для DB_ENABLED=false и тестов."""

    def __init__(self):
        self._records: List[AuditRecord] = []
        self._lock = threading.Lock()

    def insert(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[AuditRecord]:
        with self._lock:
            return list(self._records)


def build_insert(record: AuditRecord) -> Insert:
    row = record.as_row()
    body = row.pop("response_body")
    # JSON кладём как есть, без повторной сериализации
    row["response_body"] = None if body is None else cast(literal(body.decode("utf-8"), Text()), JSONB)
    return insert(DeloggedRow).values(**row)


class PostgresAuditSink(AuditSink):
    def __init__(self, engine: Engine, insert_timeout_s: int = config.DB_INSERT_TIMEOUT_S):
        self._engine = engine
        self._timeout_s = insert_timeout_s

    @classmethod
    def connect(cls, url: Optional[str] = None) -> "PostgresAuditSink":
        """Создаёт пул и схему; StartupError, если БД недоступна."""
        engine = create_db_engine(url)
        try:
            init_schema(engine)
        except Exception:
            engine.dispose()
            raise
        return cls(engine)

    def insert(self, record: AuditRecord) -> None:
        # один дедлайн на вызов: ожидание пула + connect + INSERT.
        # Превышение = обычная ошибка вставки.
        deadline = time.monotonic() + self._timeout_s
        try:
            with self._engine.connect() as conn:
                left_ms = int((deadline - time.monotonic()) * 1000)
                if left_ms <= 0:
                    raise PersistenceError(f"Timed out after {self._timeout_s}s waiting for a connection")
                with conn.begin():
                    conn.execute(text(f"SET LOCAL statement_timeout = {left_ms}"))
                    conn.execute(build_insert(record))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to insert log record into PostgreSQL: {e}") from e

    def close(self) -> None:
        self._engine.dispose()
        logger.info("Database connections closed")
