from pydantic import (
    BaseModel, ConfigDict, SerializerFunctionWrapHandler, TypeAdapter, model_serializer, model_validator,
)
from pydantic_core import PydanticSerializationError
from typing import List, Optional

from ..core.errors import SerializationError


class LogEntry(BaseModel):
    """
    Результат классификации одной строки. Ровно одна из двух форм:
      - structured: timestamp + level + message (raw = None)
      - raw:        только raw
    Пустые строки допустимы (например, level="" для "[ts] [] msg"),
    но в JSON пустые и None-поля не попадают: {"timestamp": "ts", "message": "msg"}.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: Optional[str] = None
    level: Optional[str] = None
    message: Optional[str] = None
    raw: Optional[str] = None

    @model_validator(mode="after")
    def _check_shape(self):
        structured = (self.timestamp, self.level, self.message)
        if self.raw is None:
            if any(v is None for v in structured):
                raise ValueError("structured entry needs timestamp, level and message")
        elif any(v is not None for v in structured):
            raise ValueError("raw entry must not carry structured fields")
        return self

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler: SerializerFunctionWrapHandler):
        return {k: v for k, v in handler(self).items() if v is not None and v != ""}

    @classmethod
    def structured(cls, timestamp: str, level: str, message: str) -> "LogEntry":
        return cls(timestamp=timestamp, level=level, message=message)

    @classmethod
    def unstructured(cls, raw: str) -> "LogEntry":
        return cls(raw=raw)

    @property
    def is_structured(self) -> bool:
        return self.raw is None


_ENTRIES = TypeAdapter(List[LogEntry])


def dump_entries(entries: List[LogEntry]) -> bytes:
    """JSON-массив записей (пустые поля опущены)."""
    try:
        return _ENTRIES.dump_json(entries)
    except PydanticSerializationError as e:
        raise SerializationError(str(e)) from e
