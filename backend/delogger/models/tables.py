from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Базовый класс моделей БД."""


class DeloggedRow(Base):
    """Журнал запросов к /api/parse: только вставка, одна строка на запрос."""

    __tablename__ = "delogged"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    remote_addr: Mapped[Optional[str]] = mapped_column(Text)
    request_body: Mapped[Optional[str]] = mapped_column(Text)
    response_body: Mapped[Optional[Any]] = mapped_column(JSONB(none_as_null=True))
    status_code: Mapped[Optional[int]] = mapped_column(Integer)
    error_msg: Mapped[Optional[str]] = mapped_column(Text)
