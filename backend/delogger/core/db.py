import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from . import config
from .errors import StartupError
from ..models.tables import Base

logger = logging.getLogger(__name__)


def create_db_engine(url: Optional[str] = None) -> Engine:
    """Пул соединений: создаётся один раз на старте, закрывается на shutdown."""
    return create_engine(
        url or config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_INSERT_TIMEOUT_S,
        pool_pre_ping=True,
        connect_args={"connect_timeout": config.DB_CONNECT_TIMEOUT_S},
    )


def init_schema(engine: Engine) -> None:
    """Проверяет соединение и создаёт таблицу delogged, если её нет."""
    try:
        with engine.begin() as conn:
            conn.execute(text("SELECT 1"))
            logger.info("Successfully connected to PostgreSQL.")
            Base.metadata.create_all(conn)
    except SQLAlchemyError as e:
        raise StartupError(f"Database is not ready: {e}") from e
    logger.info("Database table 'delogged' ready.")
