import os
from dotenv import load_dotenv, find_dotenv

# Загружаем переменные окружения (.env в backend/ или корне проекта)
load_dotenv(find_dotenv())

# =========================
# Database
# =========================
POSTGRES_USER = os.getenv("POSTGRES_USER", "")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "")
POSTGRES_DB_NAME = os.getenv("POSTGRES_DB_NAME", "")

# host/port не настраиваются: БД доступна как сервис "db" из docker compose
DB_HOST = "db"
DB_PORT = 5432

DATABASE_URL = (
    f"postgresql+psycopg2://{POSTGRES_USER}:{POSTGRES_PASSWORD}"
    f"@{DB_HOST}:{DB_PORT}/{POSTGRES_DB_NAME}"
)

DB_ENABLED = os.getenv("DB_ENABLED", "true").lower() == "true"
DB_CONNECT_TIMEOUT_S = int(os.getenv("DB_CONNECT_TIMEOUT_S", "10"))
DB_INSERT_TIMEOUT_S = int(os.getenv("DB_INSERT_TIMEOUT_S", "5"))
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))

# =========================
# HTTP
# =========================
API_PREFIX = "/api"
PARSE_PATH = "/parse"
SERVER_PORT = 8001
CORS_ALLOW_ORIGIN = os.getenv("CORS_ALLOW_ORIGIN", "*")

# =========================
# Client (delogger-submit)
# =========================
API_URL = os.getenv("API_URL", f"http://127.0.0.1:{SERVER_PORT}{API_PREFIX}{PARSE_PATH}")
CLIENT_TIMEOUT_S = int(os.getenv("CLIENT_TIMEOUT_S", "30"))

# =========================
# Logging
# =========================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "text").lower()   # "text" | "json"
