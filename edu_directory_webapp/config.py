from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

APP_NAME = "Education Directory - schools and colleges"

BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent

load_dotenv(PROJECT_ROOT / ".env")


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _read_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def get_pg_config() -> dict[str, object]:
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = _read_int("POSTGRES_PORT", 5432)
    dbname = os.getenv("POSTGRES_DB")
    user = os.getenv("POSTGRES_USER")
    password = os.getenv("POSTGRES_PASSWORD")
    missing = [k for k, v in [("POSTGRES_DB", dbname), ("POSTGRES_USER", user), ("POSTGRES_PASSWORD", password)] if not v]
    if missing:
        raise ValueError(f"PostgreSQL connection parameters are not set: {', '.join(missing)}")
    return {
        "host": host,
        "port": port,
        "dbname": dbname,
        "user": user,
        "password": password,
    }


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


# Empty means "build a PostgreSQL URL from POSTGRES_*".
DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
DB_CONNECT_TIMEOUT_SEC = _read_int("DB_CONNECT_TIMEOUT_SEC", 10)
AUTO_CREATE_SCHEMA = _read_bool("AUTO_CREATE_SCHEMA", True)

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100
# Keeps (page - 1) * limit well inside a 64-bit OFFSET.
MAX_PAGE = 1_000_000

# Behind a reverse proxy the client address is the proxy's; trust X-Forwarded-For only when told to.
TRUST_FORWARDED_FOR = _read_bool("TRUST_FORWARDED_FOR", False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
