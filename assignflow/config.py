from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[1]


PROJECT_ROOT = _resolve_project_root()


def load_env() -> None:
    """Load ``.env`` then ``.env.<APP_ENV>``, the first found in cwd or project root."""
    env_name = os.getenv("APP_ENV", "development")
    bases = (Path.cwd(), PROJECT_ROOT)
    for filename, override in ((".env", False), (f".env.{env_name}", True)):
        path = next((base / filename for base in bases if (base / filename).exists()), None)
        if path is not None:
            load_dotenv(path, override=override)


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    recycle_retention_days: int = 15
    forever_horizon_years: int = 1
    pending_counts_ttl_seconds: int = 60
    notification_workers: int = 2


def load_settings() -> Settings:
    load_env()
    database_url = os.getenv("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Add it to .env or the environment.")
    return Settings(
        database_url=database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO",
        log_dir=os.getenv("LOG_DIR", "logs").strip() or "logs",
        recycle_retention_days=_int_env("RECYCLE_RETENTION_DAYS", 15),
        forever_horizon_years=_int_env("FOREVER_HORIZON_YEARS", 1),
        pending_counts_ttl_seconds=_int_env("PENDING_COUNTS_TTL_SECONDS", 60, minimum=0),
        notification_workers=_int_env("NOTIFICATION_WORKERS", 2),
    )


SETTINGS = load_settings()
