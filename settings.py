from __future__ import annotations

import logging.config
import os
from dataclasses import dataclass
from datetime import datetime, time
from pathlib import Path
from typing import Tuple

import structlog
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent


class ImproperlyConfigured(Exception):
    pass


def get_env(var_name: str, default=None, required: bool = False):
    value = os.environ.get(var_name, default)
    if required and value in (None, ""):
        raise ImproperlyConfigured(f"Missing required environment variable: {var_name}")
    return value


def _get_int(var_name: str, default: int) -> int:
    raw = get_env(var_name, str(default))
    try:
        return int(raw)
    except ValueError as e:
        raise ImproperlyConfigured(f"{var_name} must be an integer, got {raw!r}") from e


def _get_time(var_name: str, default: str) -> time:
    raw = get_env(var_name, default)
    try:
        return datetime.strptime(raw.strip(), "%H:%M").time()
    except ValueError as e:
        raise ImproperlyConfigured(f"{var_name} must look like HH:MM, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    api_prefix: str = ""
    cors_allow_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    notifier_max_workers: int = 3
    notifier_queue_size: int = 1
    housekeeping_max_workers: int = 3
    housekeeping_duration_seconds: float = 10.0
    # local time of the daily housekeeping run
    housekeeping_at: time = time(10, 0)


def load_settings() -> Settings:
    load_dotenv(BASE_DIR / ".env")

    origins = get_env("CORS_ALLOW_ORIGINS", "*")
    return Settings(
        api_prefix=get_env("API_PREFIX", "").rstrip("/"),
        cors_allow_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=get_env("LOG_LEVEL", "INFO").upper(),
        notifier_max_workers=_get_int("NOTIFIER_MAX_WORKERS", 3),
        notifier_queue_size=_get_int("NOTIFIER_QUEUE_SIZE", 1),
        housekeeping_max_workers=_get_int("HOUSEKEEPING_MAX_WORKERS", 3),
        housekeeping_duration_seconds=float(get_env("HOUSEKEEPING_DURATION_SECONDS", "10")),
        housekeeping_at=_get_time("HOUSEKEEPING_AT", "10:00"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": "structlog.stdlib.ProcessorFormatter",
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.processors.format_exc_info,
                        structlog.processors.JSONRenderer(),
                    ],
                    "foreign_pre_chain": [
                        structlog.processors.TimeStamper(fmt="iso"),
                        structlog.stdlib.add_log_level,
                        structlog.stdlib.add_logger_name,
                        structlog.stdlib.ExtraAdder(),
                    ],
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                }
            },
            "root": {"handlers": ["console"], "level": level},
        }
    )
