# dramahub/core/logger.py
from __future__ import annotations

"""
DramaHub — Logging (Loguru)
---------------------------
- Pretty console logs by default; optional JSON logs via `LOG_JSON=1`
- Request correlation: `request_id` bound by RequestIDMiddleware
- Intercepts stdlib logs (uvicorn/fastapi/starlette and every `dramahub.*`
  module logger) into Loguru
- Optional file sink with rotation

Env
---
LOG_LEVEL=INFO|DEBUG|WARNING|ERROR (default: INFO)
LOG_JSON=1 (enable JSON logs; pretty logs otherwise)
LOG_TO_FILE=1 (write logs/dramahub.log with rotation; default: 0)
LOG_DIR=logs
LOG_FILE=dramahub.log
LOG_ROTATION=10 MB
APP_DEBUG=1 (enables backtrace/diagnose in console sink)
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from loguru import logger

# ─────────────────────────────────────────────────────────────
# ⚙️ Env
# ─────────────────────────────────────────────────────────────
load_dotenv()

_TRUTHY = {"1", "true", "yes"}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "0").lower() in _TRUTHY
APP_DEBUG = os.getenv("APP_DEBUG", "0").lower() in _TRUTHY

LOG_TO_FILE = os.getenv("LOG_TO_FILE", "0").lower() in _TRUTHY
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE = os.getenv("LOG_FILE", "dramahub.log")
LOG_ROTATION = os.getenv("LOG_ROTATION", "10 MB")

# Stdlib loggers routed into Loguru
INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "fastapi", "starlette", "dramahub")


# ─────────────────────────────────────────────────────────────
# 🧾 Formatters
# ─────────────────────────────────────────────────────────────
def _fmt_pretty(record):
    """Colorized single-line formatter with request_id support."""
    record["extra"]["request_id"] = record["extra"].get("request_id", "N/A")
    safe_name = record["name"].replace("<", "[").replace(">", "]")
    safe_func = record["function"].replace("<", "[").replace(">", "]")
    return (
        f"<green>{record['time']:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        f"<level>{record['level']:<8}</level> | "
        f"<cyan>{safe_name}</cyan>:<cyan>{safe_func}</cyan>:<cyan>{record['line']}</cyan> - "
        "<level>{message}</level> | request_id={extra[request_id]}\n{exception}"
    )


def _fmt_json(record):
    """Structured JSON logs, one object per line."""
    payload: Dict[str, Any] = {
        "ts": record["time"].timestamp(),
        "time": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f%z"),
        "level": record["level"].name,
        "logger": record["name"],
        "func": record["function"],
        "line": record["line"],
        "message": record["message"],
        "request_id": record["extra"].get("request_id", "N/A"),
    }
    for k, v in record["extra"].items():
        if k not in payload:
            payload[k] = v
    record["extra"]["_json"] = json.dumps(payload, ensure_ascii=False, default=str)
    return "{extra[_json]}\n"


CONSOLE_FORMAT = _fmt_json if LOG_JSON else _fmt_pretty


# ─────────────────────────────────────────────────────────────
# 🔁 Intercept stdlib logging → Loguru
# ─────────────────────────────────────────────────────────────
class InterceptHandler(logging.Handler):
    """Route standard logging records into Loguru with request_id support."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(request_id="N/A").opt(
            depth=6, exception=record.exc_info
        ).log(level, record.getMessage())


def configure_logging() -> None:
    """(Re)install the Loguru sinks and stdlib interception. Idempotent."""
    logger.remove()

    logger.add(
        sys.stdout,
        level=LOG_LEVEL,
        format=CONSOLE_FORMAT,
        enqueue=True,
        backtrace=APP_DEBUG,
        diagnose=APP_DEBUG,
    )

    if LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(LOG_DIR / LOG_FILE),
            rotation=LOG_ROTATION,
            level=LOG_LEVEL,
            format=CONSOLE_FORMAT,
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )

    for name in INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.setLevel(LOG_LEVEL)
        std_logger.propagate = False


configure_logging()
