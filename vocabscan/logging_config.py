"""Logging configuration for the vocabscan API and library loggers."""

from __future__ import annotations

import logging.config
import os
from pathlib import Path
from typing import Any, Dict, List

_logging_configured = False

_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 5

_APP_LOGGERS = ("vocabscan", "uvicorn", "uvicorn.error")


def _rotating_file(path: Path, formatter: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": formatter,
        "filename": str(path),
        "maxBytes": _MAX_BYTES,
        "backupCount": _BACKUP_COUNT,
        "encoding": "utf-8",
        "delay": True,
    }


def _stream(formatter: str, stream: str) -> Dict[str, Any]:
    return {"class": "logging.StreamHandler", "formatter": formatter, "stream": f"ext://sys.{stream}"}


def _logger(handlers: List[str], level: str) -> Dict[str, Any]:
    return {"handlers": handlers, "level": level, "propagate": False}


def build_logging_config(log_dir: Path, level: str = "INFO") -> Dict[str, Any]:
    """Return a ``dictConfig`` mapping; app logs and access logs get separate files."""

    level = level.upper()
    app_log = log_dir / os.getenv("VOCABSCAN_LOG_FILE", "vocabscan.log")
    access_log = log_dir / os.getenv("VOCABSCAN_ACCESS_LOG_FILE", "access.log")

    loggers = {name: _logger(["console", "app_file"], level) for name in _APP_LOGGERS}
    loggers["uvicorn.access"] = _logger(["access_console", "access_file"], level)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "app": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(asctime)s %(levelprefix)s %(name)s: %(message)s",
                "use_colors": None,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": "%(asctime)s %(levelprefix)s %(client_addr)s - \"%(request_line)s\" %(status_code)s",
            },
        },
        "handlers": {
            "console": _stream("app", "stderr"),
            "app_file": _rotating_file(app_log, "app"),
            "access_console": _stream("access", "stdout"),
            "access_file": _rotating_file(access_log, "access"),
        },
        "loggers": loggers,
        "root": {"handlers": ["console"], "level": "WARNING"},
    }


def configure_logging() -> None:
    """Route uvicorn and ``vocabscan.*`` logs to the console and rotating files."""
    global _logging_configured
    if _logging_configured:
        return

    log_dir = Path(os.getenv("VOCABSCAN_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir, os.getenv("VOCABSCAN_LOG_LEVEL", "INFO")))
    _logging_configured = True


__all__ = ["build_logging_config", "configure_logging"]
