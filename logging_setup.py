"""Central logging configuration for Iron Quest."""

from __future__ import annotations

import logging
import os
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "ironquest"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 7
LOG_LEVEL_ENV_VAR = "IRONQUEST_LOG_LEVEL"
LOG_FILE_ENV_VAR = "IRONQUEST_LOG_FILE"

_logger: Optional[logging.Logger] = None
_configured: bool = False

# Default tag per module keyword
TAG_MAP = {
    "csv_import": "IMPORT",
    "workout": "LOG",
    "progression": "PROG",
    "planner": "PLAN",
    "stats": "STATS",
    "gamification": "GAME",
    "rest_api": "API",
    "cli": "CLI",
    "db": "DB",
    "tracker": "CORE",
}


class TaggedLogger(logging.LoggerAdapter):
    """Logger adapter that injects a tag field into every record."""

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        if "tag" not in extra:
            extra["tag"] = self.extra.get("tag", "GEN")
        kwargs["extra"] = extra
        return msg, kwargs


def _resolve_level(level: Optional[str]) -> int:
    candidate = str(level or os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")).upper()
    numeric_level = logging.getLevelName(candidate)
    if isinstance(numeric_level, int):
        return numeric_level
    print(
        f"ironquest logger: unknown log level '{candidate}', defaulting to INFO.",
        file=sys.stderr,
    )
    return logging.INFO


def _build_formatter() -> logging.Formatter:
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(tag)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    formatter.converter = time.gmtime
    return formatter


def configure_logging(
    *,
    log_path: Optional[Path] = None,
    level: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
    force: bool = False,
) -> logging.Logger:
    """Attach console and optional rotating file handlers to the shared logger."""
    global _logger, _configured
    logger = logging.getLogger(LOGGER_NAME)

    if _configured and not force and log_path is None:
        if level is not None:
            logger.setLevel(_resolve_level(level))
        return logger

    if force or _configured:
        for h in list(logger.handlers):
            h.close()
            logger.removeHandler(h)
        _configured = False
        _logger = None

    logger.setLevel(_resolve_level(level))
    formatter = _build_formatter()

    env_path = os.environ.get(LOG_FILE_ENV_VAR)
    resolved_path = Path(log_path) if log_path is not None else (
        Path(env_path) if env_path else None
    )
    if resolved_path is not None:
        try:
            resolved_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                resolved_path,
                maxBytes=max_bytes or DEFAULT_MAX_BYTES,
                backupCount=backup_count or DEFAULT_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as exc:
            print(
                f"ironquest logger: unable to access log file {resolved_path}: {exc}",
                file=sys.stderr,
            )

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    logger.propagate = False

    _configured = True
    _logger = logger
    return logger


def get_tag_for_module(module_name: str) -> str:
    """Infer a logging tag from the module name."""
    module_name = module_name.lower()
    for key, tag in TAG_MAP.items():
        if key in module_name:
            return tag
    return "GEN"


def get_logger(module_name: str) -> TaggedLogger:
    """Return a tagged logger for ``module_name``, configuring on first use."""
    base_logger = _logger if _configured and _logger else configure_logging()
    return TaggedLogger(base_logger, {"tag": get_tag_for_module(module_name)})


def reset_logging() -> None:
    """Tear down handlers so tests can reconfigure the logger cleanly."""
    global _configured, _logger
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    _configured = False
    _logger = None
