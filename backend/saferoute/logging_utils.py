from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "safe_route"
LOG_FILE = "safe_route.log.jsonl"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _file_handler(out_dir: str) -> logging.Handler | None:
    log_dir = Path(out_dir) / "logs"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_dir / LOG_FILE, encoding="utf-8")
    except OSError:
        # stream-only when out_dir is not writable
        return None


@lru_cache(maxsize=1)
def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.getLevelName(settings.log_level)
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    logger.propagate = False

    formatter = jsonlogger.JsonFormatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    fh = _file_handler(settings.out_dir)
    if fh is not None:
        handlers.append(fh)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit ``event`` as the message and as a top-level ``event`` key."""
    logger = get_logger()
    if logger.isEnabledFor(level):
        logger.log(level, event, extra={"event": event, **fields})
