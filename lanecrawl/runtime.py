from __future__ import annotations

import logging
import os
from pathlib import Path


class _NoisyClientLogFilter(logging.Filter):
    """Drops per-request chatter from urllib3 connection pools."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("urllib3"):
            return True
        return record.levelno >= logging.WARNING


def configure_logging(name: str, level: str | None = None) -> logging.Logger:
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    if os.getenv("SUPPRESS_CLIENT_LOGS", "1").strip().lower() not in {"0", "false", "no", "off"}:
        # propagated records skip logger filters, so the handlers carry it
        for handler in root_logger.handlers:
            if not any(isinstance(existing, _NoisyClientLogFilter) for existing in handler.filters):
                handler.addFilter(_NoisyClientLogFilter())
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level, logging.INFO))
    return logger


def env_path(name: str, default: str) -> Path:
    return Path(os.getenv(name, default)).expanduser().resolve()
