from __future__ import annotations

import json
import logging
from typing import Any, Dict

from .config import Settings


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    fmt = "%(message)s" if settings.log_json else "%(levelname)s %(name)s %(message)s"
    logging.basicConfig(level=level, format=fmt)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)


def log_json(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log one listener event (``decode_error``, ``sequence_gap``, ...) as a compact JSON line.

    With ``log_json`` the root format is the bare message, so the line carries
    its own logger name and level.
    """
    payload: Dict[str, Any] = {
        "event": event,
        "logger": logger.name,
        "level": logging.getLevelName(level),
    }
    payload.update(fields)
    logger.log(level, json.dumps(payload, separators=(",", ":"), default=str))
