"""
Logging for the Stockroom service.

Our own events go through structlog; stdlib records (uvicorn, sqlalchemy,
alembic) are rendered by the same formatter so one stream carries both.
``STOCKROOM_LOG_FORMAT=json`` switches the renderer for log shippers.
"""

from __future__ import annotations

import logging
from typing import Optional

import structlog

from stockroom.app.config import get_settings

# loggers that ship their own handlers and would otherwise print twice
_ADOPTED = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _pre_chain() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(log_level: Optional[str] = None) -> None:
    settings = get_settings()
    level = logging.getLevelName((log_level or settings.log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain = _pre_chain()
    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(settings.log_format),
            ],
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in _ADOPTED:
        adopted = logging.getLogger(name)
        adopted.handlers.clear()
        adopted.propagate = True
