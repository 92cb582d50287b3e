"""
structlog setup for the reel pipeline.

Records are rendered by structlog and written through the standard library:
stdout always, plus ``pipeline.log`` and ``errors.log`` under the configured
``logs_dir`` once file logging is enabled. Handlers installed here are
tagged, so calling ``setup_logging`` again replaces them instead of
stacking duplicates.
"""

import logging
import sys
from typing import List, Optional

import structlog
from structlog.stdlib import LoggerFactory

from .config import Settings, settings as default_settings

_HANDLER_TAG = "_reel_pipeline_handler"


def _renderer(config: Settings):
    if config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _owned_handlers(root: logging.Logger) -> List[logging.Handler]:
    return [handler for handler in root.handlers if getattr(handler, _HANDLER_TAG, False)]


def _tagged(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_TAG, True)
    return handler


def setup_logging(config: Optional[Settings] = None, log_to_files: bool = True) -> None:
    """
    Configure structlog and the root logger handlers.

    Args:
        config: Settings providing level, format and ``logs_dir``
            (module settings when omitted)
        log_to_files: Also write ``pipeline.log`` (INFO+) and ``errors.log``
            (ERROR+) under ``config.logs_dir``
    """
    config = config or default_settings
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(config),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    for handler in _owned_handlers(root):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(level)
    root.addHandler(_tagged(logging.StreamHandler(sys.stdout), level))

    if log_to_files:
        logs_dir = config.logs_dir
        logs_dir.mkdir(parents=True, exist_ok=True)
        root.addHandler(_tagged(logging.FileHandler(logs_dir / "pipeline.log", encoding="utf-8"), logging.INFO))
        root.addHandler(_tagged(logging.FileHandler(logs_dir / "errors.log", encoding="utf-8"), logging.ERROR))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a ``logger`` named after it."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)


# Console logging only until an entry point picks the log directory
setup_logging(log_to_files=False)
