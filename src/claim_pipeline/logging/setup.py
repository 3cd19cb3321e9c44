"""Loguru sinks for the pipeline: console lines or JSON records per claim.

Every record carries ``request_id`` and ``claim_number`` extras (``-`` when
unbound) so a claim can be followed from the HTTP request that accepted it
through the consumer thread that processed it.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from omegaconf import DictConfig

_CORRELATION_DEFAULTS = {"request_id": "-", "claim_number": "-"}

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{thread.name: <28}</magenta> | "
    "<yellow>{extra[request_id]: <12}</yellow> | "
    "<yellow>{extra[claim_number]: <14}</yellow> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Loggers that chatter at INFO about connections, pools and metadata refreshes.
_QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "kafka",
    "httpx",
    "httpcore",
    "uvicorn.access",
)


class _StdlibBridge(logging.Handler):
    """Forward records from libraries using ``logging`` into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Any = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _sink(cfg: DictConfig) -> dict[str, Any]:
    level = str(getattr(cfg, "level", "INFO")).upper()
    sink: dict[str, Any] = {
        "sink": sys.stderr,
        "level": level,
        # consumer threads and the event loop share one sink
        "enqueue": True,
        "backtrace": False,
    }
    if getattr(cfg, "format", "pretty") == "structured":
        sink.update(serialize=True, colorize=False)
    else:
        sink.update(format=_CONSOLE_FORMAT, colorize=bool(getattr(cfg, "colored", True)))
    return sink


def setup_logging(cfg: DictConfig) -> None:
    """Install the pipeline's loguru sink and route stdlib logging through it.

    Parameters
    ----------
    cfg:
        The ``logging`` sub-config: ``level``, ``colored`` and ``format``
        (``"pretty"`` or ``"structured"`` for JSON lines).
    """
    sink = _sink(cfg)
    logger.configure(handlers=[sink], extra=dict(_CORRELATION_DEFAULTS))

    logging.basicConfig(handlers=[_StdlibBridge()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(
        "Logging configured: level={level} structured={structured}",
        level=sink["level"],
        structured=sink.get("serialize", False),
    )
