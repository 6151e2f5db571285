"""Structured logging for labqc using structlog.

The engine only emits events; configure_logging() is for applications that
embed labqc and want its events rendered. Output formats, selectable through
LABQC_LOG_FORMAT:
  - "console" (default): colored, human-readable output
  - "json": one JSON object per line for log aggregation

Events carry the QC key (analyte/instrument/lot) when the caller wraps its
work in qc_log_context().
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, TextIO

import structlog


def _shared_processors(json_output: bool) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_output:
        # JSON lines need the traceback as a string field
        processors.append(structlog.processors.format_exc_info)
    return processors


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Route labqc events through stdlib logging with a structlog renderer.

    Args:
        log_format: "console" or "json" (LABQC_LOG_FORMAT when None)
        log_level: Minimum level name; unknown names fall back to INFO
            (LABQC_LOG_LEVEL when None)
        stream: Output stream (default: stderr)
    """
    from labqc.core.config import get_settings

    settings = get_settings()
    log_format = log_format or settings.log_format
    log_level = log_level or settings.log_level
    json_output = log_format == "json"

    shared_processors = _shared_processors(json_output)
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@contextmanager
def qc_log_context(
    analyte: str | None = None,
    instrument: str | None = None,
    lot: str | None = None,
    **extra: Any,
) -> Iterator[None]:
    """Bind the QC key to every labqc event emitted inside the block.

    None values are not bound.

    Examples:
        >>> with qc_log_context(analyte="GLU", lot="L2301"):
        ...     structlog.contextvars.get_contextvars()["analyte"]
        'GLU'
    """
    values = {"analyte": analyte, "instrument": instrument, "lot": lot, **extra}
    bound = {key: value for key, value in values.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
