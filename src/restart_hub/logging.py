"""Structured logging configuration using structlog."""

import logging
import sys

import structlog

THIRD_PARTY_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.error", "websockets", "watchdog")


def configure_logging(debug: bool = False, json_output: bool = True) -> None:
    """Configure structlog output for the hub process.

    Args:
        debug: Enable debug-level logging when True.
        json_output: Render JSON lines; otherwise human-readable console
            output for running the hub in a terminal.
    """
    level = logging.DEBUG if debug else logging.INFO
    renderers: list[structlog.typing.Processor] = (
        [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
        if json_output
        else [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(name)s %(levelname)s %(message)s",
        level=level,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    if not debug:
        logging.getLogger("watchdog").setLevel(logging.WARNING)
        logging.getLogger("websockets").setLevel(logging.WARNING)
