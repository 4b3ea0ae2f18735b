"""Structured logging configuration using structlog.

Console output by default, JSON when LEDGER_LOG_JSON is set.
Modules use get_logger(__name__) instead of print().
"""

import logging
import os
import sys

import structlog


def setup_logging(json_output: bool = False, log_level: str = "INFO") -> None:
    """Configure structlog processors and output format.

    Args:
        json_output: If True, output JSON. If False, console format.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging (streamlit, pandas) to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )


def setup_logging_from_env() -> None:
    """Read LEDGER_LOG_LEVEL / LEDGER_LOG_JSON and configure logging."""
    json_output = os.environ.get("LEDGER_LOG_JSON", "").strip().lower() in ("1", "true", "yes")
    setup_logging(json_output=json_output, log_level=os.environ.get("LEDGER_LOG_LEVEL", "INFO"))


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        structlog logger with module name context.
    """
    return structlog.get_logger(name)
