"""Structured logging utilities for solokube."""

import logging
import sys
from typing import Any

import structlog


def setup_logging(level: str = "INFO", format: str = "console", output: str = "stderr") -> None:
    """Configure structured logging for solokube.

    Command summaries go to stdout, so logs default to stderr.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json or console)
        output: Output destination (stdout or stderr)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    stream = sys.stdout if output == "stdout" else sys.stderr

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=log_level,
    )

    if format == "json":
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


def log_operation(
    logger: structlog.BoundLogger,
    operation: str,
    cluster: str,
    **kwargs: Any,
) -> None:
    """Record a cluster lifecycle phase as a ``cluster_<operation>`` event.

    Args:
        logger: Logger instance
        operation: Lifecycle phase (create, create_complete, delete, start, stop)
        cluster: Cluster name the phase applies to
        **kwargs: Extra fields such as node name or node IP
    """
    logger.info(f"cluster_{operation}", cluster=cluster, **kwargs)


# Diagnostic attributes carried by solokube and runtime errors.
_ERROR_FIELDS = ("exit_code", "command", "stderr", "status", "node_name")


def log_error(
    logger: structlog.BoundLogger,
    error: Exception,
    operation: str | None = None,
    cluster: str | None = None,
) -> None:
    """Record a failed cluster command as a ``cluster_operation_failed`` event.

    Diagnostics the error carries (in-node exit code and argv, captured
    stderr, HTTP status of a kernel download, missing node name) are logged
    as fields alongside its type and message.

    Args:
        logger: Logger instance
        error: Exception instance
        operation: CLI command that failed (optional)
        cluster: Cluster name (optional)
    """
    context: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error": str(error),
    }
    for field in _ERROR_FIELDS:
        value = getattr(error, field, None)
        if value:
            context[field] = " ".join(value) if isinstance(value, list) else value

    if operation:
        context["operation"] = operation
    if cluster:
        context["cluster"] = cluster

    logger.error("cluster_operation_failed", **context)
