"""
Structured logging configuration for release-tool.

Events are written as JSON lines to stderr so that release notes printed to
stdout stay clean and the log can be post-processed in CI.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_ATTRIBUTES = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    ]
)


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRIBUTES:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for release-tool events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"release_tool.{name}")
        self.context: Dict[str, Any] = {}

    def set_context(self, **kwargs) -> None:
        """Attach fields to every subsequent event of this logger."""
        self.context = {key: value for key, value in kwargs.items() if value is not None}

    def clear_context(self) -> None:
        self.context.clear()

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, event_type, extra={"event_type": event_type, **self.context, **kwargs})

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log(logging.DEBUG, event_type, **kwargs)


def setup_logging(level: str = "WARNING", stream=None, log_format: str = "json") -> logging.Logger:
    """
    Configure the ``release_tool`` logger hierarchy.

    Args:
        level: Logging level name
        stream: Output stream, stderr by default
        log_format: ``json`` for structured lines, ``text`` for plain lines

    Returns:
        The configured root logger of the package
    """
    root = logging.getLogger("release_tool")
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))

    if log_format == "text":
        formatter = logging.Formatter(TEXT_FORMAT)
    else:
        formatter = StructuredFormatter()

    handler = next((h for h in root.handlers if getattr(h, "release_tool_handler", False)), None)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.release_tool_handler = True
        root.addHandler(handler)
    handler.setFormatter(formatter)

    return root


_cache_logger = EventLogger("cache")
_resolver_logger = EventLogger("resolver")
_differ_logger = EventLogger("differ")
_release_logger = EventLogger("release")
_parser_logger = EventLogger("parsers")


def get_cache_logger() -> EventLogger:
    """Get cache events logger."""
    return _cache_logger


def get_resolver_logger() -> EventLogger:
    """Get remote resolution events logger."""
    return _resolver_logger


def get_differ_logger() -> EventLogger:
    """Get dependency diff events logger."""
    return _differ_logger


def get_release_logger() -> EventLogger:
    """Get release assembly events logger."""
    return _release_logger


def get_parser_logger() -> EventLogger:
    """Get manifest parsing events logger."""
    return _parser_logger


def log_release_start(tag: str, project_name: str, commit: str, previous: Optional[str]) -> None:
    """Log release start event."""
    logger = get_release_logger()
    logger.set_context(tag=tag)
    logger.info(
        "release_started",
        project_name=project_name,
        commit=commit,
        previous=previous,
    )


def log_release_complete(changes: int, dependencies: int, contributors: int) -> None:
    """Log release completion event."""
    logger = get_release_logger()
    logger.info(
        "release_completed",
        changes=changes,
        dependencies=dependencies,
        contributors=contributors,
    )
    logger.clear_context()
