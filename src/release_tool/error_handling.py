"""
Error taxonomy and centralized error handling for release-tool.

Fatal conditions are raised as ``ReleaseToolError`` subclasses. Non-fatal
incidents (an origin that cannot be resolved, a cache write that failed) are
recorded through the ``ErrorHandler`` so the run can continue with partial
information.
"""

import logging
import re
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse


class ReleaseToolError(Exception):
    """Base class for all fatal release-tool errors."""


class ManifestFormatError(ReleaseToolError):
    """A manifest line or version token could not be parsed."""


class ManifestNotFoundError(ReleaseToolError):
    """No supported manifest exists at the requested revision."""


class GitCommandError(ReleaseToolError):
    """An external command (git, make) could not be run or failed."""

    def __init__(self, message: str, output: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.output = output
        self.returncode = returncode


class ResolutionError(ReleaseToolError):
    """A remote query returned a response without any usable entry."""


class ReleaseFileError(ReleaseToolError):
    """The release description could not be loaded."""


class TemplateError(ReleaseToolError):
    """The release notes template could not be loaded or rendered."""


class ErrorLevel(Enum):
    """Error severity levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """Error categories for better classification."""

    NETWORK = "NETWORK"
    GIT = "GIT"
    CACHE = "CACHE"


@dataclass
class ErrorContext:
    """Structured error context information."""

    level: ErrorLevel
    category: ErrorCategory
    message: str
    module: str
    function: str
    details: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[Exception] = None
    traceback_info: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging."""
        return {
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "module": self.module,
            "function": self.function,
            "details": self.details,
            "exception_type": type(self.exception).__name__ if self.exception else None,
            "exception_message": str(self.exception) if self.exception else None,
            "traceback": self.traceback_info,
        }


_CREDENTIAL_URL = re.compile(r"(https?://[^@\s/]+:)[^@\s]+@")
_TOKEN_PATTERN = re.compile(r'(token["\s]*[:=]["\s]*)([a-zA-Z0-9_\-+=/.]{8,})', re.IGNORECASE)


class SecureLogger:
    """Logger that strips credentials from clone URLs before writing."""

    def __init__(self, name: str, level: int = logging.WARNING):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        if not self.logger.hasHandlers():
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
            self.logger.addHandler(handler)

    def _sanitize_message(self, message: str) -> str:
        sanitized = _CREDENTIAL_URL.sub(r"\1[REDACTED]@", message)
        return _TOKEN_PATTERN.sub(r"\1[REDACTED]", sanitized)

    def log_error_context(self, context: ErrorContext) -> None:
        """Log error context with the level it carries."""
        details = {
            key: self._sanitize_message(value) if isinstance(value, str) else value
            for key, value in context.details.items()
        }
        log_data = {
            "category": context.category.value,
            "module": context.module,
            "function": context.function,
            "details": details,
        }
        if context.exception:
            log_data["exception"] = type(context.exception).__name__

        message = f"{self._sanitize_message(context.message)} | {log_data}"
        self.logger.log(getattr(logging, context.level.value), message)


ErrorCallback = Callable[[ErrorContext], None]


class ErrorHandler:
    """
    Centralized handler for non-fatal incidents.

    Keeps per category/level statistics and lets callers register callbacks,
    which is how the CLI surfaces degraded dependency resolution.
    """

    def __init__(
        self,
        logger_name: str = "release_tool.errors",
        log_level: int = logging.WARNING,
        enable_callbacks: bool = True,
    ):
        self.logger = SecureLogger(logger_name, log_level)
        self.enable_callbacks = enable_callbacks
        self.error_callbacks: Dict[ErrorCategory, List[ErrorCallback]] = {}
        self.global_callbacks: List[ErrorCallback] = []
        self.error_stats: Dict[str, int] = {}

    def register_callback(
        self, callback: ErrorCallback, category: Optional[ErrorCategory] = None
    ) -> None:
        """Register a callback for one category, or for all when None."""
        if not self.enable_callbacks:
            return

        if category is None:
            self.global_callbacks.append(callback)
        else:
            self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        level: ErrorLevel,
        category: ErrorCategory,
        message: str,
        module: str,
        function: str,
        exception: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ErrorContext:
        """
        Record an incident: log it, count it and notify callbacks.

        Args:
            level: Error severity level
            category: Error category
            message: Error message
            module: Module where error occurred
            function: Function where error occurred
            exception: Optional exception object
            details: Additional error details

        Returns:
            ErrorContext: The created error context
        """
        context = ErrorContext(
            level=level,
            category=category,
            message=message,
            module=module,
            function=function,
            details=details or {},
            exception=exception,
            traceback_info=(
                "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
                if exception
                else None
            ),
        )

        stat_key = f"{category.value}_{level.value}"
        self.error_stats[stat_key] = self.error_stats.get(stat_key, 0) + 1

        self.logger.log_error_context(context)

        if self.enable_callbacks:
            for callback in self.error_callbacks.get(category, []) + self.global_callbacks:
                try:
                    callback(context)
                except Exception as cb_error:
                    # A misbehaving callback must not abort the release
                    self.logger.logger.error(f"Error in callback: {cb_error}")

        return context

    def debug(self, category: ErrorCategory, message: str, module: str, function: str, **kwargs) -> ErrorContext:
        """Handle debug level incident."""
        return self.handle_error(ErrorLevel.DEBUG, category, message, module, function, **kwargs)

    def warning(self, category: ErrorCategory, message: str, module: str, function: str, **kwargs) -> ErrorContext:
        """Handle warning level incident."""
        return self.handle_error(ErrorLevel.WARNING, category, message, module, function, **kwargs)

    def error(self, category: ErrorCategory, message: str, module: str, function: str, **kwargs) -> ErrorContext:
        """Handle error level incident."""
        return self.handle_error(ErrorLevel.ERROR, category, message, module, function, **kwargs)

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        return self.error_stats.copy()

    def reset_stats(self) -> None:
        """Reset error statistics."""
        self.error_stats.clear()


_global_error_handler: Optional[ErrorHandler] = None


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    global _global_error_handler
    if _global_error_handler is None:
        _global_error_handler = ErrorHandler()
    return _global_error_handler


def setup_error_handling(
    log_level: int = logging.WARNING,
    enable_callbacks: bool = True,
    logger_name: str = "release_tool.errors",
) -> ErrorHandler:
    """Replace the global error handler with a freshly configured one."""
    global _global_error_handler
    _global_error_handler = ErrorHandler(logger_name, log_level, enable_callbacks)
    return _global_error_handler


def log_network_error(
    message: str,
    module: str,
    function: str,
    url: Optional[str] = None,
    status_code: Optional[int] = None,
    exception: Optional[Exception] = None,
) -> ErrorContext:
    """
    Convenience function for recording a failed HTTP lookup.

    Args:
        message: Error message
        module: Module name
        function: Function name
        url: URL that failed (credentials are stripped)
        status_code: HTTP status code
        exception: Optional exception
    """
    details: Dict[str, Any] = {}
    if url is not None:
        parsed = urlparse(url)
        sanitized_url = f"{parsed.scheme}://{parsed.hostname}"
        if parsed.port:
            sanitized_url += f":{parsed.port}"
        details["url"] = sanitized_url + parsed.path

    if status_code is not None:
        details["status_code"] = status_code

    return get_error_handler().warning(
        ErrorCategory.NETWORK,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )


def log_git_error(
    message: str,
    module: str,
    function: str,
    git_url: Optional[str] = None,
    ref: Optional[str] = None,
    exception: Optional[Exception] = None,
) -> ErrorContext:
    """Convenience function for recording a failed remote git query."""
    details: Dict[str, Any] = {}
    if git_url is not None:
        details["git_url"] = git_url
    if ref is not None:
        details["ref"] = ref

    return get_error_handler().warning(
        ErrorCategory.GIT,
        message,
        module,
        function,
        details=details,
        exception=exception,
    )
