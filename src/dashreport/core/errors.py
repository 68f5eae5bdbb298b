"""
Unified error handling for dashreport.

Every failure the report pipeline can surface is a ``ReporterError`` subclass
carrying the CLI exit code and the HTTP status the front-end answers with.

Exit Codes:
- 0: Success
- 1: Warning (report produced, some panels missing)
- 10: Configuration error (unknown template, bad settings)
- 11: Provider error (Grafana or pdflatex failure)
- 12: Validation error (malformed time expression)
- 127: Unknown/internal error
- 130: Cancelled
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, Sequence, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127
    CANCELLED = 130


class ReporterError(Exception):
    """Base exception for dashreport errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    status_code: int = 500
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedTimeExpression(ReporterError):
    """Raised when a time expression matches neither an epoch nor a now-relative form."""

    exit_code = ExitCode.VALIDATION_ERROR
    status_code = 400

    def __init__(self, expression: str):
        super().__init__(f"malformed time expression: {expression!r}", {"expression": expression})
        self.expression = expression


class DashboardFetchFailed(ReporterError):
    """Raised when the dashboard metadata cannot be fetched or decoded."""

    exit_code = ExitCode.PROVIDER_ERROR
    status_code = 502


class PanelFetchError(ReporterError):
    """Base for failures fetching one panel image."""

    exit_code = ExitCode.PROVIDER_ERROR
    status_code = 502

    def __init__(self, message: str, panel_id: int | None = None):
        super().__init__(message, {"panel_id": panel_id} if panel_id is not None else None)
        self.panel_id = panel_id


class PanelFetchTransient(PanelFetchError):
    """Retryable panel fetch failure (server fault, throttling, network)."""


class PanelFetchPermanent(PanelFetchError):
    """Panel fetch failure that will not succeed on retry."""


class AssemblyAggregateError(ReporterError):
    """One or more panels could not be rendered; the report is incomplete."""

    exit_code = ExitCode.WARNING
    status_code = 200

    def __init__(self, errors: Sequence[PanelFetchError], total: int):
        self.errors = tuple(errors)
        self.total = total
        joined = "; ".join(str(e) for e in self.errors)
        super().__init__(
            f"{len(self.errors)} of {total} panels failed to render: {joined}",
            {"failed_panels": [e.panel_id for e in self.errors]},
        )


class RenderCancelled(ReporterError):
    """Panel rendering was cancelled before every panel completed."""

    exit_code = ExitCode.CANCELLED
    status_code = 499


class TemplateNotFound(ReporterError):
    """Raised when a named report template does not exist."""

    exit_code = ExitCode.CONFIG_ERROR
    status_code = 400


class DocumentCompileFailed(ReporterError):
    """Raised when pdflatex cannot produce the PDF."""

    exit_code = ExitCode.PROVIDER_ERROR
    status_code = 500


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Exit codes:
        - ReporterError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ReporterError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return ExitCode.CANCELLED
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: ReporterError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
