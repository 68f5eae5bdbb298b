"""Core modules for dashreport - error taxonomy and exit codes."""

from dashreport.core.errors import (
    AssemblyAggregateError,
    DashboardFetchFailed,
    DocumentCompileFailed,
    ExitCode,
    MalformedTimeExpression,
    PanelFetchError,
    PanelFetchPermanent,
    PanelFetchTransient,
    RenderCancelled,
    ReporterError,
    TemplateNotFound,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ReporterError",
    "MalformedTimeExpression",
    "DashboardFetchFailed",
    "PanelFetchError",
    "PanelFetchTransient",
    "PanelFetchPermanent",
    "AssemblyAggregateError",
    "RenderCancelled",
    "TemplateNotFound",
    "DocumentCompileFailed",
    "main_with_error_handling",
    "format_error_message",
]
