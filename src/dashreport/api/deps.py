from __future__ import annotations

from typing import Callable

from dashreport.grafana.client import GrafanaClient, new_client
from dashreport.report.compiler import LatexCompiler
from dashreport.config import Settings, get_settings

ClientFactory = Callable[..., GrafanaClient]


def get_client_factory() -> ClientFactory:
    """Factory building a Grafana client per request (overridden in tests)."""
    return new_client


def get_compiler() -> LatexCompiler:
    settings: Settings = get_settings()
    return LatexCompiler(settings.pdflatex_path, timeout=settings.compile_timeout)
