"""
Report assembly.

A ``Report`` owns one private working directory::

    <tmp>/dashreport-XXXX/
        images/image<panel id>.png
        report.tex
        report.pdf          (after generate())

``render()`` produces the LaTeX source, ``generate()`` also compiles it, and
``clean()`` removes the directory. Reports are single use; concurrent requests
each build their own.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import structlog

from dashreport.core.errors import AssemblyAggregateError
from dashreport.grafana.client import PanelImageClient
from dashreport.grafana.dashboard import Dashboard
from dashreport.grafana.time import ResolvedTimeRange, TimeRange
from dashreport.logging import bind_report_context
from dashreport.report.compiler import LatexCompiler
from dashreport.report.renderer import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RETRY_DELAY,
    PanelRenderer,
    RenderResult,
)
from dashreport.report.templates import load_template, template_context

TEX_FILENAME = "report.tex"
IMAGES_DIRNAME = "images"


@dataclass(frozen=True)
class ReportSource:
    """The written LaTeX source and what went into it."""

    tex_path: Path
    text: str
    dashboard: Dashboard
    time_range: ResolvedTimeRange
    panels: RenderResult

    @property
    def warning(self) -> AssemblyAggregateError | None:
        """Set when some panels are missing from the report."""
        return self.panels.error


class Report:
    def __init__(
        self,
        client: PanelImageClient,
        dashboard_name: str,
        time_range: TimeRange,
        *,
        template: str | None = None,
        template_dir: Path | str | None = None,
        grid_layout: bool = False,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_workers: int = DEFAULT_MAX_WORKERS,
        compiler: LatexCompiler | None = None,
        workdir_root: Path | str | None = None,
    ) -> None:
        self.client = client
        self.dashboard_name = dashboard_name
        self.time_range = time_range
        self.template = template
        self.template_dir = template_dir
        self.compiler = compiler or LatexCompiler()

        self.tmp_dir = Path(tempfile.mkdtemp(prefix="dashreport-", dir=workdir_root))
        self.report_id = self.tmp_dir.name
        self.images_dir.mkdir()

        self.renderer = PanelRenderer(
            client,
            self.images_dir,
            grid_layout=grid_layout,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            max_workers=max_workers,
        )
        self._log = bind_report_context(dashboard_name, self.report_id)

    @property
    def images_dir(self) -> Path:
        return self.tmp_dir / IMAGES_DIRNAME

    @property
    def tex_path(self) -> Path:
        return self.tmp_dir / TEX_FILENAME

    async def render(
        self,
        now: datetime | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ReportSource:
        """Fetch the dashboard, render its panels and write the LaTeX source.

        Raises for a bad template or time range and for an unreachable
        dashboard. Missing panels do not raise; they are reported through
        ``ReportSource.warning``.
        """
        template = load_template(self.template, self.template_dir)
        resolved = self.time_range.resolve(now)
        dashboard = await self.client.get_dashboard(self.dashboard_name)

        panels = await self.renderer.render(
            dashboard,
            self.dashboard_name,
            resolved.as_time_range(),
            cancel,
        )

        text = template.render(**template_context(dashboard, resolved, panels.rendered_ids()))
        await asyncio.to_thread(self.tex_path.write_text, text, encoding="utf-8")

        source = ReportSource(self.tex_path, text, dashboard, resolved, panels)
        if source.warning is not None:
            self._log.warning(
                "report_incomplete",
                failed=len(panels.failed),
                total=len(panels.images),
                error=str(source.warning),
            )
        self._log.info("report_rendered", source=str(self.tex_path), panels=len(panels.succeeded))
        return source

    async def generate(
        self,
        now: datetime | None = None,
        cancel: asyncio.Event | None = None,
    ) -> tuple[Path, ReportSource]:
        """Render and compile; returns the PDF path and the source it came from."""
        source = await self.render(now, cancel)
        pdf_path = await asyncio.to_thread(self.compiler.compile, source.tex_path)
        return pdf_path, source

    def clean(self) -> None:
        """Remove the working directory. Safe to call more than once."""
        try:
            shutil.rmtree(self.tmp_dir)
        except FileNotFoundError:
            return
        self._log.debug("report_cleaned", workdir=str(self.tmp_dir))

    async def __aenter__(self) -> Report:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.clean()
