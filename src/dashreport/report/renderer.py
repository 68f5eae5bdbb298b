"""Concurrent panel rendering.

Every panel of a dashboard is fetched from Grafana's renderer as a PNG and
written to ``<images_dir>/image<panel id>.png``. A fixed pool of workers
drains a queue of panels; a panel that cannot be rendered is recorded and
skipped without affecting the others.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from dashreport.core.errors import (
    AssemblyAggregateError,
    PanelFetchError,
    PanelFetchPermanent,
    PanelFetchTransient,
    RenderCancelled,
)
from dashreport.grafana.client import PanelImageClient
from dashreport.grafana.dashboard import Dashboard, Panel, PanelSize
from dashreport.grafana.time import TimeRange

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 10.0
DEFAULT_MAX_WORKERS = 8


def image_name(panel_id: int) -> str:
    return f"image{panel_id}.png"


@dataclass(frozen=True)
class RenderedImage:
    panel_id: int
    path: Path | None = None
    error: PanelFetchError | None = None

    @property
    def ok(self) -> bool:
        return self.path is not None


@dataclass(frozen=True)
class RenderResult:
    """Outcome of rendering one dashboard, in dashboard panel order."""

    images: tuple[RenderedImage, ...]

    @property
    def succeeded(self) -> tuple[RenderedImage, ...]:
        return tuple(i for i in self.images if i.ok)

    @property
    def failed(self) -> tuple[RenderedImage, ...]:
        return tuple(i for i in self.images if not i.ok)

    @property
    def error(self) -> AssemblyAggregateError | None:
        """Aggregate of every panel failure, or None when all panels rendered."""
        errors = [i.error for i in self.failed if i.error is not None]
        if not errors:
            return None
        return AssemblyAggregateError(errors, total=len(self.images))

    def rendered_ids(self) -> set[int]:
        return {i.panel_id for i in self.succeeded}


class PanelRenderer:
    def __init__(
        self,
        client: PanelImageClient,
        images_dir: Path | str,
        *,
        grid_layout: bool = False,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.images_dir = Path(images_dir)
        self.grid_layout = grid_layout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_workers = max_workers

    async def render(
        self,
        dashboard: Dashboard,
        dashboard_name: str,
        time_range: TimeRange,
        cancel: asyncio.Event | None = None,
    ) -> RenderResult:
        """Render every panel of ``dashboard``.

        Returns once every panel has been attempted. Panel failures are
        reported through ``RenderResult.error``; setting ``cancel`` stops the
        remaining work and raises ``RenderCancelled``.
        """
        self.images_dir.mkdir(parents=True, exist_ok=True)
        panels = dashboard.panels
        results: list[RenderedImage | None] = [None] * len(panels)

        queue: asyncio.Queue[tuple[int, Panel]] = asyncio.Queue()
        for job in enumerate(panels):
            queue.put_nowait(job)

        async def worker() -> None:
            while not (cancel is not None and cancel.is_set()):
                try:
                    index, panel = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    results[index] = await self._render_panel(
                        panel, dashboard_name, time_range, cancel
                    )
                except RenderCancelled:
                    return

        workers = [
            asyncio.create_task(worker()) for _ in range(min(self.max_workers, len(panels)))
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                task.cancel()

        if any(r is None for r in results):
            logger.warning(
                "panel_render_cancelled",
                dashboard=dashboard_name,
                completed=sum(r is not None for r in results),
                total=len(panels),
            )
            raise RenderCancelled(
                f"rendering of dashboard {dashboard_name!r} was cancelled",
                {"dashboard": dashboard_name},
            )

        result = RenderResult(tuple(r for r in results if r is not None))
        logger.info(
            "panels_rendered",
            dashboard=dashboard_name,
            rendered=len(result.succeeded),
            failed=len(result.failed),
        )
        return result

    async def _render_panel(
        self,
        panel: Panel,
        dashboard_name: str,
        time_range: TimeRange,
        cancel: asyncio.Event | None,
    ) -> RenderedImage:
        size = panel.render_size(self.grid_layout)
        try:
            data = await self._fetch(panel, dashboard_name, time_range, size, cancel)
        except PanelFetchTransient as exc:
            error: PanelFetchError = PanelFetchPermanent(
                f"{exc} (gave up after {self.max_attempts} attempts)", panel.id
            )
            error.__cause__ = exc
            return self._failed(panel, dashboard_name, error)
        except PanelFetchError as exc:
            return self._failed(panel, dashboard_name, exc)
        except RenderCancelled:
            raise
        except Exception as exc:
            error = PanelFetchPermanent(str(exc), panel.id)
            error.__cause__ = exc
            return self._failed(panel, dashboard_name, error)

        path = self.images_dir / image_name(panel.id)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as exc:
            error = PanelFetchPermanent(f"panel {panel.id}: could not save image: {exc}", panel.id)
            error.__cause__ = exc
            return self._failed(panel, dashboard_name, error)
        logger.debug("panel_rendered", dashboard=dashboard_name, panel_id=panel.id, path=str(path))
        return RenderedImage(panel.id, path=path)

    def _failed(self, panel: Panel, dashboard_name: str, error: PanelFetchError) -> RenderedImage:
        logger.warning(
            "panel_render_failed",
            dashboard=dashboard_name,
            panel_id=panel.id,
            error=str(error),
        )
        return RenderedImage(panel.id, error=error)

    async def _fetch(
        self,
        panel: Panel,
        dashboard_name: str,
        time_range: TimeRange,
        size: PanelSize,
        cancel: asyncio.Event | None,
    ) -> bytes:
        async def sleep(seconds: float) -> None:
            if cancel is None:
                await asyncio.sleep(seconds)
                return
            try:
                await asyncio.wait_for(cancel.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                return
            raise RenderCancelled("rendering cancelled while waiting to retry")

        def log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            logger.warning(
                "panel_render_retry",
                dashboard=dashboard_name,
                panel_id=panel.id,
                attempt=state.attempt_number,
                error=str(exc),
            )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type(PanelFetchTransient),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay),
            sleep=sleep,
            before_sleep=log_retry,
            reraise=True,
        )
        data = b""
        async for attempt in retrying:
            with attempt:
                data = await self._fetch_once(panel, dashboard_name, time_range, size, cancel)
        return data

    async def _fetch_once(
        self,
        panel: Panel,
        dashboard_name: str,
        time_range: TimeRange,
        size: PanelSize,
        cancel: asyncio.Event | None,
    ) -> bytes:
        if cancel is None:
            return await self.client.get_panel_png(panel, dashboard_name, time_range, size)
        if cancel.is_set():
            raise RenderCancelled("rendering cancelled")

        fetch_task = asyncio.ensure_future(
            self.client.get_panel_png(panel, dashboard_name, time_range, size)
        )
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({fetch_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not fetch_task.done():
                fetch_task.cancel()

        if fetch_task.done() and not fetch_task.cancelled():
            return fetch_task.result()
        raise RenderCancelled(f"rendering of panel {panel.id} abandoned")
