"""Grafana HTTP clients.

Two variants exist because Grafana changed both the dashboard API and the
render endpoint between v4 (dashboards addressed by slug) and v5 (by uid).
The variant also decides how the dashboard JSON is normalized.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dashreport.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from dashreport.core.errors import DashboardFetchFailed, PanelFetchPermanent, PanelFetchTransient
from dashreport.grafana.dashboard import Dashboard, Panel, PanelSize, SchemaVersion
from dashreport.grafana.time import TimeRange

logger = structlog.get_logger()

Variables = Mapping[str, Sequence[str]]


class PanelImageClient(Protocol):
    """What the report pipeline needs from Grafana."""

    async def get_dashboard(self, dashboard_name: str) -> Dashboard:
        ...

    async def get_panel_png(
        self,
        panel: Panel,
        dashboard_name: str,
        time_range: TimeRange,
        size: PanelSize,
    ) -> bytes:
        ...


class GrafanaClient(BaseHTTPClient):
    """Shared Grafana client behaviour; use ``V4Client`` or ``V5Client``."""

    schema: SchemaVersion

    def __init__(
        self,
        url: str,
        token: str | None = None,
        variables: Variables | None = None,
        *,
        ssl_check: bool = True,
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
    ) -> None:
        super().__init__(url, timeout=timeout, verify=ssl_check)
        self._token = token
        self.variables: dict[str, list[str]] = {k: list(v) for k, v in (variables or {}).items()}
        self._max_retries = max_retries
        self._backoff_factor = backoff_factor

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def dashboard_path(self, dashboard_name: str) -> str:
        raise NotImplementedError

    def render_path(self, dashboard_name: str) -> str:
        raise NotImplementedError

    async def fetch_dashboard_json(self, dashboard_name: str) -> bytes:
        """Fetch the raw dashboard JSON, retrying server-side faults."""
        path = self.dashboard_path(dashboard_name)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RetryableHTTPError),
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff_factor, max=30),
                reraise=True,
            ):
                with attempt:
                    response = await self.get(path)
        except (RetryableHTTPError, PermanentHTTPError) as exc:
            raise DashboardFetchFailed(
                f"error obtaining dashboard {dashboard_name!r} from Grafana: {exc}",
                {"dashboard": dashboard_name},
            ) from exc
        return response.content

    async def get_dashboard(self, dashboard_name: str) -> Dashboard:
        raw = await self.fetch_dashboard_json(dashboard_name)
        dashboard = Dashboard.from_json(raw, self.variables, self.schema)
        logger.debug(
            "dashboard_fetched",
            dashboard=dashboard_name,
            schema=str(self.schema),
            panels=len(dashboard.panels),
        )
        return dashboard

    def panel_params(
        self, panel: Panel, time_range: TimeRange, size: PanelSize
    ) -> list[tuple[str, str | int]]:
        params: list[tuple[str, str | int]] = [
            ("panelId", panel.id),
            ("from", time_range.from_),
            ("to", time_range.to),
            ("width", size.width),
            ("height", size.height),
        ]
        for name, values in self.variables.items():
            params.extend((name, value) for value in values)
        return params

    async def get_panel_png(
        self,
        panel: Panel,
        dashboard_name: str,
        time_range: TimeRange,
        size: PanelSize,
    ) -> bytes:
        """Render one panel once. Failures are classified, never retried here."""
        try:
            response = await self.get(
                self.render_path(dashboard_name),
                params=self.panel_params(panel, time_range, size),
                headers={"Accept": "image/png"},
            )
        except RetryableHTTPError as exc:
            raise PanelFetchTransient(f"panel {panel.id}: {exc}", panel.id) from exc
        except PermanentHTTPError as exc:
            raise PanelFetchPermanent(f"panel {panel.id}: {exc}", panel.id) from exc
        return response.content


class V4Client(GrafanaClient):
    """Grafana 4.x: dashboards addressed by slug, panels grouped in rows."""

    schema = SchemaVersion.V4

    def dashboard_path(self, dashboard_name: str) -> str:
        return f"/api/dashboards/db/{dashboard_name}"

    def render_path(self, dashboard_name: str) -> str:
        return f"/render/dashboard-solo/db/{dashboard_name}"


class V5Client(GrafanaClient):
    """Grafana 5.x and later: dashboards addressed by uid, flat panel list."""

    schema = SchemaVersion.V5

    def dashboard_path(self, dashboard_name: str) -> str:
        return f"/api/dashboards/uid/{dashboard_name}"

    def render_path(self, dashboard_name: str) -> str:
        return f"/render/d-solo/{dashboard_name}/_"


def new_client(
    api_version: str,
    url: str,
    token: str | None = None,
    variables: Variables | None = None,
    **kwargs,
) -> GrafanaClient:
    """Construct the client variant for a Grafana API generation (``v4``/``v5``)."""
    if api_version == SchemaVersion.V4:
        return V4Client(url, token, variables, **kwargs)
    if api_version == SchemaVersion.V5:
        return V5Client(url, token, variables, **kwargs)
    raise ValueError(f"unsupported Grafana API version: {api_version!r}")
