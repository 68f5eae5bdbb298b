"""Grafana access: dashboard model, time expressions and API clients."""

from dashreport.grafana.client import GrafanaClient, PanelImageClient, V4Client, V5Client, new_client
from dashreport.grafana.dashboard import (
    Dashboard,
    GridPos,
    Panel,
    PanelSize,
    PanelType,
    Row,
    SchemaVersion,
    sanitize,
)
from dashreport.grafana.time import ResolvedTimeRange, TimeRange, TimeResolver

__all__ = [
    "Dashboard",
    "GridPos",
    "Panel",
    "PanelSize",
    "PanelType",
    "Row",
    "SchemaVersion",
    "sanitize",
    "TimeRange",
    "ResolvedTimeRange",
    "TimeResolver",
    "GrafanaClient",
    "PanelImageClient",
    "V4Client",
    "V5Client",
    "new_client",
]
