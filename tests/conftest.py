"""Root test configuration."""

import logging
from datetime import datetime, timezone

import pytest
import structlog

from dashreport.core.errors import PanelFetchPermanent, PanelFetchTransient
from dashreport.grafana.dashboard import Dashboard, SchemaVersion

# Wed, 06 Jan 2016 16:34:32 UTC
TEST_NOW = datetime(2016, 1, 6, 16, 34, 32, tzinfo=timezone.utc)

V4_DASHBOARD_JSON = """
{"Dashboard":
    {
        "Title": "My first dashboard",
        "Rows":
        [{"Panels":
            [{"Type": "singlestat", "Id": 1},
             {"Type": "graph", "Id": 22}]
        },
        {"Panels":
            [
                {"Type": "singlestat", "Id": 33},
                {"Type": "graph", "Id": 44},
                {"Type": "graph", "Id": 55},
                {"Type": "graph", "Id": 66},
                {"Type": "graph", "Id": 77},
                {"Type": "graph", "Id": 88},
                {"Type": "graph", "Id": 99}
            ]
        }]
    },
"Meta":
    {"Slug": "testDash"}
}
"""


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class FakeGrafanaClient:
    """In-memory stand-in for a Grafana client.

    ``failures`` maps a 1-based call number to the exception raised on that
    call; every other call returns a fake PNG body.
    """

    def __init__(self, dashboard_json=V4_DASHBOARD_JSON, variables=None, failures=None):
        self.dashboard_json = dashboard_json
        self.variables = variables or {}
        self.failures = dict(failures or {})
        self.calls = []

    async def get_dashboard(self, dashboard_name):
        return Dashboard.from_json(self.dashboard_json, self.variables, SchemaVersion.V4)

    async def get_panel_png(self, panel, dashboard_name, time_range, size):
        self.calls.append((panel.id, dashboard_name, time_range, size))
        error = self.failures.get(len(self.calls))
        if error is not None:
            raise error
        return b"Not actually a png"


class FakeCompiler:
    """Writes a placeholder PDF instead of running pdflatex."""

    is_available = True

    def __init__(self):
        self.sources = []

    def compile(self, tex_path):
        self.sources.append(tex_path)
        pdf_path = tex_path.with_suffix(".pdf")
        pdf_path.write_bytes(b"%PDF-1.4 fake")
        return pdf_path


@pytest.fixture
def v4_dashboard():
    return Dashboard.from_json(V4_DASHBOARD_JSON, {"var-test": ["testvarvalue"]}, SchemaVersion.V4)


@pytest.fixture
def fake_client():
    return FakeGrafanaClient(variables={"var-test": ["testvarvalue"]})


@pytest.fixture
def failing_client():
    """Fails permanently on the second panel fetched."""
    return FakeGrafanaClient(failures={2: PanelFetchPermanent("The second panel has some problem", 22)})


@pytest.fixture
def flaky_client():
    """Fails transiently on the first panel fetch only."""
    return FakeGrafanaClient(failures={1: PanelFetchTransient("HTTP 500: render timeout", 1)})
