"""Report endpoints.

``GET /api/report/{dashboard}`` addresses a Grafana 4 dashboard by slug,
``GET /api/v5/report/{dashboard}`` a Grafana 5+ dashboard by uid. Both take
``from``, ``to``, ``apitoken``, ``template`` and any ``var-*`` parameters and
answer with the compiled PDF.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from dashreport.api.deps import ClientFactory, get_client_factory, get_compiler
from dashreport.config import Settings, get_settings
from dashreport.grafana.dashboard import SchemaVersion
from dashreport.grafana.time import TimeRange
from dashreport.report.compiler import LatexCompiler
from dashreport.report.report import Report

logger = structlog.get_logger()

router = APIRouter()

VARIABLE_PREFIX = "var-"


def dashboard_variables(request: Request) -> dict[str, list[str]]:
    variables: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        if key.startswith(VARIABLE_PREFIX):
            variables.setdefault(key, []).append(value)
    return variables


async def _report_response(
    api_version: SchemaVersion,
    dashboard: str,
    request: Request,
    from_: str,
    to: str,
    apitoken: str | None,
    template: str | None,
    settings: Settings,
    client_factory: ClientFactory,
    compiler: LatexCompiler,
) -> FileResponse:
    client = client_factory(
        api_version,
        settings.grafana_url,
        apitoken or settings.grafana_token,
        dashboard_variables(request),
        ssl_check=settings.ssl_check,
        timeout=settings.http_timeout,
    )
    report = Report(
        client,
        dashboard,
        TimeRange(from_, to),
        template=template,
        template_dir=settings.template_dir,
        grid_layout=settings.grid_layout,
        max_attempts=settings.panel_max_attempts,
        retry_delay=settings.panel_retry_delay,
        max_workers=settings.render_workers,
        compiler=compiler,
    )
    logger.info("report_requested", dashboard=dashboard, api_version=str(api_version), url=str(request.url.path))
    try:
        pdf_path, source = await report.generate()
    except BaseException:
        report.clean()
        raise

    headers = {}
    if source.warning is not None:
        failed = len(source.panels.failed)
        headers["X-Report-Warning"] = f"{failed} of {len(source.panels.images)} panels failed to render"

    return FileResponse(
        pdf_path,
        media_type="application/pdf",
        filename=f"{dashboard}.pdf",
        headers=headers,
        background=BackgroundTask(report.clean),
    )


@router.get("/api/report/{dashboard}")
async def v4_report(
    dashboard: str,
    request: Request,
    from_: str = Query("now-1h", alias="from"),
    to: str = Query("now"),
    apitoken: str | None = Query(None),
    template: str | None = Query(None),
    settings: Settings = Depends(get_settings),  # noqa: B008
    client_factory: ClientFactory = Depends(get_client_factory),  # noqa: B008
    compiler: LatexCompiler = Depends(get_compiler),  # noqa: B008
) -> FileResponse:
    return await _report_response(
        SchemaVersion.V4, dashboard, request, from_, to, apitoken, template,
        settings, client_factory, compiler,
    )


@router.get("/api/v5/report/{dashboard}")
async def v5_report(
    dashboard: str,
    request: Request,
    from_: str = Query("now-1h", alias="from"),
    to: str = Query("now"),
    apitoken: str | None = Query(None),
    template: str | None = Query(None),
    settings: Settings = Depends(get_settings),  # noqa: B008
    client_factory: ClientFactory = Depends(get_client_factory),  # noqa: B008
    compiler: LatexCompiler = Depends(get_compiler),  # noqa: B008
) -> FileResponse:
    return await _report_response(
        SchemaVersion.V5, dashboard, request, from_, to, apitoken, template,
        settings, client_factory, compiler,
    )
