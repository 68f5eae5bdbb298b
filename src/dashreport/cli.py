"""
dashreport command line.

    dashreport serve [--host HOST] [--port PORT]
    dashreport generate DASHBOARD [--from now-1d/d] [--to now-1d/d] [--var host=web01] ...

Defaults come from DASHREPORT_* environment variables (see ``Settings``).
"""

from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape

from dashreport.config import Settings, get_settings
from dashreport.core.errors import ExitCode, format_error_message, main_with_error_handling
from dashreport.grafana.client import new_client
from dashreport.grafana.time import TimeRange
from dashreport.logging import configure_logging
from dashreport.report.compiler import LatexCompiler
from dashreport.report.report import Report

console = Console(stderr=True)


def parse_variables(pairs: Sequence[str]) -> dict[str, list[str]]:
    """Turn ``name=value`` pairs into Grafana ``var-name`` query variables."""
    variables: dict[str, list[str]] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"variable must be name=value, got {pair!r}")
        if not name.startswith("var-"):
            name = f"var-{name}"
        variables.setdefault(name, []).append(value)
    return variables


@main_with_error_handling()
def generate_command(
    dashboard: str,
    *,
    from_: str = "now-1h",
    to: str = "now",
    variables: dict[str, list[str]] | None = None,
    output: str | None = None,
    template: str | None = None,
    settings: Settings | None = None,
) -> int:
    """Generate one report and copy the PDF to ``output``.

    Returns:
        Exit code (0 success, 1 when some panels are missing from the PDF)
    """
    settings = settings or get_settings()
    client = new_client(
        settings.api_version,
        settings.grafana_url,
        settings.grafana_token,
        variables or {},
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
        compiler=LatexCompiler(settings.pdflatex_path, timeout=settings.compile_timeout),
    )
    try:
        pdf_path, source = asyncio.run(report.generate())
        target = Path(output or f"{dashboard}.pdf")
        shutil.copyfile(pdf_path, target)
    finally:
        report.clean()

    console.print(f"[green]Report written to {target}[/green]")
    if source.warning is not None:
        console.print(f"[yellow]Warning:[/yellow] {escape(format_error_message(source.warning))}")
        return ExitCode.WARNING
    return ExitCode.SUCCESS


def serve_command(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("dashreport.api.main:app", host=host, port=port, log_config=None)
    return ExitCode.SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dashreport", description="Grafana dashboard PDF reports")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Serve reports over HTTP")
    serve_parser.add_argument("--host", help="Bind address (default: DASHREPORT_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default: DASHREPORT_PORT)")

    gen_parser = subparsers.add_parser("generate", help="Generate a single report")
    gen_parser.add_argument("dashboard", help="Dashboard uid (v5) or slug (v4)")
    gen_parser.add_argument("--from", dest="from_", default="now-1h", help="Range start (default: now-1h)")
    gen_parser.add_argument("--to", default="now", help="Range end (default: now)")
    gen_parser.add_argument(
        "--var", action="append", default=[], metavar="NAME=VALUE",
        help="Dashboard variable; repeat for several values",
    )
    gen_parser.add_argument("-o", "--output", help="PDF path (default: <dashboard>.pdf)")
    gen_parser.add_argument("--template", help="Template name in the template directory")
    gen_parser.add_argument("--template-dir", help="Directory holding <name>.tex templates")
    gen_parser.add_argument("--url", help="Grafana base URL")
    gen_parser.add_argument("--token", help="Grafana API token")
    gen_parser.add_argument("--api-version", choices=["v4", "v5"], help="Grafana API generation")
    gen_parser.add_argument("--grid-layout", action="store_true", default=None, help="Size panels from their grid position")
    gen_parser.add_argument("--no-ssl-check", action="store_true", help="Skip TLS certificate verification")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "grafana_url": getattr(args, "url", None),
        "grafana_token": getattr(args, "token", None),
        "api_version": getattr(args, "api_version", None),
        "grid_layout": getattr(args, "grid_layout", None),
        "template_dir": getattr(args, "template_dir", None),
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
    }
    if getattr(args, "no_ssl_check", False):
        overrides["ssl_check"] = False
    return get_settings().model_copy(update={k: v for k, v in overrides.items() if v is not None})


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = _settings_from_args(args)

    if args.command == "serve":
        sys.exit(serve_command(settings.host, settings.port))

    configure_logging("DEBUG" if args.verbose else "WARNING", json_logs=False)
    try:
        variables = parse_variables(args.var)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    sys.exit(
        generate_command(
            args.dashboard,
            from_=args.from_,
            to=args.to,
            variables=variables,
            output=args.output,
            template=args.template,
            settings=settings,
        )
    )


if __name__ == "__main__":
    main()
