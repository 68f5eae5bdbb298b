"""Tests for the dashreport command line."""

import argparse
from unittest.mock import patch

import pytest
from conftest import FakeCompiler, FakeGrafanaClient

from dashreport.cli import build_parser, generate_command, main, parse_variables
from dashreport.config import Settings
from dashreport.core.errors import DashboardFetchFailed, ExitCode, PanelFetchPermanent


@pytest.fixture
def settings(tmp_path):
    return Settings(
        grafana_url="https://grafana.example.com",
        api_version="v4",
        template_dir=str(tmp_path),
        panel_retry_delay=0.001,
    )


@pytest.fixture
def compiler():
    compiler = FakeCompiler()
    with patch("dashreport.cli.LatexCompiler", return_value=compiler):
        yield compiler


class TestParseVariables:
    def test_adds_prefix(self):
        assert parse_variables(["host=web01"]) == {"var-host": ["web01"]}

    def test_keeps_existing_prefix(self):
        assert parse_variables(["var-host=web01"]) == {"var-host": ["web01"]}

    def test_repeated_names_collect_values(self):
        assert parse_variables(["host=a", "host=b", "env=prod"]) == {
            "var-host": ["a", "b"],
            "var-env": ["prod"],
        }

    def test_value_may_contain_equals(self):
        assert parse_variables(["q=a=b"]) == {"var-q": ["a=b"]}

    @pytest.mark.parametrize("pair", ["host", "=web01"])
    def test_rejects_malformed_pairs(self, pair):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_variables([pair])


class TestParser:
    def test_generate_defaults(self):
        args = build_parser().parse_args(["generate", "rYy7Paekz"])
        assert args.dashboard == "rYy7Paekz"
        assert args.from_ == "now-1h"
        assert args.to == "now"
        assert args.var == []
        assert args.grid_layout is None

    def test_generate_options(self):
        args = build_parser().parse_args(
            ["generate", "ops", "--from", "now-1d/d", "--to", "now-1d/d",
             "--var", "host=a", "--var", "host=b", "--api-version", "v4", "--grid-layout"]
        )
        assert args.from_ == "now-1d/d"
        assert args.var == ["host=a", "host=b"]
        assert args.api_version == "v4"
        assert args.grid_layout is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestGenerateCommand:
    def test_writes_pdf(self, tmp_path, settings, compiler):
        client = FakeGrafanaClient()
        output = tmp_path / "out.pdf"

        with patch("dashreport.cli.new_client", return_value=client) as factory:
            code = generate_command(
                "testDash",
                from_="1453206447000",
                to="1453213647000",
                variables={"var-test": ["testvarvalue"]},
                output=str(output),
                settings=settings,
            )

        assert code == ExitCode.SUCCESS
        assert output.read_bytes() == b"%PDF-1.4 fake"
        assert len(client.calls) == 9
        args, kwargs = factory.call_args
        assert args == ("v4", "https://grafana.example.com", None, {"var-test": ["testvarvalue"]})
        assert kwargs["ssl_check"] is True
        [tex_path] = compiler.sources
        assert not tex_path.parent.exists()

    def test_partial_report_exits_with_warning(self, tmp_path, settings, compiler):
        client = FakeGrafanaClient(failures={1: PanelFetchPermanent("HTTP 404", 1)})

        with patch("dashreport.cli.new_client", return_value=client):
            code = generate_command("testDash", output=str(tmp_path / "out.pdf"), settings=settings)

        assert code == ExitCode.WARNING
        assert (tmp_path / "out.pdf").exists()

    def test_malformed_time(self, tmp_path, settings, compiler):
        client = FakeGrafanaClient()

        with patch("dashreport.cli.new_client", return_value=client):
            code = generate_command(
                "testDash", from_="last tuesday", output=str(tmp_path / "out.pdf"), settings=settings
            )

        assert code == ExitCode.VALIDATION_ERROR
        assert client.calls == []
        assert not (tmp_path / "out.pdf").exists()

    def test_unreachable_dashboard(self, tmp_path, settings, compiler):
        class Unreachable(FakeGrafanaClient):
            async def get_dashboard(self, dashboard_name):
                raise DashboardFetchFailed("connection refused")

        with patch("dashreport.cli.new_client", return_value=Unreachable()):
            code = generate_command("testDash", output=str(tmp_path / "out.pdf"), settings=settings)

        assert code == ExitCode.PROVIDER_ERROR
        assert compiler.sources == []


class TestMain:
    def test_generate_dispatch(self):
        with patch("dashreport.cli.generate_command", return_value=0) as command, patch(
            "dashreport.cli.configure_logging"
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["generate", "ops", "--var", "host=a", "--url", "https://g.example", "--no-ssl-check"])

        assert exc_info.value.code == 0
        args, kwargs = command.call_args
        assert args == ("ops",)
        assert kwargs["variables"] == {"var-host": ["a"]}
        assert kwargs["settings"].grafana_url == "https://g.example"
        assert kwargs["settings"].ssl_check is False

    def test_bad_variable_is_a_usage_error(self):
        with patch("dashreport.cli.generate_command") as command, patch("dashreport.cli.configure_logging"):
            with pytest.raises(SystemExit) as exc_info:
                main(["generate", "ops", "--var", "host"])

        assert exc_info.value.code == 2
        command.assert_not_called()

    def test_serve_dispatch(self):
        with patch("dashreport.cli.serve_command", return_value=0) as command:
            with pytest.raises(SystemExit):
                main(["serve", "--port", "9000"])

        host, port = command.call_args.args
        assert port == 9000
