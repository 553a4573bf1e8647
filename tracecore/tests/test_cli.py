"""Tests for the trace command-line client."""

import pytest
import yaml
from click.testing import CliRunner
from rich.console import Console

from tracecore.cli.trace_cli import cli


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr("tracecore.cli.trace_cli.console", Console(width=200))


def write_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "data_dir": str(tmp_path / "data"),
        "providers": {"programs": False, "network": False},
        "folders": [],
    }))
    return path


def test_query_in_process(tmp_path):
    result = CliRunner().invoke(cli, ["query", "2+2", "--config", str(write_config(tmp_path))])

    assert result.exit_code == 0
    assert "2+2 = 4" in result.output
    assert "calculation" in result.output


def test_query_without_matches_lists_fallbacks(tmp_path):
    result = CliRunner().invoke(cli, ["query", "qzzzzz", "--config", str(write_config(tmp_path))])

    assert result.exit_code == 0
    assert "com.trace.search.google" in result.output


def test_select_rejects_unknown_kind():
    result = CliRunner().invoke(cli, ["select", "firefox", "--kind", "bogus"])
    assert result.exit_code != 0
    assert "Invalid value" in result.output


def test_search_without_daemon(monkeypatch):
    monkeypatch.setattr("tracecore.cli.trace_cli.DAEMON_URL", "http://127.0.0.1:9")
    result = CliRunner().invoke(cli, ["search", "chrome"])

    assert result.exit_code == 0
    assert "Cannot connect to daemon" in result.output
