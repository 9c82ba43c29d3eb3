"""Tests for the command line interface."""

import json

import httpx
import pytest
from click.testing import CliRunner

from databox_client import Client
from databox_client import cli as cli_module


@pytest.fixture
def runner(monkeypatch, service):
    """CliRunner whose commands talk to the fake service."""
    def fake_client(token, push_host, timeout):
        http_client = httpx.Client(transport=httpx.MockTransport(service.handler))
        return Client(token, push_host=push_host, http_client=http_client)

    monkeypatch.setattr(cli_module, "Client", fake_client)
    return CliRunner()


def test_push(runner, service):
    result = runner.invoke(cli_module.cli, [
        "--token", "t0k", "push",
        "--key", "visits", "--value", "42", "--unit", "count",
        "--attribute", "country=US", "--attribute", "paid=true",
    ])

    assert result.exit_code == 0, result.output
    assert "success: Pushed (id=abc)" in result.output
    assert service.last_json == {
        "data": [{"country": "US", "paid": True, "$visits": 42.0, "unit": "count"}]
    }


def test_token_from_environment(runner, service):
    result = runner.invoke(
        cli_module.cli, ["push", "--key", "k", "--value", "1"],
        env={"DATABOX_PUSH_TOKEN": "from-env"},
    )
    assert result.exit_code == 0, result.output
    assert service.last_request.headers["Authorization"].startswith("Basic ")


def test_bad_attribute(runner):
    result = runner.invoke(cli_module.cli, [
        "--token", "t", "push", "--key", "k", "--value", "1", "--attribute", "novalue",
    ])
    assert result.exit_code != 0
    assert "name=value" in result.output


def test_insert_all_from_stdin(runner, service):
    records = [{"key": "a", "value": 1}, {"metrics": {"b": 2}, "date": "2024-01-02"}]
    result = runner.invoke(
        cli_module.cli, ["--token", "t", "insert-all", "-", "--force-push"],
        input=json.dumps(records),
    )

    assert result.exit_code == 0, result.output
    assert service.last_json == {
        "data": [{"$a": 1.0}, {"$b": 2.0, "date": "2024-01-02"}],
        "meta": {"ensure_unique": True},
    }


def test_insert_all_rejects_non_list(runner, service):
    result = runner.invoke(cli_module.cli, ["--token", "t", "insert-all", "-"], input='{"key": "a"}')
    assert result.exit_code != 0
    assert "JSON list" in result.output
    assert service.requests == []


@pytest.mark.parametrize("records", [
    ["a", {"key": "b", "value": 1}],
    [{"metrics": {"b": "x"}}],
])
def test_insert_all_rejects_bad_records(runner, service, records):
    result = runner.invoke(cli_module.cli, ["--token", "t", "insert-all", "-"], input=json.dumps(records))
    assert result.exit_code == 1
    assert "invalid KPI record" in result.output
    assert service.requests == []


def test_push_nan_value(runner, service):
    result = runner.invoke(cli_module.cli, ["--token", "t", "push", "--key", "k", "--value", "nan"])
    assert result.exit_code == 1
    assert "preparing request" in result.output
    assert service.requests == []


def test_api_error_exit_code(runner, service):
    service.reply(401, {"type": "unauthorized", "message": "Invalid token"})
    result = runner.invoke(cli_module.cli, ["--token", "bad", "push", "--key", "k", "--value", "1"])
    assert result.exit_code == 1
    assert "unauthorized: Invalid token" in result.output


def test_last_pushes(runner, service, last_push_body):
    service.reply(200, [last_push_body])
    result = runner.invoke(cli_module.cli, ["--token", "t", "last-pushes", "--limit", "3"])

    assert result.exit_code == 0, result.output
    assert "p-1" in result.output
    assert service.last_request.url.params["limit"] == "3"


def test_last_pushes_none(runner, service):
    service.reply(200, [])
    result = runner.invoke(cli_module.cli, ["--token", "t", "last-pushes"])
    assert result.exit_code == 0
    assert "No pushes found" in result.output


def test_last_push(runner, service, last_push_body):
    service.reply(200, [last_push_body])
    result = runner.invoke(cli_module.cli, ["--token", "t", "last-push"])

    assert result.exit_code == 0, result.output
    assert "success: Pushed" in result.output
    assert '"$visits": 42' in result.output


def test_last_push_empty_history(runner, service):
    service.reply(200, [])
    result = runner.invoke(cli_module.cli, ["--token", "t", "last-push"])
    assert result.exit_code == 1
    assert "no last push" in result.output
