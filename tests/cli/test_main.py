"""CLI tests using Typer's CliRunner."""

from __future__ import annotations

from pathlib import Path

import httpx
import orjson
import pytest
from typer.testing import CliRunner

from direxport import __version__
from direxport.cli.main import app
from direxport.core.backends import HttpBackend

runner = CliRunner()

CONFIG = """
directory:
  base_url: https://graph.test/v1.0
delivery:
  namespace: contoso-ns
  channel_name: directory-export
auth:
  static_token: cli-secret-token
retry:
  fetch:
    max_attempts: 1
  publish:
    max_attempts: 1
logging:
  level: WARNING
  rich_console: false
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "app.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


@pytest.fixture
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    calls: list[dict] = []
    monkeypatch.setattr("direxport.core.logging.setup_logging", lambda **kwargs: calls.append(kwargs))
    return calls


def serve(monkeypatch: pytest.MonkeyPatch, users_status: int = 200) -> list[httpx.Request]:
    """Route the runner's HTTP traffic to an in-memory directory and hub."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(201)
        if request.url.path == "/v1.0/users":
            if users_status != 200:
                return httpx.Response(users_status)
            return httpx.Response(200, content=orjson.dumps({"value": [{"id": "u1"}, {"id": "u2"}]}))
        if request.url.path == "/v1.0/groups":
            return httpx.Response(200, content=orjson.dumps({"value": [{"id": "g1"}]}))
        return httpx.Response(200, content=orjson.dumps({"value": [{"id": "u1"}]}))

    monkeypatch.setattr(
        "direxport.core.orchestrator.runner.HttpBackend",
        lambda timeout=30.0: HttpBackend(timeout=timeout, transport=httpx.MockTransport(handler)),
    )
    return seen


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_run_prints_summary(monkeypatch, config_file, logging_calls) -> None:
    seen = serve(monkeypatch)

    result = runner.invoke(app, ["run", "--config", str(config_file), "--trigger", "cli"])

    assert result.exit_code == 0, result.output
    assert "Export Summary" in result.stdout
    assert "Completed" in result.stdout
    assert len([r for r in seen if r.method == "POST"]) == 3
    assert logging_calls[0]["level"] == "WARNING"


def test_run_json_output(monkeypatch, config_file, logging_calls) -> None:
    serve(monkeypatch)

    result = runner.invoke(app, ["run", "-c", str(config_file), "--json", "--extended", "-t", "nightly"])

    assert result.exit_code == 0, result.output
    summary = orjson.loads(result.stdout)
    assert summary["outcome"] == "Completed"
    assert summary["trigger_context"] == "nightly"
    assert summary["include_extended_properties"] is True
    assert (summary["users_processed"], summary["groups_processed"], summary["memberships_processed"]) == (2, 1, 1)
    assert summary["membership_success_rate"] == 1.0


def test_run_failure_exits_nonzero(monkeypatch, config_file, logging_calls) -> None:
    serve(monkeypatch, users_status=403)

    result = runner.invoke(app, ["run", "-c", str(config_file), "--json"])

    assert result.exit_code == 1
    summary = orjson.loads(result.stdout)
    assert summary["outcome"] == "Failed"
    assert summary["failed_stage"] == "users"
    assert summary["fault"]["category"] == "Authorization"


def test_run_with_incomplete_config(tmp_path: Path, logging_calls) -> None:
    path = tmp_path / "app.yaml"
    path.write_text("auth:\n  static_token: t\n", encoding="utf-8")

    result = runner.invoke(app, ["run", "-c", str(path)])

    assert result.exit_code == 2
    assert logging_calls == []


def test_config_show_masks_secrets(config_file) -> None:
    result = runner.invoke(app, ["config", "show", "-c", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "delivery.namespace" in result.stdout
    assert "contoso-ns" in result.stdout
    assert "cli-secret-token" not in result.stdout
    assert "********" in result.stdout


def test_config_validate(config_file, tmp_path: Path) -> None:
    ok = runner.invoke(app, ["config", "validate", str(config_file)])
    assert ok.exit_code == 0
    assert "valid" in ok.stdout

    bad_path = tmp_path / "bad.yaml"
    bad_path.write_text("directory:\n  page_size: 0\n", encoding="utf-8")
    bad = runner.invoke(app, ["config", "validate", str(bad_path)])
    assert bad.exit_code == 1
