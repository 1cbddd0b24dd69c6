from __future__ import annotations

import json

from typer.testing import CliRunner

from hhpilot.cli.app import app
from hhpilot.errors import ExternalApiError
from hhpilot.hh.client import HHClient

runner = CliRunner()


def test_init_creates_schema_and_default_settings() -> None:
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["settings_created"] == 1


def test_cycle_without_token_reports_failure() -> None:
    result = runner.invoke(app, ["agent", "status"])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert payload["cycle"] == "status"


def test_rejected_code_exchange_reports_failure(monkeypatch) -> None:
    def reject(self, client_id, client_secret, code, redirect_uri):
        raise ExternalApiError("token request rejected grant_type=authorization_code", status_code=400)

    monkeypatch.setattr(HHClient, "exchange_code", reject)

    result = runner.invoke(app, ["auth", "exchange", "--code", "bad-code"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert "rejected" in payload["error"]
