from __future__ import annotations

import json
from datetime import datetime, timezone
from types import SimpleNamespace

from typer.testing import CliRunner

from yield_crawler.app import AppState, app
from yield_crawler.config import ServiceSettings
from yield_crawler.engine import AggregateSnapshot, ErrorKind, SourceResult
from yield_crawler.scheduler import CollectionReport


class StubService:
    def __init__(self, report: CollectionReport) -> None:
        self.report = report
        self.events: list[str] = []

    async def init(self) -> None:
        self.events.append("init")

    async def refresh(self) -> CollectionReport:
        self.events.append("refresh")
        return self.report

    async def shutdown(self) -> None:
        self.events.append("shutdown")


def make_state(sources) -> AppState:
    repository = SimpleNamespace(list_sources=lambda: sources)
    return AppState(repository=repository, settings=ServiceSettings(refresh_interval_seconds=60))


def make_report(failed: bool = False) -> CollectionReport:
    snapshot = AggregateSnapshot.build(
        ["ratex_xSOL", "ratex_PT_xSOL"],
        {"ratex_xSOL": None if failed else 12.5, "ratex_PT_xSOL": None},
        datetime(2025, 11, 1, tzinfo=timezone.utc),
    )
    result = SourceResult.failure(ErrorKind.TIMEOUT) if failed else SourceResult.success({})
    return CollectionReport(snapshot=snapshot, results={"ratex-xsol": result})


def test_cli_source_list(monkeypatch, sample_source, exponent_source) -> None:
    state = make_state([exponent_source(), sample_source()])
    monkeypatch.setattr("yield_crawler.app.build_state", lambda verbose: state)

    result = CliRunner().invoke(app, ["source", "list"])

    assert result.exit_code == 0, result.stdout
    assert "Sources" in result.stdout
    assert "exponent-hyusd" in result.stdout
    assert "ratex-xsol" in result.stdout
    assert "parallel" in result.stdout


def test_cli_collect_prints_json(monkeypatch) -> None:
    state = make_state([])
    service = StubService(make_report())
    captured: dict = {}

    def fake_build_service(app_state):
        captured["settings"] = app_state.settings
        return service

    monkeypatch.setattr("yield_crawler.app.build_state", lambda verbose: state)
    monkeypatch.setattr("yield_crawler.app.build_service", fake_build_service)

    result = CliRunner().invoke(app, ["collect", "--json"])

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["ratex_xSOL"] == 12.5
    assert payload["partial"] is True
    assert service.events == ["init", "refresh", "shutdown"]
    assert captured["settings"].refresh_interval_seconds == 0


def test_cli_collect_fails_when_every_source_fails(monkeypatch) -> None:
    state = make_state([])
    monkeypatch.setattr("yield_crawler.app.build_state", lambda verbose: state)
    monkeypatch.setattr("yield_crawler.app.build_service", lambda _state: StubService(make_report(failed=True)))

    result = CliRunner().invoke(app, ["collect"])

    assert result.exit_code == 1
    assert "Failed sources: ratex-xsol" in result.stdout


def test_cli_calc(monkeypatch) -> None:
    monkeypatch.setattr("yield_crawler.app.build_state", lambda verbose: make_state([]))

    result = CliRunner().invoke(app, ["calc", "1000", "10", "365"])

    assert result.exit_code == 0, result.stdout
    assert "1,100.00" in result.stdout
    assert "100.00" in result.stdout


def test_cli_calc_rejects_invalid_days(monkeypatch) -> None:
    monkeypatch.setattr("yield_crawler.app.build_state", lambda verbose: make_state([]))

    result = CliRunner().invoke(app, ["calc", "1000", "10", "0"])

    assert result.exit_code == 1
    assert "Invalid input" in result.stdout
