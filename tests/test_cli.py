from __future__ import annotations

import pytest
from click.testing import CliRunner

from gator import cli as cli_module


@pytest.mark.parametrize("duration", ["5", "3x", "1.5s"])
def test_agg_rejects_bad_duration_before_doing_anything(duration, monkeypatch):
    called = []
    monkeypatch.setattr(cli_module, "aggregate", lambda interval: called.append(interval))

    result = CliRunner().invoke(cli_module.cli, ["agg", duration])

    assert result.exit_code == 1
    assert "Invalid duration" in result.output
    assert called == []


def test_agg_requires_an_argument():
    result = CliRunner().invoke(cli_module.cli, ["agg"])
    assert result.exit_code != 0


def test_agg_runs_until_stopped(monkeypatch):
    seen = []

    async def fake_aggregate(interval):
        seen.append(interval.total_seconds())

    monkeypatch.setattr(cli_module, "aggregate", fake_aggregate)

    result = CliRunner().invoke(cli_module.cli, ["agg", "30s"])

    assert result.exit_code == 0, result.output
    assert seen == [30.0]
    assert "Collecting feeds every 30s..." in result.output
    assert "Shutting down feed aggregator..." in result.output
