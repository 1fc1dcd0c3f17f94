"""Shared fixtures for CLI command tests."""

import json

import pytest
from click.testing import CliRunner

from stagegate.cli.main import cli


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def invoke(cli_runner, engine, tmp_path, monkeypatch):
    """Run the CLI against the same state directory as ``engine``.

    Returns ``(result, envelope)`` where ``envelope`` is the parsed stdout.
    """
    monkeypatch.chdir(tmp_path)
    for key in ("STAGEGATE_CONFIG_FILE", "STAGEGATE_STATE_DIR", "STAGEGATE_COVERAGE_MINIMA"):
        monkeypatch.delenv(key, raising=False)

    def _invoke(*args, input=None):
        result = cli_runner.invoke(
            cli,
            ["--state-dir", str(engine.config.state_dir), *args],
            input=input,
        )
        envelope = json.loads(result.stdout) if result.stdout.strip() else None
        return result, envelope

    return _invoke
