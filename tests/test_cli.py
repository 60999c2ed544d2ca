"""Tests for the aimcoach command line interface."""

import pytest
from typer.testing import CliRunner

import aimcoach.coaching.wiring as wiring
import aimcoach.infra.database as database
from aimcoach import __version__
from aimcoach.cli import app
from aimcoach.core.config import reset_config

from conftest import FakeModel, USER

runner = CliRunner()


@pytest.fixture()
def config_file(tmp_path, monkeypatch):
    """Config pointing at a throwaway database, with a fake model wired in."""
    path = tmp_path / "aimcoach.yaml"
    path.write_text(
        f"database:\n  path: {tmp_path / 'cli.db'}\n"
        "logging:\n  level: WARNING\n"
    )
    model = FakeModel(reply="Warm up with Tile Frenzy first.")
    monkeypatch.setattr(wiring, "get_model", lambda: model)
    monkeypatch.setattr(database, "_db_manager", None)
    reset_config()
    yield path
    reset_config()


def _invoke(config_file, *args):
    return runner.invoke(app, ["--config", str(config_file), *args])


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_config(self, tmp_path):
        target = tmp_path / "generated.yaml"

        first = runner.invoke(app, ["init-config", str(target)])
        second = runner.invoke(app, ["init-config", str(target)])

        assert first.exit_code == 0
        assert "delegation_confidence" in target.read_text()
        assert second.exit_code == 1

    def test_context_for_new_player(self, config_file):
        result = _invoke(config_file, "context", USER)

        assert result.exit_code == 0
        assert "new_user" in result.output

    def test_import_runs_then_context(self, config_file, tmp_path):
        csv_path = tmp_path / "runs.csv"
        csv_path.write_text(
            "timestamp,scenario,score,accuracy\n2026-03-09T10:00:00Z,Tile Frenzy,105.5,0.875\n"
        )

        imported = _invoke(config_file, "import-runs", USER, str(csv_path), "--source", "aimlab")
        context = _invoke(config_file, "context", USER)

        assert imported.exit_code == 0
        assert "Imported 1 aimlab runs" in imported.output
        assert "playlist_recommended" in context.output

    def test_task_without_data(self, config_file):
        result = _invoke(config_file, "task", USER, "daily_report")

        assert result.exit_code == 0
        assert "Sessions today: 0" in result.output

    def test_chat_then_history(self, config_file):
        chat = _invoke(config_file, "chat", USER, "--message", "hello")
        history = _invoke(config_file, "history", USER)

        assert chat.exit_code == 0
        assert "Warm up with Tile Frenzy first." in chat.output
        assert "hello" in history.output
        assert "assistant" in history.output

    def test_empty_history(self, config_file):
        result = _invoke(config_file, "history", USER)

        assert "No messages" in result.output

    def test_status(self, config_file):
        result = _invoke(config_file, "status", USER)

        assert result.exit_code == 0
        assert "Tile Frenzy" in result.output
