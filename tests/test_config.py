"""Tests for configuration loading."""

import json
import logging

import pytest

from aimcoach.core.config import (
    AimCoachConfig,
    LoggingConfig,
    configure_logging,
    dict_to_config,
    generate_default_config,
    get_config,
    load_config,
    load_env_config,
    merge_configs,
    reset_config,
    save_config,
    set_config,
)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    """Keep the global config and cwd lookups out of the developer's environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / ".config"))
    for var in ("AIMCOACH_LOG_LEVEL", "AIMCOACH_DB_PATH", "AIMCOACH_DELEGATION_CONFIDENCE"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


class TestDefaults:
    def test_defaults(self):
        config = AimCoachConfig()

        assert config.chat.delegation_confidence == 0.7
        assert config.chat.degrade_on_context_error is False
        assert config.context.analysis_min_new_scores == 6
        assert config.context.returning_min_days_inactive == 7
        assert config.pipelines.score_analysis_limit == 20
        assert config.model.chat_tier == "standard"


class TestLoading:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("chat:\n  delegation_confidence: 0.75\npipelines:\n  save_playlists: false\n")

        config = load_config(path, include_env=False)

        assert config.chat.delegation_confidence == 0.75
        assert config.pipelines.save_playlists is False
        assert config.context.analysis_min_new_scores == 6

    def test_toml_file(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text('[model]\ntask_tier = "standard"\n')

        assert load_config(path, include_env=False).model.task_tier == "standard"

    def test_default_path_in_cwd(self, tmp_path):
        (tmp_path / "aimcoach.yaml").write_text("logging:\n  level: WARNING\n")

        assert load_config(include_env=False).logging.level == "WARNING"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("chat:\n  delegation_confidence: 0.75\n")
        monkeypatch.setenv("AIMCOACH_DELEGATION_CONFIDENCE", "0.85")
        monkeypatch.setenv("AIMCOACH_DEGRADE_ON_CONTEXT_ERROR", "true")

        config = load_config(path)

        assert config.chat.delegation_confidence == 0.85
        assert config.chat.degrade_on_context_error is True

    def test_env_type_conversion(self, monkeypatch):
        monkeypatch.setenv("AIMCOACH_MODEL_TIMEOUT", "30")
        monkeypatch.setenv("AIMCOACH_LOG_LEVEL", "DEBUG")

        env = load_env_config()

        assert env["model"]["timeout"] == 30
        assert env["logging"]["level"] == "DEBUG"

    def test_unknown_keys_are_ignored(self):
        config = dict_to_config({"chat": {"nonsense": 1}, "unknown_section": {"a": 1}})

        assert not hasattr(config.chat, "nonsense")

    def test_merge_is_recursive(self):
        merged = merge_configs({"chat": {"a": 1, "b": 2}}, {"chat": {"b": 3}})

        assert merged == {"chat": {"a": 1, "b": 3}}


class TestSaving:
    def test_json_round_trip(self, tmp_path):
        config = AimCoachConfig()
        config.chat.delegation_confidence = 0.8
        path = tmp_path / "out.json"

        save_config(config, path)

        assert json.loads(path.read_text())["chat"]["delegation_confidence"] == 0.8
        assert load_config(path, include_env=False).chat.delegation_confidence == 0.8

    def test_unknown_format_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            save_config(AimCoachConfig(), tmp_path / "out.ini")

    def test_generated_yaml_loads_as_defaults(self, tmp_path):
        path = tmp_path / "aimcoach.yaml"

        generate_default_config(path)

        assert load_config(path, include_env=False) == AimCoachConfig()


class TestGlobalConfig:
    def test_set_and_reset(self):
        custom = AimCoachConfig()
        custom.chat.delegation_confidence = 0.9

        set_config(custom)
        assert get_config() is custom

        reset_config()
        assert get_config().chat.delegation_confidence == 0.7


class TestConfigureLogging:
    def test_level_override(self):
        configure_logging(LoggingConfig(level="WARNING"), level_override="DEBUG")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.INFO

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "aimcoach.log"

        configure_logging(LoggingConfig(file=str(log_file)))
        logging.getLogger("aimcoach.test").info("hello")

        assert log_file.exists()
