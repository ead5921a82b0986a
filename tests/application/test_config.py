"""Tests for configuration resolution."""

import pytest
from pydantic import ValidationError

from studyloop.application.config import AppConfig, resolve_config


def test_defaults(mock_home):
    config = resolve_config()

    assert config.max_queue == 50
    assert config.max_history_turns == 5
    assert config.reading_max_chars == 32_000
    assert config.lookback_days == 14
    assert config.min_coverage == 0.7


def test_env_overrides_defaults(mock_home, monkeypatch):
    monkeypatch.setenv("STUDYLOOP_MAX_QUEUE", "20")

    assert resolve_config().max_queue == 20


def test_toml_file_is_read(mock_home):
    cfg_dir = mock_home / ".config/studyloop"
    cfg_dir.mkdir(parents=True)
    (cfg_dir / "config.toml").write_text("lookback_days = 30\nmax_queue = 10\n")

    config = resolve_config()

    assert config.lookback_days == 30
    assert config.max_queue == 10


def test_cli_overrides_win_and_none_is_ignored(mock_home, monkeypatch):
    monkeypatch.setenv("STUDYLOOP_MAX_QUEUE", "20")

    config = resolve_config({"max_queue": 5, "lookback_days": None})

    assert config.max_queue == 5
    assert config.lookback_days == 14


def test_invalid_values_rejected(mock_home):
    with pytest.raises(ValidationError):
        AppConfig(lookback_days=90)
