"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest
import yaml

from hostwatch.config import MonitorConfig, configure_logging, load_config

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config" / "default_config.yaml"


def test_defaults():
    """Test the built-in defaults."""
    config = load_config(None)

    assert config.sample_interval == 2.0
    assert config.window_size == 100
    assert config.max_events == 1000
    assert config.compact_every == 21600
    assert config.target_process == "kaspad"
    assert config.auth_service == "ssh"


def test_shipped_yaml_matches_defaults():
    """Test config/default_config.yaml loads to the dataclass defaults."""
    loaded = load_config(DEFAULT_CONFIG)

    assert loaded == MonitorConfig()


def test_partial_file(tmp_path):
    """Test keys missing from the file keep their defaults."""
    path = tmp_path / "c.yaml"
    path.write_text(yaml.safe_dump({"target_process": "bitcoind", "window_size": 50}))

    config = load_config(path)

    assert config.target_process == "bitcoind"
    assert config.window_size == 50
    assert config.sample_interval == 2.0


def test_unknown_keys_ignored(tmp_path, caplog):
    """Test unknown keys are dropped with a warning."""
    path = tmp_path / "c.yaml"
    path.write_text("colour: blue\nmax_events: 10\n")

    with caplog.at_level(logging.WARNING):
        config = load_config(path)

    assert config.max_events == 10
    assert "colour" in caplog.text


def test_invalid_values_fixed():
    """Test non-positive values fall back to defaults."""
    config = MonitorConfig(sample_interval=-1, window_size=0, compact_every=0, max_events=-5, log_level="debug")

    assert config.sample_interval == 2.0
    assert config.window_size == 100
    assert config.compact_every == 21600
    assert config.max_events == 1000
    assert config.log_level == "DEBUG"


def test_empty_file(tmp_path):
    """Test an empty file gives defaults."""
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_config(path) == MonitorConfig()


def test_non_mapping_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")

    with pytest.raises(ValueError):
        load_config(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_data_dir_expansion():
    """Test the data directory expands ~ and can be disabled."""
    assert MonitorConfig(target_data_dir="~/.kaspa").data_dir == Path.home() / ".kaspa"
    assert MonitorConfig(target_data_dir="").data_dir is None


def test_configure_logging(tmp_path, monkeypatch):
    """Test logging goes to the configured file."""
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

    configure_logging(MonitorConfig(log_file=str(tmp_path / "h.log"), log_level="WARNING"))

    assert calls["filename"] == str(tmp_path / "h.log")
    assert calls["level"] == logging.WARNING
