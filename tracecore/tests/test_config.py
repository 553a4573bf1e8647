"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from tracecore.daemon.config import Config
from tracecore.daemon.error_handling import ConfigError


def test_defaults():
    config = Config()
    assert config.search.max_results == 10
    assert config.search.match_threshold == 0.3
    assert config.search.provider_timeout_ms == 250
    assert config.usage.debounce_seconds == 1.0
    assert config.usage_path.name == "usage_data.json"
    assert config.log_dir == config.data_dir / "logs"
    assert [e.id for e in config.web_search] == ["google", "duckduckgo", "perplexity"]
    assert all(f.is_default for f in config.folders)


def test_load_without_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    config = Config.load()
    assert config.search.max_results == 10


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "data_dir": str(tmp_path / "data"),
        "search": {"max_results": 5, "provider_timeout_ms": 100},
        "providers": {"network": False},
        "quick_links": [
            {"id": "gh", "name": "GitHub", "url": "https://github.com", "keywords": ["code"]},
        ],
    }))

    config = Config.load(path)

    assert config.data_dir == tmp_path / "data"
    assert config.search.max_results == 5
    assert config.search.provider_timeout_ms == 100
    assert config.providers.network is False
    assert config.providers.programs is True
    assert config.quick_links[0].keywords == ["code"]


@pytest.mark.parametrize("section", [
    {"search": {"match_threshold": 1.5}},
    {"search": {"provider_timeout_ms": 0}},
    {"usage": {"debounce_seconds": -1}},
    {"web_search": [{"id": "x", "name": "X"}]},
])
def test_invalid_values(tmp_path, section):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(section))
    with pytest.raises(ConfigError):
        Config.load(path)


def test_unreadable_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("search: [unclosed")
    with pytest.raises(ConfigError):
        Config.load(path)


def test_explicit_missing_path():
    with pytest.raises(ConfigError):
        Config.load(Path("/nonexistent/tracecore.yaml"))


def test_save_and_reload(tmp_path):
    config = Config(data_dir=tmp_path / "data")
    config.search.max_results = 7
    path = tmp_path / "out" / "config.yaml"

    config.save(path)
    reloaded = Config.load(path)

    assert reloaded.search.max_results == 7
    assert reloaded.data_dir == tmp_path / "data"
