import json
import logging

import pytest

from jianghu.config import get_config, update_config

ENV_VARS = ("LLM_PROVIDER", "LLM_BASE_URL", "LLM_MODEL", "LLM_API_KEY", "LLM_TIMEOUT", "WORLD_SEED")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_defaults(tmp_path):
    config = get_config(tmp_path)
    assert config["llm"]["provider"] == "ollama"
    assert config["llm"]["base_url"] == "http://localhost:11434"
    assert config["world_seed"] == "jianghu-seed"
    assert config["war_declaration_threshold"] == 100
    assert config["event_catalogs"] == []


def test_defaults_are_not_shared(tmp_path):
    get_config(tmp_path)["llm"]["model"] = "mutated"
    assert get_config(tmp_path)["llm"]["model"] == "deepseek-r1:7b"


def test_stored_values_override_defaults(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({
        "llm": {"model": "qwen2:7b"}, "tone": "mad", "unknown": 1,
    }))
    config = get_config(tmp_path)
    assert config["llm"]["model"] == "qwen2:7b"
    assert config["llm"]["provider"] == "ollama"
    assert config["tone"] == "mad"
    assert "unknown" not in config


def test_env_overrides_stored(tmp_path, monkeypatch):
    update_config(tmp_path, {"llm": {"base_url": "http://stored:1"}, "world_seed": "stored"})
    monkeypatch.setenv("LLM_BASE_URL", "http://env:2")
    monkeypatch.setenv("LLM_TIMEOUT", "15")
    monkeypatch.setenv("WORLD_SEED", "from-env")
    config = get_config(tmp_path)
    assert config["llm"]["base_url"] == "http://env:2"
    assert config["llm"]["timeout"] == 15.0
    assert config["world_seed"] == "from-env"


def test_empty_env_value_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "")
    assert get_config(tmp_path)["llm"]["model"] == "deepseek-r1:7b"


def test_update_config_persists_and_merges(tmp_path):
    update_config(tmp_path, {"llm": {"provider": "openai"}})
    config = update_config(tmp_path, {"ticks_per_turn": 30})
    assert config["llm"]["provider"] == "openai"
    assert config["ticks_per_turn"] == 30
    stored = json.loads((tmp_path / "config.json").read_text())
    assert stored["llm"]["provider"] == "openai"


def test_update_config_creates_dir(tmp_path):
    update_config(tmp_path / "fresh", {"tone": "humorous"})
    assert (tmp_path / "fresh" / "config.json").is_file()


def test_dynamic_events_on_by_default(tmp_path):
    assert get_config(tmp_path)["dynamic_events"] is True
    assert update_config(tmp_path, {"dynamic_events": False})["dynamic_events"] is False


def test_bad_timeout_env_keeps_previous_value(tmp_path, monkeypatch, caplog):
    update_config(tmp_path, {"llm": {"timeout": 30.0}})
    monkeypatch.setenv("LLM_TIMEOUT", "soon")
    with caplog.at_level(logging.WARNING, logger="jianghu.config"):
        config = get_config(tmp_path)
    assert config["llm"]["timeout"] == 30.0
    assert "LLM_TIMEOUT" in caplog.text
