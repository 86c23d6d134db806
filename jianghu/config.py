"""Game configuration (LLM connection, world seed, balance overrides, data files).

Values are resolved in three layers: built-in defaults, then
{data_dir}/config.json, then environment variables.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm": {
        "provider": "ollama",
        "base_url": "http://localhost:11434",
        "model": "deepseek-r1:7b",
        "api_key": "",
        "timeout": 120.0,
    },
    "world_seed": "jianghu-seed",
    "war_declaration_threshold": 100,
    "ticks_per_turn": 60,
    "tone": "fatalistic",
    "narrative_rules_path": "",
    "event_catalogs": [],
    "dynamic_events": True,
}

# env var -> (section, key); section None means top level
_ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "LLM_PROVIDER": ("llm", "provider"),
    "LLM_BASE_URL": ("llm", "base_url"),
    "LLM_MODEL": ("llm", "model"),
    "LLM_API_KEY": ("llm", "api_key"),
    "LLM_TIMEOUT": ("llm", "timeout"),
    "WORLD_SEED": (None, "world_seed"),
}


def _config_path(data_dir: Path) -> Path:
    return Path(data_dir) / "config.json"


def _read_stored(data_dir: Path) -> dict[str, Any]:
    path = _config_path(data_dir)
    if path.is_file():
        return json.loads(path.read_text())
    return {}


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    if isinstance(fields.get("llm"), dict):
        config["llm"].update(fields["llm"])
    for key in _CONFIG_DEFAULTS:
        if key != "llm" and key in fields:
            config[key] = fields[key]


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values and env overrides."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    _merge(config, _read_stored(data_dir))

    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(var)
        if not value:
            continue
        target = config[section] if section else config
        if key == "timeout":
            try:
                target[key] = float(value)
            except ValueError:
                logger.warning("Ignoring %s=%r: not a number; keeping %s", var, value, target[key])
            continue
        target[key] = value
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into the stored config and persist. Returns full config."""
    stored: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    _merge(stored, _read_stored(data_dir))
    _merge(stored, fields)
    path = _config_path(data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(stored, indent=2))
    return get_config(data_dir)
