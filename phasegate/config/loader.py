"""YAML and env loader with fail-fast validation."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from phasegate.models import EngineSettings

DEFAULT_SETTINGS_PATH = "config/settings.yaml"

# Environment variables that override a nested settings key.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "PHASEGATE_DB_PATH": ("store", "db_path"),
    "PHASEGATE_LOG_DIR": ("logging", "audit_log_dir"),
    "PHASEGATE_LOG_LEVEL": ("logging", "level"),
}


def _read_yaml(path: str) -> dict:
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Expected object at root of YAML file: {path}")
    return loaded


def apply_env_overrides(raw: dict) -> dict:
    """Return a copy of ``raw`` with PHASEGATE_* environment overrides applied."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in raw.items()}
    for env_key, (section, field_name) in _ENV_OVERRIDES.items():
        value = os.getenv(env_key)
        if value:
            merged.setdefault(section, {})
            merged[section][field_name] = value
    return merged


def load_settings(settings_path: str = DEFAULT_SETTINGS_PATH) -> EngineSettings:
    load_dotenv()
    return EngineSettings.model_validate(apply_env_overrides(_read_yaml(settings_path)))
