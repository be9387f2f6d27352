"""Settings loading."""

from phasegate.config.loader import DEFAULT_SETTINGS_PATH, apply_env_overrides, load_settings

__all__ = ["DEFAULT_SETTINGS_PATH", "apply_env_overrides", "load_settings"]
