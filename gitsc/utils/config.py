"""Configuration management for git-sc."""

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from gitsc.core.errors import ConfigError
from gitsc.core.providers import DEFAULT_MODELS, DEFAULT_PROVIDERS

HOME_ENV_VAR = "GIT_SC_HOME"

LIST_KEYS = {"providers", "exclude"}

# stored verbatim; "none" is a valid prefix_type
STRING_KEYS = {"language", "prefix_type"}


def config_home() -> Path:
    """Directory holding the config and state files (``~/.git-sc``)."""
    override = os.getenv(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".git-sc"


def parse_value(key: str, raw: str) -> Any:
    """Coerce a command-line string into the type stored under ``key``."""
    leaf = key.split(".")[-1]
    if leaf in LIST_KEYS:
        return [item.strip() for item in raw.split(",") if item.strip()]
    if leaf in STRING_KEYS or key.startswith("models."):
        return raw

    lowered = raw.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    if lowered in ("null", "none", ""):
        return None
    try:
        return int(raw)
    except ValueError:
        return raw


class Config:
    """Manage git-sc configuration."""

    DEFAULT_LANGUAGE = "English"
    DEFAULT_COOLDOWN_MINUTES = 60
    DEFAULT_TIMEOUT_SECONDS = 120

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration manager."""
        self.config_dir = Path(config_dir) if config_dir else config_home()
        self.config_file = self.config_dir / "config.yaml"
        self.state_file = self.config_dir / "state.yaml"

        # Create config directory if it doesn't exist
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.data = self._load_config()
        self._ensure_defaults()

    def _load_config(self) -> Dict:
        """
        Load configuration from file.

        Returns:
            Configuration dictionary

        Raises:
            ConfigError: If the file exists but is not valid YAML
        """
        if not self.config_file.exists():
            return self._get_default_config()

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {self.config_file}: {exc}")
        except OSError as exc:
            raise ConfigError(f"Failed to read {self.config_file}: {exc}")

        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_file} must contain a mapping")
        return data

    def _merge_with_defaults(self, defaults: Dict, current: Optional[Dict]) -> Dict:
        """
        Merge user configuration with defaults without losing user values.

        Args:
            defaults: Default configuration structure
            current: User configuration structure

        Returns:
            Combined configuration dictionary
        """
        if not isinstance(defaults, dict):
            return current if current is not None else defaults

        merged = dict(defaults)
        if isinstance(current, dict):
            for key, value in current.items():
                if key in merged:
                    merged[key] = self._merge_with_defaults(merged[key], value)
                else:
                    merged[key] = value
        return merged

    def _ensure_defaults(self):
        """
        Ensure the configuration contains all default keys.
        """
        defaults = self._get_default_config()
        merged = self._merge_with_defaults(defaults, self.data)
        if merged != self.data or not self.config_file.exists():
            self.data = merged
            self.save()
        else:
            self.data = merged

    def _get_default_config(self) -> Dict:
        return {
            "providers": list(DEFAULT_PROVIDERS),
            "models": dict(DEFAULT_MODELS),
            "language": self.DEFAULT_LANGUAGE,
            "provider_cooldown_minutes": self.DEFAULT_COOLDOWN_MINUTES,
            "timeout_seconds": self.DEFAULT_TIMEOUT_SECONDS,
            "format": {
                "prefix_type": "auto",
                "with_body": False,
                "recent_commits": 2,
            },
            "exclude": [],
            "prefix_script": None,
        }

    def save(self):
        """Save configuration to file."""
        try:
            with open(self.config_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(self.data, f, default_flow_style=False, sort_keys=False)
        except OSError as exc:
            raise ConfigError(f"Failed to write {self.config_file}: {exc}")

    def get(self, key: str, default=None):
        """
        Get a configuration value.

        Args:
            key: Config key in dot notation (e.g., 'models.gemini')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self.data
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

            if value is None:
                return default

        return value

    def set(self, key: str, value):
        """
        Set a configuration value.

        Args:
            key: Config key in dot notation (e.g., 'models.claude')
            value: Value to set
        """
        keys = key.split(".")
        data = self.data

        for k in keys[:-1]:
            if not isinstance(data.get(k), dict):
                data[k] = {}
            data = data[k]

        data[keys[-1]] = value
        self.save()

    def get_providers(self) -> List[str]:
        providers = self.get("providers", [])
        if isinstance(providers, str):
            providers = [providers]
        return [str(p) for p in providers]

    def get_model(self, provider: str) -> str:
        models = self.get("models", {})
        if isinstance(models, dict) and models.get(provider):
            return str(models[provider])
        return DEFAULT_MODELS[provider]

    def get_models(self) -> Dict[str, str]:
        return {name: self.get_model(name) for name in DEFAULT_MODELS}

    def get_language(self) -> str:
        return str(self.get("language", self.DEFAULT_LANGUAGE))

    def _get_non_negative_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        if isinstance(value, bool):
            raise ConfigError(f"'{key}' must be an integer >= 0, got {value!r}")
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"'{key}' must be an integer >= 0, got {value!r}")
        if value < 0:
            raise ConfigError(f"'{key}' must be an integer >= 0, got {value}")
        return value

    def get_cooldown_minutes(self) -> int:
        return self._get_non_negative_int(
            "provider_cooldown_minutes", self.DEFAULT_COOLDOWN_MINUTES
        )

    def get_timeout(self) -> int:
        timeout = self._get_non_negative_int("timeout_seconds", self.DEFAULT_TIMEOUT_SECONDS)
        return timeout or self.DEFAULT_TIMEOUT_SECONDS

    def get_prefix_type(self) -> str:
        return str(self.get("format.prefix_type", "auto"))

    def should_include_body(self) -> bool:
        return bool(self.get("format.with_body", False))

    def get_recent_commit_count(self) -> int:
        return self._get_non_negative_int("format.recent_commits", 2)

    def get_exclude_patterns(self) -> List[str]:
        patterns = self.get("exclude", [])
        if isinstance(patterns, str):
            patterns = [patterns]
        return [str(p) for p in patterns]

    def get_prefix_script(self) -> Optional[str]:
        script = self.get("prefix_script")
        return os.path.expanduser(str(script)) if script else None

    def reset(self):
        """Reset configuration to defaults."""
        self.data = self._get_default_config()
        self.save()

    def show(self) -> str:
        """
        Get configuration as formatted string.

        Returns:
            YAML formatted config
        """
        return yaml.safe_dump(copy.deepcopy(self.data), default_flow_style=False, sort_keys=False)
