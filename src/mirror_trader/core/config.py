"""Configuration management for mirror-trader.

Settings are read from ``settings.yaml`` and an optional, untracked
``settings.local.yaml`` in the same directory.  String values of the form
``${VAR}`` or ``${VAR:default}`` are replaced with environment variables
once, at load time.
"""

import os
import re
from pathlib import Path
from typing import Any, cast

import yaml
from dotenv import load_dotenv

CONFIG_DIR_ENV = "MIRROR_TRADER_CONFIG_DIR"

_REFERENCE = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """Raise when configuration loading or validation fails."""


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open() as f:
        data: Any = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return cast("dict[str, Any]", data)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place, recursing into mappings."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(cast("dict[str, Any]", current), cast("dict[str, Any]", value))
        else:
            base[key] = value


def _resolve(value: Any) -> Any:
    """Substitute environment variables throughout a parsed YAML value.

    A whole-string reference is replaced by the variable, falling back to
    its default when the variable is unset or empty.  An empty default
    (``${VAR:}``) resolves to ``None`` so optional settings can be left
    unset.

    Raises:
        ConfigError: If a required variable is unset or a reference is
            embedded in a larger string.

    """
    if isinstance(value, dict):
        mapping = cast("dict[str, Any]", value)
        return {k: _resolve(v) for k, v in mapping.items()}
    if isinstance(value, list):
        return [_resolve(item) for item in cast("list[Any]", value)]
    if not isinstance(value, str):
        return value

    match = _REFERENCE.fullmatch(value)
    if match is None:
        if _REFERENCE.search(value):
            msg = f"Unresolved environment variable reference in: {value}"
            raise ConfigError(msg)
        return value

    name = match.group("name")
    resolved = os.getenv(name) or match.group("default")
    if resolved is None:
        msg = f"Required environment variable ${{{name}}} is not set and has no default"
        raise ConfigError(msg)
    return resolved or None


class ConfigLoader:
    """Load and manage configuration from YAML files with environment variable substitution."""

    def __init__(self, config_dir: Path | None = None, *, load_env: bool = True) -> None:
        """Initialize the config loader.

        Load environment variables from a ``.env`` file (if present) and
        then read YAML configuration from the given directory.

        Args:
            config_dir: Directory containing config files.  Defaults to
                ``$MIRROR_TRADER_CONFIG_DIR``, then the packaged
                ``mirror_trader/config`` directory.
            load_env: Read a ``.env`` file from the working directory first.

        """
        if load_env:
            load_dotenv()
        if config_dir is None:
            override = os.getenv(CONFIG_DIR_ENV)
            config_dir = Path(override) if override else Path(__file__).parent.parent / "config"
        self.config_dir = Path(config_dir)
        self._config = self._load()

    def _load(self) -> dict[str, Any]:
        settings = _read_yaml(self.config_dir / "settings.yaml")
        _merge(settings, _read_yaml(self.config_dir / "settings.local.yaml"))
        return cast("dict[str, Any]", _resolve(settings))

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key.

        Args:
            key: Configuration key in dot notation (e.g., 'copy.size_multiplier').
            default: Default value if key not found.

        Returns:
            Configuration value, or ``default`` when any part of the path is
            missing or unset.

        """
        current: Any = self._config
        for part in key.split("."):
            if not isinstance(current, dict):
                return default
            current = cast("dict[str, Any]", current).get(part)
            if current is None:
                return default
        return current

    def get_section(self, name: str) -> dict[str, Any]:
        """Return a top-level configuration section as a dictionary.

        Args:
            name: Section name, e.g. ``"copy"`` or ``"polymarket"``.

        Returns:
            The section, or an empty dict when absent.

        Raises:
            ConfigError: If the section value is not a dictionary.

        """
        result: Any = self.get(name, {})
        if isinstance(result, dict):
            return cast("dict[str, Any]", result)
        msg = f"{name} config must be a dict, got {type(result).__name__}"
        raise ConfigError(msg)


_config: ConfigLoader | None = None


def get_config() -> ConfigLoader:
    """Return the global ``ConfigLoader`` singleton, creating it on first use.

    Lazy initialisation avoids side effects (file I/O, ``load_dotenv``)
    at import time and makes testing easier.

    Returns:
        The shared ``ConfigLoader`` instance.

    """
    global _config  # noqa: PLW0603
    if _config is None:
        _config = ConfigLoader()
    return _config
