"""Settings resolution for the command-line front end.

Values are layered: built-in defaults, then a YAML mapping at
``~/.config/meeting-notes/config.yaml``, then environment variables. Empty
environment values are ignored rather than overriding a useful default.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

_ENV_KEYS = {
    "api_key": "GEMINI_API_KEY",
    "model": "MEETING_NOTES_MODEL",
    "base_url": "MEETING_NOTES_API_BASE",
    "share_webhook_url": "MEETING_NOTES_SHARE_WEBHOOK",
}
_REQUIRED_TEXT = ("model", "base_url")
_OPTIONAL_TEXT = ("api_key", "share_webhook_url")


class ConfigError(ValueError):
    """Raised when the config file cannot be used."""


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: float = 60.0
    max_attempts: int = 5
    share_webhook_url: Optional[str] = None


def get_default_config_path() -> Path:
    return Path("~/.config/meeting-notes/config.yaml").expanduser()


def load_config_file(path: Path) -> Dict[str, Any]:
    """Return the mapping stored in ``path``; a missing file yields ``{}``."""
    try:
        raw_text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    environ = os.environ if environ is None else environ
    path = Path(config_path).expanduser() if config_path else get_default_config_path()

    known = {field.name: field for field in fields(Settings)}
    overrides: Dict[str, Any] = {}
    for key, value in load_config_file(path).items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{key}' in {path}")
        overrides[key] = value

    for name, env_key in _ENV_KEYS.items():
        value = environ.get(env_key)
        if value and value.strip():
            overrides[name] = value.strip()

    settings = replace(Settings(), **overrides)
    return _coerce(settings, path)


def _coerce(settings: Settings, path: Path) -> Settings:
    for name in _REQUIRED_TEXT:
        if not isinstance(getattr(settings, name), str):
            raise ConfigError(f"Setting '{name}' in {path} must be a string")
    for name in _OPTIONAL_TEXT:
        value = getattr(settings, name)
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"Setting '{name}' in {path} must be a string")

    try:
        timeout = float(settings.timeout)
        max_attempts = int(settings.max_attempts)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid numeric setting in {path}: {exc}") from exc
    if max_attempts < 1:
        raise ConfigError("max_attempts must be at least 1")
    return replace(settings, timeout=timeout, max_attempts=max_attempts)
