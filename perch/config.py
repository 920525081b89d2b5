"""
Config system - layered typed configuration.

Merge order (later overrides earlier):
1. Dataclass defaults
2. JSON config file
3. .env file (PERCH_* keys only)
4. Environment variables (PERCH_* prefix, ``__`` for nesting)
5. Manual overrides

Example:
    PERCH_CONTEXT_URL=/app
    PERCH_CSRF__SECRET_KEY=change-me
    PERCH_ACCESS_LOG__EXTRA='["query", "jwt"]'
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, get_type_hints

from dotenv import dotenv_values

from .faults.domains import ConfigInvalidFault

T = TypeVar("T")


@dataclass
class AccessLogConfig:
    """Access log settings. ``format`` is a ``$variable`` template or "json"."""
    enabled: bool = True
    format: Optional[str] = None
    extra: List[str] = field(default_factory=lambda: ["query", "body"])
    body_max_size: int = 4096
    date_format: str = "%d/%b/%Y:%H:%M:%S %z"
    skip_paths: List[str] = field(default_factory=list)


@dataclass
class CsrfConfig:
    enabled: bool = True
    secret_key: Optional[str] = None
    header_name: str = "X-CSRF-Token"
    field_name: str = "_csrf_token"
    cookie_name: str = "_csrf_cookie"


@dataclass
class LoginConfig:
    login_url: str = "/login"
    redirect_param: Optional[str] = "redirect"


@dataclass
class RateLimitConfig:
    """Defaults for ``@RateLimit()`` filters that do not set their own values."""
    limit: int = 60
    window: float = 60.0


@dataclass
class WebConfig:
    """
    Top-level web configuration.

    Attributes:
        context_url: Path prefix applied to every controller route
        debug: Verbose logging
    """
    context_url: Optional[str] = None
    debug: bool = False
    access_log: AccessLogConfig = field(default_factory=AccessLogConfig)
    csrf: CsrfConfig = field(default_factory=CsrfConfig)
    login: LoginConfig = field(default_factory=LoginConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    def to_dict(self) -> Dict[str, Any]:
        return _to_dict(self)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Args:
        env_prefix: Prefix of environment variables to consider
    """

    def __init__(self, env_prefix: str = "PERCH_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        env_file: Optional[str] = None,
        env_prefix: str = "PERCH_",
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from all sources.

        Args:
            path: JSON config file
            env_file: Path to .env file
            env_prefix: Prefix for environment variables
            overrides: Manual overrides (highest precedence)
            environ: Environment mapping (defaults to ``os.environ``)
        """
        loader = cls(env_prefix=env_prefix)

        if path:
            loader._load_json_file(path)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, dict(overrides))

        return loader

    def _load_json_file(self, path: str) -> None:
        file_path = Path(path)
        if not file_path.exists():
            raise ConfigInvalidFault(path, "config file does not exist")
        try:
            data = json.loads(file_path.read_text())
        except json.JSONDecodeError as exc:
            raise ConfigInvalidFault(path, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigInvalidFault(path, "top-level value must be an object")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str) -> None:
        """Load PERCH_* keys from a .env file."""
        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ: Mapping[str, str]) -> None:
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert PERCH_CSRF__SECRET_KEY to {"csrf": {"secret_key": ...}}."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False
        if value.lower() in ("none", "null"):
            return None

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict) -> None:
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_web_config(self) -> WebConfig:
        """Build a validated WebConfig from the merged data."""
        return _build(WebConfig, self.config_data, "")


def _build(cls: Type[T], data: Mapping[str, Any], prefix: str) -> T:
    if not isinstance(data, Mapping):
        raise ConfigInvalidFault(prefix.rstrip(".") or "<root>", "expected an object")

    hints = get_type_hints(cls)
    known = {f.name for f in fields(cls)}
    for key in data:
        if key not in known:
            raise ConfigInvalidFault(prefix + key, "unknown configuration key")

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        key = prefix + f.name
        value = data[f.name]
        hint = hints[f.name]
        if is_dataclass(hint):
            kwargs[f.name] = _build(hint, value, key + ".")
        else:
            kwargs[f.name] = _coerce(key, value, hint)
    return cls(**kwargs)


def _coerce(key: str, value: Any, hint: Any) -> Any:
    text = str(hint)
    if value is None:
        if "Optional" in text or "None" in text:
            return None
        raise ConfigInvalidFault(key, "value is required")

    if hint is bool:
        if value in (0, 1) and not isinstance(value, float):
            return bool(value)
        if not isinstance(value, bool):
            raise ConfigInvalidFault(key, f"expected a boolean, got {value!r}")
        return value
    if hint is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigInvalidFault(key, f"expected an integer, got {value!r}")
        return value
    if hint is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigInvalidFault(key, f"expected a number, got {value!r}")
        return float(value)
    if "List[str]" in text or "list[str]" in text:
        if isinstance(value, str):
            value = [item.strip() for item in value.split(",") if item.strip()]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigInvalidFault(key, f"expected a list of strings, got {value!r}")
        return value
    # str and Optional[str]
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        raise ConfigInvalidFault(key, f"expected a string, got {value!r}")
    return value


def _to_dict(obj: Any) -> Any:
    if is_dataclass(obj):
        return {f.name: _to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, list):
        return list(obj)
    return obj


def load_config(
    path: Optional[str] = None,
    env_file: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> WebConfig:
    """Shortcut for ``ConfigLoader.load(...).to_web_config()``."""
    return ConfigLoader.load(path=path, env_file=env_file, overrides=overrides, environ=environ).to_web_config()


def configure_logging(level: int = logging.INFO) -> None:
    """Install a stream handler on the ``perch`` logger (CLI and scripts)."""
    logger = logging.getLogger("perch")
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)


__all__ = [
    "WebConfig",
    "AccessLogConfig",
    "CsrfConfig",
    "LoginConfig",
    "RateLimitConfig",
    "ConfigLoader",
    "load_config",
    "configure_logging",
]
