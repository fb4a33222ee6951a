"""
Settings access for the provider layer.

The core only ever reads settings through ``ConfigStore.get``; whoever owns
the settings (a settings screen, a TOML file, the environment) writes them.
Provider configs are rebuilt from the store on every orchestration so edits
take effect on the next call.
"""

from __future__ import annotations
import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

# stdlib TOML in 3.11+
import tomllib

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

USER_CFG = Path.home() / ".config" / "qa-analyzer" / "config.toml"
PROJECT_CFG_NAME = "qa-analyzer.toml"
ENV_PREFIX = "QA_ANALYZER_"

PROVIDER_KEY = "provider"
FALLBACK_KEY = "fallback_enabled"

KNOWN_KEYS: List[str] = [
    PROVIDER_KEY,
    FALLBACK_KEY,
    "local.endpoint",
    "local.model",
    "local.timeout",
    "regional.endpoint",
    "regional.api_key",
    "regional.model",
    "regional.folder_id",
    "regional.timeout",
    "frontier.endpoint",
    "frontier.api_key",
    "frontier.model",
    "frontier.timeout",
]

DEFAULTS: Dict[str, str] = {
    PROVIDER_KEY: "local",
    FALLBACK_KEY: "true",
    "local.endpoint": "http://localhost:11434",
}

# Well-known credential variables honoured when the prefixed one is unset
ENV_ALIASES: Dict[str, str] = {
    "frontier.api_key": "OPENAI_API_KEY",
    "regional.api_key": "YANDEX_API_KEY",
    "regional.folder_id": "YANDEX_FOLDER_ID",
}

_TRUE = {"1", "true", "t", "yes", "y", "on"}
_FALSE = {"0", "false", "f", "no", "n", "off", ""}


class ConfigStore(Protocol):
    """Read-only key/value view of the settings."""

    def get(self, key: str) -> Optional[str]:
        ...


class DictConfigStore:
    """In-memory store; the settings screen and tests write through ``set``."""

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, str] = {}
        for key, value in (values or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._values.pop(key, None)
        else:
            self._values[key] = _to_setting(value)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)


class LayeredConfigStore:
    """
    Settings merged from defaults, user TOML, project TOML and environment.

    Later layers win. Nested TOML tables flatten to dotted keys, so
    ``[frontier] model = "gpt-4o-mini"`` is read as ``frontier.model``.
    """

    def __init__(
        self,
        user_path: Optional[Path] = None,
        project_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ):
        self.user_path = user_path or USER_CFG
        self.project_path = project_path or Path.cwd() / PROJECT_CFG_NAME
        self._environ = environ
        self._snapshot: Dict[str, str] = {}
        self.reload()

    def get(self, key: str) -> Optional[str]:
        return self._snapshot.get(key)

    def reload(self) -> None:
        """Re-read every layer; readers see either the old or the new snapshot."""
        settings = dict(DEFAULTS)
        settings.update(_flatten(_read_toml(self.user_path)))
        settings.update(_flatten(_read_toml(self.project_path)))
        settings.update(_read_env(self._environ if self._environ is not None else os.environ))
        self._snapshot = settings

    def as_dict(self) -> Dict[str, str]:
        return dict(self._snapshot)


class ProviderConfig(BaseModel):
    """Connection settings for one provider, as read at call time."""
    provider_id: str
    endpoint: Optional[str] = Field(None, description="Base URL of the backend")
    model: Optional[str] = Field(None, description="Model name or URI")
    api_key: Optional[str] = Field(None, description="Credential passed through to the backend")
    timeout: Optional[float] = Field(None, description="Seconds to wait before giving up")
    options: Dict[str, str] = Field(default_factory=dict, description="Provider-specific extras")

    def value(self, name: str) -> Optional[str]:
        """Named field or option, with blank strings treated as missing."""
        raw = getattr(self, name, None) if name in type(self).model_fields else self.options.get(name)
        if raw is None:
            return None
        raw = str(raw).strip()
        return raw or None


def load_provider_config(store: ConfigStore, provider_id: str) -> ProviderConfig:
    """Build a ProviderConfig from ``<provider_id>.*`` keys."""
    prefix = f"{provider_id}."
    options = {}
    for key in KNOWN_KEYS:
        if key.startswith(prefix):
            name = key[len(prefix):]
            if name not in ProviderConfig.model_fields:
                value = store.get(key)
                if value is not None:
                    options[name] = value

    return ProviderConfig(
        provider_id=provider_id,
        endpoint=store.get(f"{prefix}endpoint"),
        model=store.get(f"{prefix}model"),
        api_key=store.get(f"{prefix}api_key"),
        timeout=parse_timeout(store.get(f"{prefix}timeout"), provider_id),
        options=options
    )


def selected_provider(store: ConfigStore) -> Optional[str]:
    value = store.get(PROVIDER_KEY)
    if value is None or not value.strip():
        return None
    return value.strip().lower()


def fallback_enabled(store: ConfigStore) -> bool:
    return parse_bool(store.get(FALLBACK_KEY), default=False)


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    logger.warning(f"Unrecognised boolean setting {value!r}; using {default}")
    return default


def parse_timeout(value: Optional[str], provider_id: str) -> Optional[float]:
    if value is None or not str(value).strip():
        return None
    try:
        timeout = float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric timeout {value!r} for provider '{provider_id}'")
        return None
    if timeout <= 0:
        logger.warning(f"Ignoring non-positive timeout {value!r} for provider '{provider_id}'")
        return None
    return timeout


def _to_setting(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, f"{name}."))
        elif value is not None:
            flat[name] = _to_setting(value)
    return flat


def _read_env(environ: Mapping[str, str]) -> Dict[str, str]:
    settings: Dict[str, str] = {}
    for key in KNOWN_KEYS:
        env_name = ENV_PREFIX + key.replace(".", "_").upper()
        value = environ.get(env_name)
        if value is None and key in ENV_ALIASES:
            value = environ.get(ENV_ALIASES[key])
        if value is not None:
            settings[key] = value
    return settings
