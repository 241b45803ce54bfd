"""Configuration helpers for the Fótons client."""

from __future__ import annotations

import dataclasses
import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl, ValidationError

from fotons.api.errors import ConfigError


class ApiSettings(BaseModel):
    """Connection information for the pages REST API."""

    base_url: HttpUrl = Field("http://localhost:3000", validate_default=True, description="Base URL of the REST API")
    timeout: float = Field(30.0, gt=0, description="Request timeout in seconds")


class StorageSettings(BaseModel):
    """Object storage used for page images."""

    endpoint: Optional[HttpUrl] = Field(None, description="Storage REST root, e.g. https://<project>/storage/v1")
    api_key: Optional[str] = Field(None, description="Key sent with upload requests")
    bucket: str = Field("photonslib", description="Bucket holding images and thumbnails")


class EditorSettings(BaseModel):
    """Editing session behaviour."""

    autosave_delay: float = Field(1.0, gt=0, description="Seconds of quiet before an autosave")
    linked_page_title: str = Field("Novo Fóton", min_length=1, description="Title of pages created from '/'")


def _default_session_path() -> Path:
    return Path.home() / ".config" / "fotons" / "session.json"


class FotonsConfig(BaseModel):
    """Aggregate configuration for the client."""

    api: ApiSettings = Field(default_factory=ApiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    session_path: Path = Field(default_factory=_default_session_path)


ENV_PREFIX = "FOTONS"
DEFAULT_CONFIG_PATHS = (
    Path.cwd() / "fotons.toml",
    Path.home() / ".config" / "fotons" / "config.toml",
)

# (section, key) pairs that may be set through FOTONS_<SECTION>_<KEY>.
_ENV_FIELDS = (
    ("api", "base_url"),
    ("api", "timeout"),
    ("storage", "endpoint"),
    ("storage", "api_key"),
    ("storage", "bucket"),
    ("editor", "autosave_delay"),
    ("editor", "linked_page_title"),
)


@dataclasses.dataclass
class ConfigSource:
    """Result of attempting to resolve configuration data."""

    config: Optional[FotonsConfig]
    path: Optional[Path]
    error: Optional[Exception]


def _load_from_env() -> dict[str, dict[str, str]]:
    """Return configuration values found in ``FOTONS_*`` environment variables."""

    env_data: dict[str, dict[str, str]] = {}
    for section, key in _ENV_FIELDS:
        value = os.getenv(f"{ENV_PREFIX}_{section.upper()}_{key.upper()}")
        if value:
            env_data.setdefault(section, {})[key] = value

    session_path = os.getenv(f"{ENV_PREFIX}_SESSION_PATH")
    if session_path:
        env_data["session_path"] = session_path  # type: ignore[assignment]
    return env_data


def _load_toml(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _merge(base: dict, overrides: dict) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_config(explicit_path: Optional[Path] = None) -> ConfigSource:
    """Discover configuration.

    The first TOML file found wins, in this order:
    1. Explicit path provided via CLI argument.
    2. ``fotons.toml`` in the working directory, then the user's config directory.

    Environment variables with the ``FOTONS_`` prefix are layered on top.
    """

    data: dict = {}
    path: Optional[Path] = None
    candidates = (explicit_path,) if explicit_path else DEFAULT_CONFIG_PATHS
    for candidate in candidates:
        try:
            loaded = _load_toml(candidate)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            return ConfigSource(config=None, path=candidate, error=exc)
        if loaded is not None:
            data, path = loaded, candidate
            break

    if explicit_path and path is None:
        return ConfigSource(
            config=None,
            path=explicit_path,
            error=FileNotFoundError(f"Configuration file {explicit_path} does not exist"),
        )

    data = _merge(data, _load_from_env())
    try:
        config = FotonsConfig.model_validate(data)
    except ValidationError as exc:
        return ConfigSource(config=None, path=path, error=exc)
    return ConfigSource(config=config, path=path, error=None)


def ensure_config(
    *,
    base_url: Optional[str] = None,
    config_path: Optional[Path] = None,
) -> FotonsConfig:
    """Resolve configuration and apply explicit CLI overrides."""

    source = resolve_config(config_path)
    if source.config is None:
        where = f" in {source.path}" if source.path else ""
        raise ConfigError(f"Invalid configuration{where}: {source.error}")

    config = source.config.model_copy(deep=True)
    if base_url:
        try:
            config.api = ApiSettings(base_url=base_url, timeout=config.api.timeout)
        except ValidationError as exc:
            raise ConfigError(f"Invalid API base URL {base_url!r}") from exc
    return config
