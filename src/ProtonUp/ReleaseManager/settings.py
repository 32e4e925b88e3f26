"""Configuration models and loaders for the release manager.

A configuration file maps module names to :class:`ModuleConfig` entries, each
describing one ``owner/repo`` release feed together with the directories its
artifacts are cached in and installed to.  YAML, JSON, and TOML files are
accepted; environment variables prefixed with ``PUP_`` override the file and
select where it is read from.
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError, NotFoundError

__all__ = [
    "DEFAULT_OWNER",
    "DEFAULT_REPO",
    "DEFAULT_INSTALL_DIR",
    "DEFAULT_CACHE_DIR",
    "DEFAULT_CONFIG_DIR",
    "HttpSettings",
    "LoggingSettings",
    "ModuleConfig",
    "AppConfig",
    "EnvironmentOverrides",
    "default_config_path",
    "load_config",
    "select_module",
]

DEFAULT_OWNER = "GloriousEggroll"
DEFAULT_REPO = "proton-ge-custom"
DEFAULT_INSTALL_DIR = Path("~/.steam/root/compatibilitytools.d")
DEFAULT_CACHE_DIR = Path("~/.cache/pup")
DEFAULT_CONFIG_DIR = Path("~/.config/pup")
DEFAULT_MODULE_NAME = "proton-ge"
_CONFIG_CANDIDATES = ("config.yaml", "config.yml", "config.toml", "config.json")


def _expand(value: Any) -> Path:
    return Path(value).expanduser()


class HttpSettings(BaseModel):
    """HTTP client settings for registry queries and downloads."""

    model_config = ConfigDict(frozen=True)

    timeout_connect: float = Field(default=10.0, gt=0.0, le=120.0)
    timeout_read: float = Field(default=60.0, gt=0.0, le=900.0)
    user_agent: str = Field(default="pup/ProtonUp.ReleaseManager")
    github_token: Optional[str] = Field(default=None, repr=False)


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO")
    emit_json_logs: bool = Field(default=False)

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        return logging.getLevelName(self.level)


class ModuleConfig(BaseModel):
    """One release feed plus the directories its artifacts live in."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner: str = DEFAULT_OWNER
    repo: str = DEFAULT_REPO
    install_dir: Path = DEFAULT_INSTALL_DIR
    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_capacity: int = Field(default=64, ge=1)
    metadata_file: Optional[Path] = None

    @field_validator("install_dir", "cache_dir", "metadata_file", mode="before")
    @classmethod
    def expand_paths(cls, v: Any) -> Any:
        if v is None:
            return None
        return _expand(v)

    @field_validator("owner", "repo")
    @classmethod
    def require_non_empty(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("must not be empty")
        return cleaned

    @property
    def metadata_path(self) -> Path:
        """Where the release metadata cache for this module is persisted."""

        return self.metadata_file or self.cache_dir / "releases.json"


class AppConfig(BaseModel):
    """Fully resolved configuration."""

    model_config = ConfigDict(extra="forbid")

    modules: Dict[str, ModuleConfig] = Field(default_factory=dict)
    http: HttpSettings = Field(default_factory=HttpSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    source: Optional[Path] = None

    @model_validator(mode="after")
    def ensure_module(self) -> "AppConfig":
        if not self.modules:
            self.modules = {DEFAULT_MODULE_NAME: ModuleConfig()}
        return self


class EnvironmentOverrides(BaseSettings):
    """Environment-derived overrides (``PUP_*``)."""

    model_config = SettingsConfigDict(env_prefix="PUP_", case_sensitive=False, extra="ignore")

    config: Optional[Path] = None
    log_level: Optional[str] = None
    github_token: Optional[str] = Field(default=None, repr=False)
    install_dir: Optional[Path] = None
    cache_dir: Optional[Path] = None


def default_config_path(config_dir: Path = DEFAULT_CONFIG_DIR) -> Optional[Path]:
    """Return the first existing ``config.*`` file in ``config_dir``."""

    root = _expand(config_dir)
    for candidate in _CONFIG_CANDIDATES:
        path = root / candidate
        if path.is_file():
            return path
    return None


def _load_raw(path: Path) -> Mapping[str, object]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read configuration file {path}: {exc}") from exc
    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            data = tomllib.loads(text)
        elif suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Configuration file {path} could not be parsed: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


def _split_sections(raw: Mapping[str, object]) -> Dict[str, object]:
    """Accept ``{modules: {...}}`` or a bare mapping of module tables."""

    if "modules" in raw or "http" in raw or "logging" in raw:
        return dict(raw)
    return {"modules": dict(raw)}


def _apply_env(payload: Dict[str, object], env: EnvironmentOverrides) -> Dict[str, object]:
    if env.log_level:
        logging_section = dict(payload.get("logging") or {})  # type: ignore[arg-type]
        logging_section["level"] = env.log_level
        payload["logging"] = logging_section
    if env.github_token:
        http_section = dict(payload.get("http") or {})  # type: ignore[arg-type]
        http_section["github_token"] = env.github_token
        payload["http"] = http_section
    if env.install_dir or env.cache_dir:
        modules = dict(payload.get("modules") or {DEFAULT_MODULE_NAME: {}})  # type: ignore[arg-type]
        for name, module in list(modules.items()):
            entry = dict(module) if isinstance(module, Mapping) else module
            if isinstance(entry, dict):
                if env.install_dir:
                    entry["install_dir"] = env.install_dir
                if env.cache_dir:
                    entry["cache_dir"] = env.cache_dir
            modules[name] = entry
        payload["modules"] = modules
    return payload


def load_config(
    config_path: Optional[Path] = None,
    *,
    env: Optional[EnvironmentOverrides] = None,
) -> AppConfig:
    """Load configuration from ``config_path`` (or the default location).

    An explicitly requested file that does not exist raises
    :class:`NotFoundError`; a missing default file falls back to the built-in
    Proton-GE module.
    """

    env = env or EnvironmentOverrides()
    requested = config_path or env.config
    if requested is not None:
        path = _expand(requested)
        if not path.is_file():
            raise NotFoundError(f"Config file not found at {path}")
    else:
        path = default_config_path()

    payload: Dict[str, object] = {}
    if path is not None:
        payload = _split_sections(_load_raw(path))
    payload = _apply_env(payload, env)
    try:
        config = AppConfig.model_validate(payload)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {path or 'defaults'}: {exc}") from exc
    config.source = path
    return config


def select_module(config: AppConfig, name: Optional[str] = None) -> Tuple[str, ModuleConfig]:
    """Return the named module, or the first one declared when ``name`` is ``None``."""

    if name is None:
        return next(iter(config.modules.items()))
    try:
        return name, config.modules[name]
    except KeyError:
        known = ", ".join(sorted(config.modules)) or "none"
        raise ConfigurationError(f"Module '{name}' not found in config (known: {known})") from None
