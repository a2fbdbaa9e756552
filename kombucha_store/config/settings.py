"""Configuration loader for the record store.

Rules:
- Fail closed when config is missing or invalid.
- All relative paths in store.yaml are resolved relative to store.yaml's directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from kombucha_store.errors import ConfigurationError

_SUPPORTED_DRIVERS = ("sqlite", "memory")

CONFIG_ENV_VAR = "KOMBUCHA_STORE_CONFIG"
LOGGING_CONFIG_ENV_VAR = "KOMBUCHA_LOGGING_CONFIG"


@dataclass(frozen=True)
class StorageConfig:
    driver: str  # sqlite|memory
    sqlite_path: Path


@dataclass(frozen=True)
class RegistryConfig:
    schemas_dir: Path
    collections_path: Path


@dataclass(frozen=True)
class ValidationConfig:
    strict_formats: bool


@dataclass(frozen=True)
class StoreConfig:
    storage: StorageConfig
    registry: RegistryConfig
    validation: ValidationConfig
    config_dir: Path


def load_yaml_mapping(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Missing required config file: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid YAML root object in config file: {path}")
    return data


def _resolve_path(base_dir: Path, raw: str) -> Path:
    p = Path(raw)
    if p.is_absolute():
        return p
    return (base_dir / p).resolve()


def load_store_config(config_path: Path) -> StoreConfig:
    cfg_dir = config_path.parent.resolve()
    raw = load_yaml_mapping(config_path)

    storage_raw = raw.get("storage") or {}
    registry_raw = raw.get("registry") or {}
    validation_raw = raw.get("validation") or {}

    driver = str(storage_raw.get("driver", "sqlite"))
    if driver not in _SUPPORTED_DRIVERS:
        raise ConfigurationError(f"Unsupported storage driver: {driver} (expected one of {', '.join(_SUPPORTED_DRIVERS)})")

    sqlite_raw = storage_raw.get("sqlite") or {}
    storage = StorageConfig(
        driver=driver,
        sqlite_path=_resolve_path(cfg_dir, str(sqlite_raw.get("path", "../../state/kombucha.sqlite"))),
    )

    registry = RegistryConfig(
        schemas_dir=_resolve_path(cfg_dir, str(registry_raw.get("schemas_dir", "../schemas"))),
        collections_path=_resolve_path(cfg_dir, str(registry_raw.get("collections", "collections.yaml"))),
    )

    validation = ValidationConfig(strict_formats=bool(validation_raw.get("strict_formats", True)))

    return StoreConfig(storage=storage, registry=registry, validation=validation, config_dir=cfg_dir)


def default_config_paths() -> tuple[Path, Path]:
    # Default to the config files bundled next to this module.
    cfg_dir = Path(__file__).resolve().parent
    return cfg_dir / "store.yaml", cfg_dir / "logging.yaml"


def _env_path(name: str) -> Path | None:
    v = os.environ.get(name)
    if not v:
        return None
    return Path(v)


def resolve_config_paths() -> tuple[Path, Path]:
    """Return (store config, logging config), honouring environment overrides."""
    default_store, default_logging = default_config_paths()
    return _env_path(CONFIG_ENV_VAR) or default_store, _env_path(LOGGING_CONFIG_ENV_VAR) or default_logging
