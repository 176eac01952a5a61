"""Configuration management utilities for kiln."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigurationError
from .shared.types import AuthConfig
from .utils.structured_logging import parse_level

__all__ = [
    "BuildSettings",
    "deep_merge",
    "get_default_config",
    "load_config",
    "load_env_config",
    "load_global_config",
    "load_yaml_config",
    "merge_config",
]

logger = logging.getLogger(__name__)

_REGISTRY_SECTION = "registry"
_ENV_TO_CONFIG_KEY = {
    "KILN_REGISTRY_USERNAME": (_REGISTRY_SECTION, "username"),
    "KILN_REGISTRY_PASSWORD": (_REGISTRY_SECTION, "password"),
    "KILN_REGISTRY_EMAIL": (_REGISTRY_SECTION, "email"),
    "KILN_REGISTRY_SERVER": (_REGISTRY_SECTION, "server_address"),
    "KILN_ENGINE_TIMEOUT": ("engine", "timeout"),
    "KILN_PROBE_TIMEOUT": ("build", "probe_timeout"),
    "KILN_LOG_LEVEL": ("logging", "level"),
}
_FALSEY = {"0", "false", "no", "off"}


def merge_config(
    overrides: Dict[str, Any],
    env_config: Dict[str, Any],
    file_config: Dict[str, Any],
    defaults: Dict[str, Any],
) -> Dict[str, Any]:
    """Merge configuration dictionaries honoring precedence order."""
    merged = defaults.copy()
    deep_merge(merged, file_config)
    deep_merge(merged, env_config)
    filtered = {key: value for key, value in overrides.items() if value is not None}
    deep_merge(merged, filtered)
    return merged


def deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> None:
    """Recursively merge ``overlay`` into ``base`` in place."""
    for key, value in overlay.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value


def load_yaml_config(yaml_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from ``kiln.yaml`` or return an empty dict."""
    path = yaml_path or Path("kiln.yaml")
    if not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.warning("Failed to load %s: %s", path, exc)
        return {}

    return data if isinstance(data, dict) else {}


def load_global_config() -> Dict[str, Any]:
    """Load user-level configuration from standard locations."""
    try:
        home = Path.home()
    except (OSError, RuntimeError):
        return {}

    for candidate in (
        home / ".kiln" / "config.yaml",
        home / ".config" / "kiln" / "config.yaml",
    ):
        try:
            if candidate.exists():
                with candidate.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle) or {}
                if isinstance(data, dict):
                    return data
        except (yaml.YAMLError, OSError):
            continue
    return {}


def load_env_config() -> Dict[str, Any]:
    """Load supported ``KILN_*`` variables from the current environment."""
    config: Dict[str, Any] = {}
    for env_key, (section, key) in _ENV_TO_CONFIG_KEY.items():
        if env_key in os.environ:
            config.setdefault(section, {})[key] = os.environ[env_key]
    if "KILN_NO_CACHE" in os.environ:
        no_cache = os.environ["KILN_NO_CACHE"].strip().lower() not in _FALSEY
        config.setdefault("build", {})["utilize_cache"] = not no_cache
    return config


def get_default_config() -> Dict[str, Any]:
    """Return a fresh copy of kiln's default configuration."""
    return {
        "engine": {
            "timeout": 120,
        },
        "build": {
            "utilize_cache": True,
            "probe_timeout": 10,
            "tmp_prefix": ".kilntmp",
        },
        "containers": {
            "exports_image": "grammarly/rsync-static:1",
            "mount_image": "grammarly/scratch:latest",
        },
        _REGISTRY_SECTION: {
            "username": None,
            "password": None,
            "email": None,
            "server_address": None,
        },
        "logging": {
            "level": "INFO",
        },
    }


def load_config(
    overrides: Optional[Dict[str, Any]] = None,
    yaml_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """Load configuration from defaults, files, environment, and overrides."""
    file_config = load_global_config()
    deep_merge(file_config, load_yaml_config(yaml_path))
    return merge_config(
        overrides=overrides or {},
        env_config=load_env_config(),
        file_config=file_config,
        defaults=get_default_config(),
    )


def _as_float(section: Dict[str, Any], key: str) -> float:
    value = section.get(key)
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {key}: {value!r}")
    if result <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value!r}")
    return result


def _as_level(value: Any) -> str:
    try:
        parse_level(value)
    except ValueError:
        raise ConfigurationError(f"Invalid value for logging.level: {value!r}")
    return str(value).strip().upper()


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSEY
    return bool(value)


@dataclass
class BuildSettings:
    """Typed view of the settings the build core reads."""

    engine_timeout: float = 120.0
    utilize_cache: bool = True
    probe_timeout: float = 10.0
    tmp_prefix: str = ".kilntmp"
    exports_image: str = "grammarly/rsync-static:1"
    mount_image: str = "grammarly/scratch:latest"
    log_level: str = "INFO"
    auth: Optional[AuthConfig] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "BuildSettings":
        engine = config.get("engine", {}) or {}
        build = config.get("build", {}) or {}
        containers = config.get("containers", {}) or {}
        registry = config.get(_REGISTRY_SECTION, {}) or {}
        logging_section = config.get("logging", {}) or {}

        auth = None
        if registry.get("username") or registry.get("server_address"):
            auth = AuthConfig(
                username=registry.get("username"),
                password=registry.get("password"),
                email=registry.get("email"),
                server_address=registry.get("server_address"),
            )

        return cls(
            engine_timeout=_as_float(engine, "timeout"),
            utilize_cache=_as_bool(build.get("utilize_cache", True)),
            probe_timeout=_as_float(build, "probe_timeout"),
            tmp_prefix=str(build.get("tmp_prefix") or ".kilntmp"),
            exports_image=str(containers.get("exports_image")),
            mount_image=str(containers.get("mount_image")),
            log_level=_as_level(logging_section.get("level", "INFO")),
            auth=auth,
        )
