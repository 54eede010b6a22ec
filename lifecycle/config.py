"""
Blueprint Engine — Configuration

Three-tier configuration loading:
  1. Base file (lifecycle_config.yaml)
  2. Per-environment overlay files (config/{BP_ENV}.yaml merged over base)
  3. Environment variable overrides (BP_ prefixed)

The merged dict is frozen into an EngineConfig once at process start and
passed by reference to the router, inspector, reconciler, API and CLI.
Nothing in the engine reads configuration from module globals.

Usage:
    from lifecycle.config import load_engine_config

    config = load_engine_config()                  # defaults + files + env
    config.stale_after_minutes                     # 10
    config.route_template("GENERATING")            # "/generating/{id}"

Environment variables:
    BP_ENV            — active profile (dev, staging, prod)
    BP_CONFIG_DIR     — directory for overlay files (default: config/)
    BP_*              — overrides (e.g., BP_INSPECTOR_STALE_AFTER_MINUTES=15)
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lifecycle.exceptions import ConfigError

logger = logging.getLogger("blueprint_engine.config")

DEFAULT_CONFIG_PATH = "lifecycle_config.yaml"

DEFAULTS: dict[str, Any] = {
    "inspector": {
        "stale_after_minutes": 10,
    },
    "routes": {
        "STATIC_WIZARD": "/static-wizard?bid={id}",
        "LOAD_DYNAMIC_QUESTIONS": "/loading/{id}",
        "DYNAMIC_WIZARD": "/dynamic-wizard/{id}",
        "GENERATING": "/generating/{id}",
        "VIEWER": "/blueprint/{id}",
    },
    "reconciler": {
        "repair_enabled": True,
        "defaults": {
            "title": "Learning Blueprint",
            "overview": "Auto-generated learning blueprint overview.",
            "objective": "Define measurable learning objectives",
            "activity": "See instructional strategy",
            "assessment": "Formative assessment",
            "module_title": "Module 1",
            "module_duration": 1,
            "module_topic": "Overview",
        },
    },
    "logging": {
        "level": "INFO",
    },
}


# ═══════════════════════════════════════════════════════════════════
# Deep Merge
# ═══════════════════════════════════════════════════════════════════

def deep_merge(base: dict, overlay: dict) -> dict:
    """
    Deep-merge overlay into base. Overlay values win.
    Lists are replaced (not appended). Dicts are recursed.
    """
    result = copy.deepcopy(base)
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _set_nested(d: dict, keys: list[str], value: Any):
    """Set a nested dict value from a list of keys."""
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = value


# ═══════════════════════════════════════════════════════════════════
# Tier 2: Overlay Files
# ═══════════════════════════════════════════════════════════════════

def _load_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping", path=str(path))
    return data


def _load_overlay_file(
    base_path: str,
    env: str = "",
    config_dir: str = "",
) -> dict[str, Any]:
    """
    Load per-environment overlay file.
    Looks for {config_dir}/{env}.yaml, then config/{env}.yaml beside the base file.
    Returns empty dict if not found.
    """
    env = env or os.environ.get("BP_ENV", "")
    if not env:
        return {}

    config_dir = config_dir or os.environ.get("BP_CONFIG_DIR", "config")

    candidates = [
        Path(config_dir) / f"{env}.yaml",
        Path(config_dir) / f"{env}.yml",
        Path(os.path.dirname(base_path)) / "config" / f"{env}.yaml",
    ]

    for path in candidates:
        if path.exists():
            overlay = _load_yaml(path)
            logger.info("Loaded config overlay: %s (%d keys)", path, len(overlay))
            return overlay

    logger.debug("No config overlay found for env=%s", env)
    return {}


# ═══════════════════════════════════════════════════════════════════
# Tier 3: Environment Variable Overrides
# ═══════════════════════════════════════════════════════════════════

# Env var names are flat, so multi-word keys are matched against the
# known config tree instead of splitting blindly on underscores.
def _resolve_env_path(parts: list[str], tree: dict[str, Any]) -> list[str] | None:
    if not parts:
        return None
    for i in range(len(parts), 0, -1):
        candidate = "_".join(parts[:i])
        for key in tree:
            if key.lower() != candidate:
                continue
            if i == len(parts):
                return [key]
            sub = tree[key]
            if isinstance(sub, dict):
                rest = _resolve_env_path(parts[i:], sub)
                if rest is not None:
                    return [key] + rest
    return None


def _load_env_overrides(prefix: str = "BP_", tree: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Load BP_ prefixed environment variables as config overrides.

    BP_INSPECTOR_STALE_AFTER_MINUTES=15 → {"inspector": {"stale_after_minutes": 15}}
    BP_ROUTES_VIEWER=/v/{id}            → {"routes": {"VIEWER": "/v/{id}"}}

    Values are parsed as YAML scalars. Variables that do not name a known
    key are ignored; BP_ENV, BP_CONFIG_DIR and BP_VERSION are meta config.
    """
    excluded = {"BP_ENV", "BP_CONFIG_DIR", "BP_VERSION"}
    tree = tree if tree is not None else DEFAULTS
    overrides: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix) or key in excluded:
            continue
        path = _resolve_env_path(key[len(prefix):].lower().split("_"), tree)
        if path is None:
            logger.debug("Ignoring unknown config override %s", key)
            continue
        try:
            parsed = yaml.safe_load(value)
        except yaml.YAMLError:
            parsed = value
        _set_nested(overrides, path, parsed)

    if overrides:
        logger.debug("Loaded %d env var overrides", len(overrides))
    return overrides


# ═══════════════════════════════════════════════════════════════════
# Main Loader
# ═══════════════════════════════════════════════════════════════════

def load_config(
    base_path: str = DEFAULT_CONFIG_PATH,
    env: str = "",
    config_dir: str = "",
    include_env_vars: bool = True,
) -> dict[str, Any]:
    """
    Load configuration with three-tier merging over built-in defaults.

    Priority (highest wins):
      1. Environment variable overrides (BP_*)
      2. Per-environment overlay file (config/{env}.yaml)
      3. Base config file (lifecycle_config.yaml)
      4. Built-in DEFAULTS
    """
    config = copy.deepcopy(DEFAULTS)
    if os.path.exists(base_path):
        config = deep_merge(config, _load_yaml(Path(base_path)))
        logger.debug("Loaded base config: %s", base_path)

    overlay = _load_overlay_file(base_path, env=env, config_dir=config_dir)
    if overlay:
        config = deep_merge(config, overlay)

    if include_env_vars:
        env_overrides = _load_env_overrides(tree=config)
        if env_overrides:
            config = deep_merge(config, env_overrides)

    config["_active_env"] = env or os.environ.get("BP_ENV", "default")
    config["_config_source"] = base_path
    return config


def get_config_value(path: str, config: dict[str, Any], default: Any = None) -> Any:
    """
    Get a nested config value by dotted path.

    Example:
        get_config_value("inspector.stale_after_minutes", cfg, 10)
    """
    current: Any = config
    for key in path.split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default
    return current


# ═══════════════════════════════════════════════════════════════════
# Engine Config
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReconcilerDefaults:
    """Placeholder texts substituted when a generated artifact lacks content."""
    title: str = "Learning Blueprint"
    overview: str = "Auto-generated learning blueprint overview."
    objective: str = "Define measurable learning objectives"
    activity: str = "See instructional strategy"
    assessment: str = "Formative assessment"
    module_title: str = "Module 1"
    module_duration: int = 1
    module_topic: str = "Overview"


@dataclass(frozen=True)
class EngineConfig:
    stale_after_minutes: float = 10
    routes: dict[str, str] = field(default_factory=lambda: dict(DEFAULTS["routes"]))
    repair_enabled: bool = True
    defaults: ReconcilerDefaults = field(default_factory=ReconcilerDefaults)
    log_level: str = "INFO"
    env: str = "default"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> EngineConfig:
        """Build and validate an EngineConfig from a merged config dict."""
        merged = deep_merge(DEFAULTS, raw)

        stale = get_config_value("inspector.stale_after_minutes", merged)
        if isinstance(stale, bool) or not isinstance(stale, (int, float)) or stale <= 0:
            raise ConfigError(
                f"inspector.stale_after_minutes must be a positive number, got {stale!r}"
            )

        routes = {str(k): v for k, v in merged["routes"].items()}
        for name, template in routes.items():
            if not isinstance(template, str) or "{id}" not in template:
                raise ConfigError(
                    f"routes.{name} must be a string containing '{{id}}', got {template!r}"
                )

        raw_defaults = merged["reconciler"]["defaults"]
        known = set(ReconcilerDefaults.__dataclass_fields__)
        unknown = set(raw_defaults) - known
        if unknown:
            raise ConfigError(f"Unknown reconciler.defaults keys: {sorted(unknown)}")
        defaults = ReconcilerDefaults(**raw_defaults)
        if isinstance(defaults.module_duration, bool) or not isinstance(defaults.module_duration, int) \
                or defaults.module_duration < 0:
            raise ConfigError("reconciler.defaults.module_duration must be a non-negative integer")

        return cls(
            stale_after_minutes=float(stale),
            routes=routes,
            repair_enabled=bool(merged["reconciler"].get("repair_enabled", True)),
            defaults=defaults,
            log_level=str(get_config_value("logging.level", merged, "INFO")),
            env=str(merged.get("_active_env", "default")),
        )

    def route_template(self, route: str) -> str:
        try:
            return self.routes[route]
        except KeyError:
            raise ConfigError(f"No path template configured for route {route!r}") from None


def load_engine_config(
    base_path: str = DEFAULT_CONFIG_PATH,
    env: str = "",
    config_dir: str = "",
    include_env_vars: bool = True,
) -> EngineConfig:
    """Load, merge and validate configuration in one call."""
    raw = load_config(base_path, env=env, config_dir=config_dir,
                      include_env_vars=include_env_vars)
    return EngineConfig.from_dict(raw)
