"""Configuration loading & validation.

Precedence (last wins):
    base.yaml -> overrides.local.yaml -> ENV (RELAY__*) -> well-known ENV
    (PORT, GEMINI_MODEL, GEMINI_API_KEY).

Unknown top-level keys are rejected. A missing credential is NOT an error at
load time; it surfaces when a chat request needs the remote model.
"""
from __future__ import annotations

import logging
import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type

import yaml
from chatcore import metrics
from chatcore.errors import validate_error_type
from pydantic import BaseModel, ConfigDict

from .schemas.llm import HistoryConfig, LLMConfig
from .schemas.observability import LoggingConfig
from .schemas.server import ServerConfig

logger = logging.getLogger("gemrelay.config")


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    server: ServerConfig = ServerConfig()
    llm: LLMConfig = LLMConfig()
    history: HistoryConfig = HistoryConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "RELAY__"

# Plain environment names understood for drop-in compatibility with the
# usual `.env` layout: name -> (dotted path, caster)
WELL_KNOWN_ENV: Dict[str, tuple[str, Any]] = {
    "PORT": ("server.port", int),
    "GEMINI_MODEL": ("llm.default_model", str),
    "GEMINI_API_KEY": ("llm.api_key", str),
}

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "server": ServerConfig,
    "llm": LLMConfig,
    "history": HistoryConfig,
    "logging": LoggingConfig,
}


class ConfigError(Exception):
    pass


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _set_path(cfg: Dict[str, Any], path_parts: list[str], value: Any) -> None:
    target = cfg
    for part in path_parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            target[part] = {}
        target = target[part]
    target[path_parts[-1]] = value


def _record_override(dotted_path: str, source: str) -> None:
    metrics.inc("env_override_total", {"path": dotted_path})
    logger.info(
        "config env override path=%s value=*** source=%s",
        dotted_path,
        source,
    )


def _cast(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        leaf = path_parts[-1]
        # credentials and model ids stay strings even when numeric-looking
        cast_val = value if leaf in {"api_key", "default_model"} else _cast(
            value
        )
        _set_path(cfg, path_parts, cast_val)
        _record_override(".".join(path_parts), "env")
    for env_key, (dotted_path, caster) in WELL_KNOWN_ENV.items():
        raw = os.environ.get(env_key)
        if raw is None or raw == "":
            continue
        try:
            cast_val = caster(raw)
        except ValueError as e:
            raise ConfigError(f"{env_key} is not a valid value: {e}") from e
        _set_path(cfg, dotted_path.split("."), cast_val)
        _record_override(dotted_path, env_key)


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("RELAY_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Validate each known section via its schema class.

    Returns dict of validated objects to be attached to AggregatedConfig.
    """
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                metrics.inc(
                    "config_validation_errors_total",
                    {"path": name, "code": "config-invalid"},
                )
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Apply cross-field bounds validation.

    Validations (error -> raise):
      - server.max_body_bytes > 0
    """
    errors: list[tuple[str, str, str]] = []  # (path, code, msg)
    mbb = (raw.get("server") or {}).get("max_body_bytes")
    if mbb is not None and (not isinstance(mbb, int) or mbb <= 0):
        errors.append(
            ("server.max_body_bytes", "config-out-of-range", ">0 required")
        )
    if errors:
        for path, code, _ in errors:
            metrics.inc(
                "config_validation_errors_total",
                {"path": path, "code": code},
            )
            validate_error_type(code)
        details = ", ".join(f"{p}:{c}:{m}" for p, c, m in errors)
        raise ConfigError(f"config validation failed: {details}")


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        _apply_env(merged)
        merged.setdefault("schema_version", 1)
        _normalize_and_validate(merged)
        validated_sub = _validate_sub_schemas(merged)
        try:
            agg = AggregatedConfig.model_validate(
                {k: v for k, v in merged.items() if k not in validated_sub}
            )
        except Exception as e:  # noqa: BLE001
            raise ConfigError(str(e)) from e
        for k, v in validated_sub.items():
            setattr(agg, k, v)
        return agg


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    data = get_config().model_dump()
    if data.get("llm", {}).get("api_key"):
        data["llm"]["api_key"] = "***"
    return data
