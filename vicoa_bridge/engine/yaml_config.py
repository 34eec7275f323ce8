"""YAML configuration loader.

Overlays a YAML file onto a ``BridgeConfig`` built from the environment.
Keys absent from the file keep their env/default values.

Example YAML:
    vicoa:
      base_url: https://api.vicoa.ai:8443
      agent_name: OpenCode
      poll_interval: 1.0
      http_timeout: 30

    opencode:
      url: http://127.0.0.1:4096
      project_dir: ~/projects/app

    bridge:
      echo_buffer_size: 50
      echo_evict_batch: 40
      sent_message_limit: 200
      reasoning_limit: 200
      reconnect_delay_seconds: 2.0
      log_level: DEBUG
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Callable

import yaml

from .config import BridgeConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)


def _positive_int(value: Any) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"must be at least 1, got {number}")
    return number


# section -> yaml key -> (BridgeConfig field, converter)
_SECTIONS: dict[str, dict[str, tuple[str, Callable[[Any], Any]]]] = {
    "vicoa": {
        "api_key": ("api_key", str),
        "base_url": ("base_url", str),
        "agent_instance_id": ("agent_instance_id", str),
        "agent_name": ("agent_name", str),
        "poll_interval": ("poll_interval_seconds", float),
        "http_timeout": ("http_timeout_seconds", float),
    },
    "opencode": {
        "url": ("opencode_url", str),
        "project_dir": ("project_dir", lambda v: str(Path(str(v)).expanduser())),
    },
    "bridge": {
        "echo_buffer_size": ("echo_buffer_size", _positive_int),
        "echo_evict_batch": ("echo_evict_batch", _positive_int),
        "sent_message_limit": ("sent_message_limit", _positive_int),
        "reasoning_limit": ("reasoning_limit", _positive_int),
        "reconnect_delay_seconds": ("reconnect_delay_seconds", float),
        "log_level": ("log_level", str),
    },
}


def _section_overrides(path: Path, name: str, section: Any) -> dict[str, Any]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(str(path), f"section '{name}' must be a mapping")
    known = _SECTIONS[name]
    overrides: dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning(
                "load_yaml_config: ignoring unknown key %s.%s in %s", name, key, path,
            )
            continue
        field_name, convert = known[key]
        try:
            overrides[field_name] = convert(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(str(path), f"{name}.{key}: {exc}") from exc
    return overrides


def load_yaml_config(path: str | Path, base: BridgeConfig | None = None) -> BridgeConfig:
    """Load a YAML config file on top of *base* (default: ``from_env()``)."""
    path = Path(path).expanduser()
    logger.info(
        "load_yaml_config: attempting to load config from %s (exists=%s)",
        path, path.exists(),
    )
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise ConfigError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise ConfigError(str(path), f"YAML parse error: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(str(path), "top level must be a mapping")

    for key in sorted(set(raw) - set(_SECTIONS)):
        logger.warning("load_yaml_config: ignoring unknown section %r in %s", key, path)

    overrides: dict[str, Any] = {}
    for name in _SECTIONS:
        overrides.update(_section_overrides(path, name, raw.get(name)))

    config = base if base is not None else BridgeConfig.from_env()
    logger.info(
        "Parsed YAML config %s: %s",
        path.name, ", ".join(sorted(overrides)) if overrides else "(no overrides)",
    )
    return dataclasses.replace(config, **overrides)
