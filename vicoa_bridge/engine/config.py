"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via VICOA_* env vars,
``OPENCODE_SERVER_URL``, or a YAML file (see ``yaml_config``).
"""
from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field

from vicoa_bridge.engine.errors import ConfigError
from vicoa_bridge.shared.formatters.parts import REASONING_LIMIT
from vicoa_bridge.shared.registries import (
    DEFAULT_ECHO_BUFFER_SIZE,
    DEFAULT_ECHO_EVICT_BATCH,
    DEFAULT_SENT_MESSAGE_LIMIT,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.vicoa.ai:8443"
DEFAULT_OPENCODE_URL = "http://127.0.0.1:4096"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(name, f"expected a number, got {raw!r}") from exc


@dataclass
class BridgeConfig:
    """Bridge configuration."""

    # Dashboard
    api_key: str | None = field(default=None, repr=False)
    base_url: str = DEFAULT_BASE_URL
    agent_instance_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    agent_name: str = "OpenCode"

    # Terminal
    opencode_url: str = DEFAULT_OPENCODE_URL
    project_dir: str = field(default_factory=os.getcwd)

    # Timing
    poll_interval_seconds: float = 1.0
    http_timeout_seconds: float = 30.0
    # Pause before re-opening the terminal event stream after it drops.
    reconnect_delay_seconds: float = 2.0

    # Registry limits
    echo_buffer_size: int = DEFAULT_ECHO_BUFFER_SIZE
    echo_evict_batch: int = DEFAULT_ECHO_EVICT_BATCH
    sent_message_limit: int = DEFAULT_SENT_MESSAGE_LIMIT
    reasoning_limit: int = REASONING_LIMIT

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> BridgeConfig:
        """Load configuration from VICOA_* environment variables."""
        vicoa_vars = sorted(
            k for k in os.environ
            if k.startswith("VICOA_") or k == "OPENCODE_SERVER_URL"
        )
        if vicoa_vars:
            # Names only: VICOA_API_KEY must never reach the log.
            logger.info("BridgeConfig.from_env: env overrides: %s", ", ".join(vicoa_vars))
        else:
            logger.debug("BridgeConfig.from_env: no VICOA_* env vars set, using defaults")

        config = cls(
            api_key=(os.getenv("VICOA_API_KEY") or "").strip() or None,
            base_url=(
                os.getenv("VICOA_API_URL")
                or os.getenv("VICOA_BASE_URL")
                or cls.base_url
            ),
            agent_instance_id=(
                os.getenv("VICOA_AGENT_INSTANCE_ID") or str(uuid.uuid4())
            ),
            agent_name=os.getenv("VICOA_AGENT_NAME", cls.agent_name),
            opencode_url=os.getenv("OPENCODE_SERVER_URL", cls.opencode_url),
            project_dir=os.getenv("VICOA_PROJECT_DIR") or os.getcwd(),
            poll_interval_seconds=_env_float(
                "VICOA_POLL_INTERVAL", cls.poll_interval_seconds
            ),
            http_timeout_seconds=_env_float(
                "VICOA_HTTP_TIMEOUT", cls.http_timeout_seconds
            ),
            log_level=os.getenv("VICOA_LOG_LEVEL", cls.log_level),
        )
        logger.info(
            "BridgeConfig.from_env: base_url=%s opencode_url=%s instance=%s poll=%.1fs",
            config.base_url, config.opencode_url,
            config.agent_instance_id, config.poll_interval_seconds,
        )
        return config
