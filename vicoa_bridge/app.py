"""vicoa-bridge CLI: main application entry point."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from vicoa_bridge import __version__
from vicoa_bridge.adapters.orchestrator import BridgeOrchestrator
from vicoa_bridge.adapters.remote_client import VicoaClient
from vicoa_bridge.adapters.terminal_client import OpenCodeClient
from vicoa_bridge.engine.config import BridgeConfig
from vicoa_bridge.engine.credentials import credentials_path, get_api_key
from vicoa_bridge.engine.errors import ConfigError, CredentialsError, RegistrationError
from vicoa_bridge.engine.yaml_config import load_yaml_config

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"


def default_log_file() -> Path:
    return Path.home() / ".vicoa" / "logs" / "opencode-bridge.log"


def configure_logging(level: str, log_file: Path | None) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(LOG_FORMAT)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    # aiohttp access/client chatter is only useful when debugging transport.
    if root.level > logging.DEBUG:
        logging.getLogger("aiohttp").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vicoa-bridge",
        description="Bridge an OpenCode terminal session with the Vicoa dashboard",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file with vicoa/opencode/bridge sections",
    )
    parser.add_argument(
        "--opencode-url", metavar="URL",
        help="OpenCode server URL (default: $OPENCODE_SERVER_URL or http://127.0.0.1:4096)",
    )
    parser.add_argument(
        "--project-dir", metavar="DIR",
        help="Project directory reported to the dashboard (default: cwd)",
    )
    parser.add_argument(
        "--poll-interval", metavar="SECONDS", type=float,
        help="Dashboard polling interval in seconds (default: 1.0)",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Log at DEBUG level",
    )
    parser.add_argument(
        "--no-log-file", action="store_true",
        help="Log to stderr only",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> BridgeConfig:
    """Environment, then YAML file, then command-line flags."""
    config = BridgeConfig.from_env()
    if args.config:
        config = load_yaml_config(args.config, base=config)

    overrides: dict[str, object] = {}
    if args.opencode_url:
        overrides["opencode_url"] = args.opencode_url
    if args.project_dir:
        overrides["project_dir"] = str(Path(args.project_dir).expanduser().resolve())
    if args.poll_interval is not None:
        overrides["poll_interval_seconds"] = args.poll_interval
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    if not config.api_key:
        overrides["api_key"] = get_api_key()
    return dataclasses.replace(config, **overrides)


async def run_bridge(config: BridgeConfig) -> None:
    remote = VicoaClient(
        api_key=config.api_key or "",
        base_url=config.base_url,
        agent_instance_id=config.agent_instance_id,
        agent_type=config.agent_name,
        timeout_seconds=config.http_timeout_seconds,
    )
    terminal = OpenCodeClient(config.opencode_url, timeout_seconds=config.http_timeout_seconds)
    bridge = BridgeOrchestrator(config, remote, terminal)
    try:
        await bridge.run()
    finally:
        await bridge.shutdown()


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else os.getenv("VICOA_LOG_LEVEL", "INFO")
    log_file = None if args.no_log_file else default_log_file()
    configure_logging(log_level, log_file)

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(2)
    logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

    if not config.api_key:
        logger.error("%s", CredentialsError(str(credentials_path())))
        sys.exit(1)

    logger.info(
        "Starting vicoa-bridge %s instance=%s opencode=%s project=%s log=%s",
        __version__,
        config.agent_instance_id,
        config.opencode_url,
        config.project_dir,
        log_file or "<stderr>",
    )
    try:
        asyncio.run(run_bridge(config))
    except RegistrationError as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted; session ended")
    sys.exit(0)


if __name__ == "__main__":
    main()
