"""Command-line entry point: resolve configuration and serve the upload API."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

import uvicorn

from hotswap.domain.config import (
    DEFAULT_CONFIG_PATH,
    UpgradeConfig,
    apply_cli_overrides,
    apply_env_overrides,
    load_config,
    save_config,
)
from hotswap.domain.errors import ConfigError
from hotswap.utils.logging import configure_root, uvicorn_log_level

from rest_api.app import create_app

LOGGER = logging.getLogger("rest_api")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hotswap-server", description="HTTP program upgrade server")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to the JSON config file")
    parser.add_argument("--port", default="", help="Listen port (overrides config file)")
    parser.add_argument("--host", default="", help="Listen address (overrides config file)")
    parser.add_argument("--target", default="", help="Target directory (overrides config file)")
    parser.add_argument("--service", default="", help="Service name (overrides config file)")
    parser.add_argument(
        "--gen-config",
        action="store_true",
        help="Write the default config file and exit",
    )
    return parser


def resolve_config(args: argparse.Namespace) -> UpgradeConfig:
    """Merge file, environment and command-line settings in that order."""
    config = load_config(args.config)
    config = apply_env_overrides(config)
    return apply_cli_overrides(
        config,
        port=args.port or None,
        target_dir=args.target or None,
        service_name=args.service or None,
        host=args.host or None,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    level = configure_root()
    args = build_parser().parse_args(argv)

    if args.gen_config:
        try:
            save_config(args.config, UpgradeConfig())
        except OSError as exc:
            LOGGER.error("Failed to write default config %s: %s", args.config, exc)
            return 1
        LOGGER.info("Wrote default config to %s", args.config)
        return 0

    try:
        config = resolve_config(args)
    except ConfigError as exc:
        LOGGER.error("Failed to load configuration: %s", exc)
        return 1

    if config.enable_service and hasattr(os, "geteuid") and os.geteuid() != 0:
        LOGGER.warning("Not running as root; controlling system services may fail")

    LOGGER.info("Upgrade server starting")
    LOGGER.info("Config file: %s", args.config)
    LOGGER.info("Listening on http://%s:%d", config.host, config.port)
    LOGGER.info("Target directory: %s", config.target_dir)
    LOGGER.info("Service name: %s", config.service_name)
    LOGGER.info("Backup: %s, service management: %s, cleanup: %s", config.enable_backup, config.enable_service, config.enable_cleanup)

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=uvicorn_log_level(level))
    return 0


if __name__ == "__main__":
    sys.exit(main())
