"""``magnetarr`` command: load configuration, configure logging, serve."""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any, get_args

import structlog
import uvicorn
import yaml

from magnetarr.infrastructure.config import load_config
from magnetarr.infrastructure.config.schema import LogFormat, LogLevel
from magnetarr.infrastructure.logging.setup import configure_logging
from magnetarr.interfaces.main import build_app

log = structlog.get_logger(__name__)

# argparse dest -> flat config key understood by load_config
_OVERRIDE_FLAGS = ("base_url", "addon_name", "log_level", "log_format")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="magnetarr",
        description="Stremio addon serving debrid-cached torrent streams.",
    )

    server = parser.add_argument_group("server")
    server.add_argument("--host", help="Bind address (default: $HOST or 0.0.0.0).")
    server.add_argument("--port", type=int, help="Bind port (default: $PORT or 7000).")

    settings = parser.add_argument_group("configuration")
    settings.add_argument("--config", type=Path, metavar="YAML", help="YAML config file.")
    settings.add_argument(
        "--dotenv", type=Path, metavar="FILE", help=".env file with MAGNETARR_* variables."
    )
    settings.add_argument("--base-url", help="Public URL used to build play links.")
    settings.add_argument("--addon-name", help="Addon name shown in Stremio.")
    settings.add_argument("--log-level", choices=get_args(LogLevel))
    settings.add_argument("--log-format", choices=get_args(LogFormat))

    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the merged configuration (API keys omitted) and exit.",
    )
    return parser


def build_cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Flat overrides for load_config; flags that were not given are left out."""
    return {
        key: getattr(args, key)
        for key in _OVERRIDE_FLAGS
        if getattr(args, key) is not None
    }


def start(argv: Sequence[str] | None = None) -> int:
    """Process entrypoint. Configuration is loaded exactly once."""
    args = build_parser().parse_args(argv)

    config = load_config(
        config_path=args.config,
        dotenv_path=args.dotenv,
        cli_overrides=build_cli_overrides(args),
    )
    if args.print_config:
        yaml.safe_dump(config.to_sectioned_dict(), sys.stdout, sort_keys=False)
        return 0

    configure_logging(config)
    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = args.port or int(os.getenv("PORT", "7000"))
    log.info(
        "magnetarr_starting",
        host=host,
        port=port,
        environment=config.environment,
        base_url=config.stremio.base_url,
        indexers=[i.name for i in config.indexers if i.enabled],
    )

    # Logging is already routed through structlog; keep uvicorn's hands off.
    uvicorn.run(build_app(config), host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(start())
