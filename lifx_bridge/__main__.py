"""Command line entry point for the LIFX Matter bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import timedelta
from pathlib import Path

import uvicorn

from .bridge import LifxBridge
from .const import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_MATTER_PORT,
    DEFAULT_WEB_PORT,
    POLLING_INTERVAL,
)
from .logs import BufferedLogHandler
from .storage import ConfigStore
from .web import create_app

_LOGGER = logging.getLogger("lifx_bridge")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def build_parser() -> argparse.ArgumentParser:
    """Return the CLI argument parser."""

    parser = argparse.ArgumentParser(description="Expose a LIFX light over Matter")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path.cwd() / DEFAULT_CONFIG_FILE,
        help="Path to the JSON configuration file",
    )
    parser.add_argument("--web-host", default="0.0.0.0")
    parser.add_argument(
        "--web-port", type=int, default=_env_int("WEB_PORT", DEFAULT_WEB_PORT)
    )
    parser.add_argument(
        "--matter-port",
        type=int,
        default=_env_int("MATTER_PORT", DEFAULT_MATTER_PORT),
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=POLLING_INTERVAL.total_seconds(),
        help="Seconds between LIFX status polls",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="INFO",
    )
    return parser


async def _async_run(args: argparse.Namespace, log_handler: BufferedLogHandler) -> None:
    bridge = LifxBridge(
        ConfigStore(args.config),
        log_handler=log_handler,
        matter_port=args.matter_port,
        poll_interval=timedelta(seconds=args.poll_interval),
    )
    await bridge.async_start()
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(bridge),
            host=args.web_host,
            port=args.web_port,
            log_config=None,
        )
    )
    _LOGGER.info("Web server listening on http://localhost:%s", args.web_port)
    try:
        await server.serve()
    finally:
        await bridge.async_stop()


def main(argv: list[str] | None = None) -> int:
    """Run the bridge until interrupted. Returns the exit code."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    log_handler = BufferedLogHandler()
    logging.getLogger().addHandler(log_handler)

    try:
        asyncio.run(_async_run(args, log_handler))
    except KeyboardInterrupt:
        return 0
    except Exception:
        _LOGGER.exception("Application crashed")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI
    raise SystemExit(main())
