"""CLI entry point for the nostrcord bridge.

Loads the optional YAML configuration, fills the rest from environment
variables, and runs the [Bridge][nostrcord.services.bridge.Bridge] until a
shutdown signal is received, with a Prometheus metrics server when enabled.

Examples:
    ```bash
    python -m nostrcord
    python -m nostrcord --config config/bridge.yaml --log-level DEBUG
    ```
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nostrcord.core import ConfigurationError, start_metrics_server
from nostrcord.core.logger import Logger, StructuredFormatter
from nostrcord.core.yaml import load_yaml
from nostrcord.services.bridge import Bridge


DEFAULT_CONFIG = Path("config") / "bridge.yaml"

logger = Logger("cli")


def build_bridge(config_dict: dict[str, Any]) -> Bridge:
    """Validate ``config_dict`` (plus environment) into a ready ``Bridge``.

    Raises:
        ConfigurationError: If a required setting is missing or invalid.
    """
    try:
        return Bridge.from_dict(config_dict)
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(str(e)) from e


async def run_bridge(bridge: Bridge) -> int:
    """Run ``bridge`` until shutdown, with metrics and signal handling.

    Returns:
        Exit code: 0 for a clean shutdown, 1 for failure.
    """
    metrics_config = bridge.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        bridge.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with bridge:
            clean = await bridge.run_forever()
        if not clean:
            logger.error("bridge_failed", error="max consecutive failures reached")
            return 1
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary
        logger.error("bridge_failed", error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="nostrcord",
        description="Discord <-> Nostr private message bridge",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"Bridge config path (default: {DEFAULT_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that output
    from ``Logger``, plain ``logging.getLogger()`` calls, discord.py and
    nostr-sdk shares one ``level name message key=value ...`` layout.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def load_config_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(path)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the bridge, and run it."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        bridge = build_bridge(load_config_dict(args.config))
    except ConfigurationError as e:
        logger.error("configuration_invalid", error=str(e))
        return 1

    try:
        return await run_bridge(bridge)
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
