"""Main entry point for the panel bridge."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from panelbridge.core.config import load_config
from panelbridge.core.context import BridgeContext
from panelbridge.utils.panel_server import PanelServer

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: str = None):
    handlers = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


async def main(argv=None):
    """Load config, build the bridge context and serve the panel."""
    parser = argparse.ArgumentParser(description="Panel bridge server")
    parser.add_argument("--env-file", default=".env")
    parser.add_argument("--config", default="config/bridge.yaml")
    parser.add_argument("--dev", action="store_true", help="Allow the placeholder panel secret")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env_file, args.config, allow_default_secret=args.dev)
    except ValueError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(config.log_level, config.log_file)
    logger.info("Loading configuration...")
    logger.info(f"Universe ID  : {config.universe_id or 'NOT CONFIGURED'}")
    logger.info(f"Open Cloud key: {'configured' if config.roblox_api_key else 'NOT CONFIGURED'}")
    logger.info(f"Command timeout: {config.command_timeout}s, publish attempts: {config.publish_attempts}")
    logger.debug(f"Effective config: {config.as_dict()}")

    ctx = BridgeContext(config)
    ctx.bootstrap_owner()

    server = PanelServer(ctx, config.host, config.port)
    await server.start()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    run()
