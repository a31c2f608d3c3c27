"""
Elixir Backend Discovery Service - Main Entry Point

Resolves the chamber backend, keeps checking it, and serves the status API.
CONFIG_FILE selects the YAML configuration (default config/config.yaml).
"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from services.discovery_server import DiscoveryServer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config/config.yaml'


async def run_service(config_path: str) -> int:
    try:
        server = DiscoveryServer(config_path=config_path)
    except Exception as e:
        logger.error(f"Could not initialize discovery service from {config_path}: {e}")
        return 1

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda s=sig: _request_stop(server, s))
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        await server.start()
    except asyncio.CancelledError:
        logger.info("Service task cancelled")
    except Exception as e:
        logger.error(f"Discovery service failed: {e}")
        return 1
    finally:
        await server.stop()
    return 0


def _request_stop(server: DiscoveryServer, sig: signal.Signals):
    logger.info(f"Received {sig.name}, shutting down...")
    asyncio.ensure_future(server.stop())


if __name__ == "__main__":
    Path("logs").mkdir(exist_ok=True)
    config_path = os.environ.get('CONFIG_FILE', DEFAULT_CONFIG_PATH)

    try:
        sys.exit(asyncio.run(run_service(config_path)))
    except KeyboardInterrupt:
        print("\nDiscovery service stopped by user")
        sys.exit(0)
