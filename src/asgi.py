"""
ASGI entry point for uvicorn
This module exposes the FastAPI app for use with uvicorn command line
"""

import asyncio
import logging
import os
from pathlib import Path

from config_loader import load_config, setup_logging
from discovery import DiscoveryCoordinator
from discovery.events import EventHistory
from backend_client import BackendClient
from services.connection_monitor import ConnectionMonitor
from api.main_api import DiscoveryAPI

Path("logs").mkdir(exist_ok=True)

config = load_config(os.environ.get('CONFIG_FILE', 'config/config.yaml'))
setup_logging(config)

logger = logging.getLogger(__name__)

logger.info("Initializing application components...")

coordinator = DiscoveryCoordinator(config)
backend_client = BackendClient(coordinator, config)
monitor = ConnectionMonitor(backend_client, config)
event_history = EventHistory()
coordinator.events.subscribe(event_history)

api = DiscoveryAPI(coordinator, backend_client, config, monitor=monitor, event_history=event_history)

app = api.app

_monitor_task = None

@app.on_event("startup")
async def startup_event():
    """Resolve the backend and start connection monitoring"""
    global _monitor_task
    logger.info("Starting up application...")
    await coordinator.discover()
    _monitor_task = asyncio.create_task(monitor.run())
    logger.info("Connection monitor started")

@app.on_event("shutdown")
async def shutdown_event():
    """Stop connection monitoring"""
    logger.info("Shutting down application...")
    if _monitor_task:
        _monitor_task.cancel()
        await asyncio.gather(_monitor_task, return_exceptions=True)
    logger.info("Application shut down complete")

logger.info("ASGI app ready for uvicorn")
