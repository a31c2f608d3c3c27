"""
Discovery Server - orchestrates discovery, connection monitoring and the status API
"""

import asyncio
import logging
from typing import Dict, List, Optional
import uvicorn

from config_loader import load_config, setup_logging, get_discovery_settings
from discovery import DiscoveryCoordinator, DiscoveryEvent, DiscoveryEventType
from discovery.events import EventHistory
from backend_client import BackendClient
from services.connection_monitor import ConnectionMonitor
from api.main_api import DiscoveryAPI

logger = logging.getLogger(__name__)


class DiscoveryServer:
    """Wires the coordinator, its consumers and the status API together"""

    def __init__(self, config_path: str = "config/config.yaml", config: Optional[Dict] = None):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config)

        self.coordinator = DiscoveryCoordinator(self.config)
        self.backend_client = BackendClient(self.coordinator, self.config)
        self.monitor = ConnectionMonitor(self.backend_client, self.config)

        self.event_history = EventHistory()
        self._unsubscribers = [
            self.coordinator.events.subscribe(self.event_history),
            self.coordinator.events.subscribe(self._log_event)
        ]

        self.api = DiscoveryAPI(
            self.coordinator, self.backend_client, self.config,
            monitor=self.monitor, event_history=self.event_history
        )

        self.running = False
        self.tasks: List[asyncio.Task] = []
        self._api_server: Optional[uvicorn.Server] = None

    async def start(self):
        """Run initial discovery, start monitoring, then serve the API"""
        logger.info("Starting Elixir backend discovery service...")
        logger.info(f"Discovery settings: {get_discovery_settings(self.config)}")

        try:
            result = await self.coordinator.discover()
            logger.info(f"Initial discovery: API {result.api_address}, WS {result.stream_address}")

            self.running = True
            self.tasks = [asyncio.create_task(self.monitor.run())]
            logger.info(f"Background services started ({len(self.tasks)} tasks)")

            await self._start_api_server()

        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def stop(self):
        """Stop background tasks and drop event subscriptions"""
        logger.info("Stopping server...")
        self.running = False
        if self._api_server is not None:
            self._api_server.should_exit = True

        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        logger.info("Server stopped")

    def _log_event(self, event: DiscoveryEvent):
        if event.type == DiscoveryEventType.PROGRESS:
            if event.tested % 50 == 0 or event.tested == event.total:
                logger.debug(f"Discovery progress: {event.tested}/{event.total} ({event.candidate})")
        else:
            logger.debug(f"Discovery event: {event.type.value}")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        config = uvicorn.Config(
            self.api.app,
            host=self.config['api']['host'],
            port=self.config['api']['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        server = uvicorn.Server(config)
        self._api_server = server

        logger.info(f"Starting status API on {self.config['api']['host']}:{self.config['api']['port']}")
        logger.info(f"API documentation: http://localhost:{self.config['api']['port']}/docs")

        await server.serve()
