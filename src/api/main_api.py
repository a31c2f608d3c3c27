"""
Main FastAPI application setup
Local status API for backend discovery: connection indicator and manual retry
"""

from fastapi import FastAPI
from typing import Dict
import logging

from .discovery_routes import create_discovery_routes
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)


class DiscoveryAPI:
    """Local HTTP API exposing discovery state to the dashboard"""

    def __init__(self, coordinator, backend_client, config: Dict, monitor=None, event_history=None):
        self.coordinator = coordinator
        self.backend_client = backend_client
        self.config = config
        self.monitor = monitor
        self.event_history = event_history
        self.app = FastAPI(
            title="Elixir Backend Discovery",
            description="Locates the chamber control server and reports connection status",
            version="1.0.0"
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        discovery_router = create_discovery_routes(
            self.coordinator, self.backend_client, self.monitor, self.event_history
        )
        system_router = create_system_routes(self.coordinator, self.monitor)

        self.app.include_router(discovery_router)
        self.app.include_router(system_router)
