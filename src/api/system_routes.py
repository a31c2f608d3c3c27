"""
System health API routes
"""

from fastapi import APIRouter
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)


def create_system_routes(coordinator, monitor=None):
    """Create liveness routes for this service"""
    router = APIRouter(tags=["system"])

    @router.get("/health")
    async def health():
        """Liveness of the discovery service itself, not the chamber backend"""
        return {
            "status": "healthy",
            "discovery_state": coordinator.state.value,
            "backend_connected": monitor.connected if monitor else None,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return router
