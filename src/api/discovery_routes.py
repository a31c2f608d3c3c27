"""
Discovery status and manual retry API routes
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class DiscoverySettingsResponse(BaseModel):
    enabled: bool
    batch_size: int
    quick_scan: bool
    network_prefixes: List[str]
    request_timeout: Optional[float]
    override_configured: bool


class DiscoveryStatusResponse(BaseModel):
    state: str
    connected: bool
    api_url: Optional[str]
    ws_url: Optional[str]
    used_fallback: bool
    last_discovery: Optional[datetime]
    last_duration_seconds: Optional[float]
    candidates_tested: int
    candidates_total: int
    discovery_count: int
    cache_size: int
    cache_valid: int
    settings: DiscoverySettingsResponse


class DiscoveryResultResponse(BaseModel):
    api_url: str
    ws_url: str
    used_fallback: bool


def create_discovery_routes(coordinator, backend_client, monitor=None, event_history=None):
    """Create discovery routes backing the connection indicator and retry button"""
    router = APIRouter(prefix="/api/discovery", tags=["discovery"])

    def _result_response(result) -> DiscoveryResultResponse:
        return DiscoveryResultResponse(
            api_url=result.api_address,
            ws_url=result.stream_address,
            used_fallback=coordinator.used_fallback
        )

    @router.get("/status", response_model=DiscoveryStatusResponse)
    async def get_discovery_status():
        """Coordinator state plus last connectivity check"""
        try:
            status = coordinator.get_status()
            return DiscoveryStatusResponse(
                connected=monitor.connected if monitor else False,
                **status
            )
        except Exception as e:
            logger.error(f"Error getting discovery status: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/discover", response_model=DiscoveryResultResponse)
    async def discover():
        """Resolve the backend, attaching to a scan already in progress"""
        result = await coordinator.discover()
        return _result_response(result)

    @router.post("/reset", response_model=DiscoveryResultResponse)
    async def reset_and_discover():
        """Forget the current backend and scan again"""
        result = await backend_client.reconnect_with_discovery()
        if monitor:
            await monitor.check_now()
        return _result_response(result)

    @router.get("/events")
    async def get_recent_events():
        """Most recent discovery events, oldest first"""
        events = event_history.recent() if event_history else []
        return {"events": [event.to_dict() for event in events], "count": len(events)}

    return router
