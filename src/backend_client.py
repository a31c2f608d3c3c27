"""
Backend client - consumer of the resolved endpoint
Builds API/stream URLs from the coordinator's result and runs requests with retry
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from discovery import DiscoveryCoordinator, DiscoveryResult
from http_helper import create_backend_session, join_url

logger = logging.getLogger(__name__)


class BackendRequestError(Exception):
    """Request to the resolved backend failed after all attempts"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class BackendClient:
    """HTTP access to the chamber backend through the discovery coordinator"""

    def __init__(self, coordinator: DiscoveryCoordinator, config: Dict):
        self.coordinator = coordinator
        http_config = config.get('http', {})
        self.timeout = http_config.get('timeout', 5.0)
        self.retry_attempts = max(1, http_config.get('retry_attempts', 3))
        self.retry_delay = http_config.get('retry_delay', 1.0)
        self.health_path = config.get('verification', {}).get('health_path', '/health')
        self.default_result = DiscoveryResult.from_candidate(
            config.get('backend', {}).get('api_base_url', 'http://localhost:8000')
        )

    # ================== URL BUILDING ==================

    async def build_api_url(self, endpoint: str) -> str:
        result = await self.coordinator.discover()
        return join_url(result.api_address, endpoint)

    async def build_ws_url(self, endpoint: str) -> str:
        result = await self.coordinator.discover()
        return join_url(result.stream_address, endpoint)

    def build_api_url_sync(self, endpoint: str) -> str:
        """Non-blocking variant - configured default until discovery has resolved"""
        result = self.coordinator.current_result() or self.default_result
        return join_url(result.api_address, endpoint)

    def build_ws_url_sync(self, endpoint: str) -> str:
        result = self.coordinator.current_result() or self.default_result
        return join_url(result.stream_address, endpoint)

    # ================== REQUESTS ==================

    async def test_connection(self) -> bool:
        """Health check against the resolved backend; never raises"""
        try:
            url = await self.build_api_url(self.health_path)
            async with create_backend_session(self.timeout) as session:
                async with session.get(url) as response:
                    return 200 <= response.status < 300
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Connection test failed: {e}")
            return False

    async def request(self, method: str, endpoint: str, json: Optional[Dict] = None) -> Any:
        """JSON request with retry and exponential backoff; 4xx responses are not retried"""
        url = await self.build_api_url(endpoint)
        last_error = None

        async with create_backend_session(self.timeout) as session:
            for attempt in range(self.retry_attempts):
                try:
                    async with session.request(method, url, json=json) as response:
                        if 200 <= response.status < 300:
                            if attempt > 0:
                                logger.info(f"{method} {endpoint} succeeded on attempt {attempt + 1}")
                            return await response.json(content_type=None)

                        error_text = await response.text()
                        last_error = BackendRequestError(
                            f"HTTP {response.status} for {method} {endpoint}: {error_text[:100]}",
                            status=response.status
                        )
                        if 400 <= response.status < 500:
                            raise last_error
                        logger.warning(f"Backend error {response.status} for {method} {endpoint} (attempt {attempt + 1})")

                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    last_error = BackendRequestError(f"{method} {endpoint} failed: {e}")
                    logger.warning(f"Backend request {method} {endpoint} failed (attempt {attempt + 1}): {e}")

                if attempt < self.retry_attempts - 1:
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))

        logger.error(f"{method} {endpoint} failed after {self.retry_attempts} attempts")
        raise last_error

    async def reconnect_with_discovery(self) -> DiscoveryResult:
        logger.info("Manual reconnection with discovery...")
        self.coordinator.reset()
        return await self.coordinator.discover()
