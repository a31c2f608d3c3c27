"""
Backend connection monitor
Periodically health-checks the resolved backend and re-runs discovery after repeated failures
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from backend_client import BackendClient

logger = logging.getLogger(__name__)


class ConnectionMonitor:
    """Tracks whether the resolved backend answers its health check"""

    def __init__(self, backend_client: BackendClient, config: Dict):
        monitoring = config.get('monitoring', {})
        self.backend_client = backend_client
        self.check_interval = monitoring.get('connection_check_interval_seconds', 10)
        self.failures_before_rediscovery = monitoring.get('failures_before_rediscovery', 3)

        self.connected = False
        self.last_check: Optional[datetime] = None
        self.consecutive_failures = 0
        self.rediscovery_count = 0

    async def check_now(self) -> bool:
        """Single connectivity check; re-discovers after too many consecutive failures"""
        was_connected = self.connected
        self.connected = await self.backend_client.test_connection()
        self.last_check = datetime.now(timezone.utc)

        if self.connected:
            if not was_connected:
                logger.info("[OK] Backend connection established")
            self.consecutive_failures = 0
            return True

        self.consecutive_failures += 1
        if was_connected:
            logger.warning("Backend connection lost")

        if self.consecutive_failures >= self.failures_before_rediscovery:
            logger.warning(f"Backend unreachable for {self.consecutive_failures} checks - retrying discovery")
            self.consecutive_failures = 0
            self.rediscovery_count += 1
            await self.backend_client.reconnect_with_discovery()
            self.connected = await self.backend_client.test_connection()
        return self.connected

    async def run(self):
        """Monitoring loop; exits on cancellation"""
        logger.info(f"Connection monitor started (every {self.check_interval}s)")
        while True:
            try:
                await self.check_now()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Connection check failed: {e}")
            await asyncio.sleep(self.check_interval)

    def get_status(self) -> Dict:
        return {
            "connected": self.connected,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "consecutive_failures": self.consecutive_failures,
            "rediscovery_count": self.rediscovery_count
        }
