"""
Backend verification - confirms a candidate is the chamber control server,
not just any listener on the port
"""

import asyncio
import re
import logging
import aiohttp
from typing import Dict, List, Optional

from http_helper import create_probe_session, join_url
from .cache import DiscoveryCache

logger = logging.getLogger(__name__)


class VerificationClient:
    """
    Grades a candidate against the service identity contract.

    Outcome is a plain bool: an unrelated service on the same port and an
    unreachable address look the same to the caller. Every attempt is
    recorded in the cache, and a fresh cached outcome is returned without
    touching the network.
    """

    def __init__(self, config: Dict, cache: DiscoveryCache, request_timeout: float = 2.0):
        self.cache = cache
        self.request_timeout = request_timeout
        self.health_path = config.get('health_path', '/health')
        self.identity_field = config.get('identity_field', 'service')
        self.expected_service = (config.get('expected_service') or '').lower()
        self.version_field = config.get('version_field', 'version')
        pattern = config.get('expected_version')
        self.version_pattern = re.compile(pattern) if pattern else None
        self.required_fields: List[str] = list(config.get('required_fields', []))
        self.additional_paths: List[str] = list(config.get('additional_paths', []))

    async def verify(self, address: str) -> bool:
        entry = self.cache.get(address)
        if self.cache.is_fresh(entry):
            logger.debug(f"Cached verification for {address}: {'valid' if entry.valid else 'invalid'}")
            return entry.valid

        valid = await self._check(address)
        self.cache.set(address, valid)
        if valid:
            logger.info(f"[OK] Backend verified at {address}")
        return valid

    async def _check(self, address: str) -> bool:
        try:
            async with create_probe_session(self.request_timeout) as session:
                body = await self._get_json(session, join_url(address, self.health_path))
                if body is None or not self.matches_identity(body):
                    return False

                for path in self.additional_paths:
                    if not await self._path_ok(session, join_url(address, path)):
                        logger.debug(f"Secondary check {path} failed for {address}")
                        return False
                return True

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f"Verification failed for {address}: {e}")
            return False

    def matches_identity(self, body) -> bool:
        """Identity, version and required-field checks on a health response body"""
        if not isinstance(body, dict):
            return False

        identity = body.get(self.identity_field)
        if not isinstance(identity, str) or self.expected_service not in identity.lower():
            return False

        if self.version_pattern is not None:
            version = body.get(self.version_field)
            if version is None or not self.version_pattern.search(str(version)):
                return False

        return all(name in body for name in self.required_fields)

    async def _get_json(self, session: aiohttp.ClientSession, url: str) -> Optional[Dict]:
        async with session.get(url) as response:
            if not 200 <= response.status < 300:
                logger.debug(f"HTTP {response.status} for {url}")
                return None
            return await response.json(content_type=None)

    async def _path_ok(self, session: aiohttp.ClientSession, url: str) -> bool:
        async with session.get(url) as response:
            return 200 <= response.status < 300
