"""
Discovery coordinator - owns the resolved backend endpoint for the process
States: idle -> discovering -> resolved, back to idle only through reset()
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .cache import DiscoveryCache
from .candidates import CandidateGenerator
from .events import DiscoveryEvents
from .local_address import LocalAddressInferrer, StaticAddressInferrer
from .models import DiscoveryEvent, DiscoveryEventType, DiscoveryResult, DiscoveryState
from .prober import BatchProber
from .verification import VerificationClient

logger = logging.getLogger(__name__)


class DiscoveryCoordinator:
    """
    Single owner of discovery state.

    discover() is idempotent: it returns the resolved pair, starting a scan
    only when idle. Concurrent callers during a scan all await the same task.
    reset() clears the resolved pair and the cache but never cancels a scan
    already running; that scan still resolves when it finishes.
    """

    def __init__(self, config: Dict, cache: Optional[DiscoveryCache] = None,
                 verifier: Optional[VerificationClient] = None,
                 inferrer=None, events: Optional[DiscoveryEvents] = None):
        backend = config.get('backend', {})
        discovery = config.get('discovery', {})
        verification = config.get('verification', {})

        self.enabled = discovery.get('enabled', True)
        self.default_api_url = backend.get('api_base_url', 'http://localhost:8000')
        self.fallback_urls = list(discovery.get('fallback_urls', []))

        if cache is None:
            # an injected verifier keeps its own cache; reset() must clear that one
            cache = getattr(verifier, 'cache', None)
        self.cache = cache if cache is not None else DiscoveryCache(discovery.get('cache_ttl_seconds', 300))
        if verifier is None:
            verifier = VerificationClient(verification, self.cache, discovery.get('request_timeout', 2.0))
        self.verifier = verifier
        self.generator = CandidateGenerator({**discovery, 'default_port': backend.get('default_port', 8000)})
        self.prober = BatchProber(self.verifier.verify, discovery.get('batch_size', 20))
        self.inferrer = inferrer if inferrer is not None else self._build_inferrer(discovery)
        self.events = events if events is not None else DiscoveryEvents()
        self.override = self._override_result(backend)

        self._resolved: Optional[DiscoveryResult] = None
        self._in_flight: Optional[asyncio.Task] = None

        # Last run statistics
        self.last_discovery: Optional[datetime] = None
        self.last_duration: Optional[float] = None
        self.candidates_tested = 0
        self.candidates_total = 0
        self.used_fallback = False
        self.discovery_count = 0

    @staticmethod
    def _build_inferrer(discovery: Dict):
        if discovery.get('local_address'):
            return StaticAddressInferrer(discovery['local_address'])
        return LocalAddressInferrer(
            rendezvous_host=discovery.get('rendezvous_host', 'stun.l.google.com'),
            rendezvous_port=discovery.get('rendezvous_port', 19302),
            timeout=discovery.get('local_address_timeout', 3.0)
        )

    @staticmethod
    def _override_result(backend: Dict) -> Optional[DiscoveryResult]:
        api_url = backend.get('override_api_url')
        if not api_url:
            return None
        result = DiscoveryResult.from_candidate(api_url)
        ws_url = backend.get('override_ws_url')
        if ws_url:
            result = DiscoveryResult(api_address=result.api_address, stream_address=ws_url.rstrip('/'))
        return result

    # ================== PUBLIC OPERATIONS ==================

    @property
    def state(self) -> DiscoveryState:
        if self._resolved is not None:
            return DiscoveryState.RESOLVED
        if self._in_flight is not None:
            return DiscoveryState.DISCOVERING
        return DiscoveryState.IDLE

    async def discover(self) -> DiscoveryResult:
        if self._resolved is not None:
            return self._resolved

        if self._in_flight is None:
            task = asyncio.create_task(self._run_discovery())
            task.add_done_callback(self._clear_in_flight)
            self._in_flight = task

        # Shielded so a cancelled caller does not cancel the scan others are waiting on
        return await asyncio.shield(self._in_flight)

    def reset(self):
        """Forget the resolved endpoint and every cached verification"""
        logger.info("Discovery reset requested")
        self._resolved = None
        self.cache.clear()

    def current_result(self) -> Optional[DiscoveryResult]:
        return self._resolved

    def get_status(self) -> Dict[str, Any]:
        """Discovery status for the connection indicator"""
        cache_stats = self.cache.get_stats()
        return {
            "state": self.state.value,
            "api_url": self._resolved.api_address if self._resolved else None,
            "ws_url": self._resolved.stream_address if self._resolved else None,
            "used_fallback": self.used_fallback,
            "last_discovery": self.last_discovery.isoformat() if self.last_discovery else None,
            "last_duration_seconds": self.last_duration,
            "candidates_tested": self.candidates_tested,
            "candidates_total": self.candidates_total,
            "discovery_count": self.discovery_count,
            "cache_size": cache_stats['size'],
            "cache_valid": cache_stats['valid'],
            "settings": {
                "enabled": self.enabled,
                "batch_size": self.prober.batch_size,
                "quick_scan": self.generator.quick_scan,
                "network_prefixes": self.generator.network_prefixes,
                "request_timeout": getattr(self.verifier, 'request_timeout', None),
                "override_configured": self.override is not None
            }
        }

    # ================== DISCOVERY RUN ==================

    def _clear_in_flight(self, task: asyncio.Task):
        if self._in_flight is task:
            self._in_flight = None

    async def _run_discovery(self) -> DiscoveryResult:
        logger.info("[LAUNCH] Starting backend discovery...")
        start_time = time.time()
        self.candidates_tested = 0
        self.candidates_total = 0
        await self.events.emit(DiscoveryEvent(DiscoveryEventType.STARTED))

        try:
            result, verified = await self._resolve()
        except Exception as e:
            logger.error(f"Backend discovery failed: {e}")
            result, verified = self._fallback_result(), False

        self.used_fallback = not verified
        self.last_duration = time.time() - start_time
        self.last_discovery = datetime.now(timezone.utc)
        self.discovery_count += 1
        self._resolved = result

        if verified:
            logger.info(f"[PASS] Backend resolved: API {result.api_address}, WS {result.stream_address} "
                        f"({self.last_duration:.1f}s)")
            await self.events.emit(DiscoveryEvent(
                DiscoveryEventType.COMPLETED, result=result,
                tested=self.candidates_tested, total=self.candidates_total
            ))
        else:
            logger.warning(f"[FAIL] No backend verified, using fallback {result.api_address}")
            await self.events.emit(DiscoveryEvent(
                DiscoveryEventType.FAILED, result=result,
                tested=self.candidates_tested, total=self.candidates_total,
                message="No backend verified; using fallback address"
            ))
        return result

    async def _resolve(self):
        """Returns (result, verified)"""
        if not self.enabled:
            logger.info("Auto-discovery disabled, using configured address")
            return self.override or DiscoveryResult.from_candidate(self.default_api_url), True

        if self.override is not None:
            self.candidates_total = 1
            verified = await self.verifier.verify(self.override.api_address)
            self.candidates_tested = 1
            if verified:
                logger.info(f"Configured backend {self.override.api_address} verified")
                return self.override, True
            logger.warning(f"Configured backend {self.override.api_address} failed verification, scanning network")

        try:
            local_address = await self.inferrer.infer_local_address()
        except Exception as e:
            logger.warning(f"Local address inference failed: {e}")
            local_address = None

        candidates = self.generator.generate(local_address)
        logger.info(f"Probing {len(candidates)} candidates in batches of {self.prober.batch_size}")

        already_tested = self.candidates_tested
        outcome = await self.prober.probe(candidates, callback=self._on_progress)
        self.candidates_tested = already_tested + outcome.candidates_tested
        self.candidates_total = already_tested + outcome.candidates_total

        if outcome.winner:
            return DiscoveryResult.from_candidate(outcome.winner), True
        return self._fallback_result(), False

    async def _on_progress(self, candidate: str, tested: int, total: int):
        await self.events.emit(DiscoveryEvent(
            DiscoveryEventType.PROGRESS, candidate=candidate, tested=tested, total=total
        ))

    def _fallback_result(self) -> DiscoveryResult:
        if self.fallback_urls:
            return DiscoveryResult.from_candidate(self.fallback_urls[0])
        return DiscoveryResult.from_candidate(self.default_api_url)
