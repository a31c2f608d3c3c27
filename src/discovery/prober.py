"""
Batched candidate probing
"""

import asyncio
import time
import logging
from typing import Awaitable, Callable, List, Optional

from .models import ProbeOutcome

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20

# verify(address) -> bool
Verifier = Callable[[str], Awaitable[bool]]
# callback(candidate, tested, total)
ProgressCallback = Callable[[str, int, int], Awaitable[None]]


class BatchProber:
    """
    Runs a verifier over candidates in fixed-size batches.

    Batches run strictly one after another. Inside a batch every candidate is
    probed concurrently and the whole batch is awaited; the first success
    observed wins and no further batch is started.
    """

    def __init__(self, verifier: Verifier, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.verifier = verifier
        self.batch_size = batch_size

    async def probe(self, candidates: List[str],
                    callback: Optional[ProgressCallback] = None) -> ProbeOutcome:
        start_time = time.time()
        total = len(candidates)
        tested = 0
        winners: List[str] = []

        if not candidates:
            return ProbeOutcome(None, 0, 0, 0.0)

        async def probe_one(candidate: str):
            nonlocal tested
            try:
                ok = await self.verifier(candidate)
            except Exception as e:
                logger.debug(f"Probe of {candidate} raised: {e}")
                ok = False
            tested += 1
            if ok:
                winners.append(candidate)
            if callback:
                try:
                    await callback(candidate, tested, total)
                except Exception as e:
                    logger.error(f"Probe progress callback failed: {e}")

        for i in range(0, total, self.batch_size):
            batch = candidates[i:i + self.batch_size]
            await asyncio.gather(*(probe_one(c) for c in batch), return_exceptions=True)

            if winners:
                duration = time.time() - start_time
                logger.info(f"[PASS] Probe found {winners[0]} after {tested}/{total} candidates in {duration:.1f}s")
                return ProbeOutcome(winners[0], tested, total, duration)

            if (i // self.batch_size + 1) % 5 == 0:
                logger.info(f"Probe progress: {tested}/{total} candidates checked")

        duration = time.time() - start_time
        logger.warning(f"[FAIL] No backend among {total} candidates ({duration:.1f}s)")
        return ProbeOutcome(None, tested, total, duration)
