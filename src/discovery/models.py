"""
Discovery data structures and models
"""

import time
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from http_helper import stream_address_for


class DiscoveryState(Enum):
    """Coordinator state"""
    IDLE = "idle"
    DISCOVERING = "discovering"
    RESOLVED = "resolved"


class DiscoveryEventType(Enum):
    """Events published to subscribers (UI layer)"""
    STARTED = "discovery-started"
    PROGRESS = "discovery-progress"
    COMPLETED = "discovery-completed"
    FAILED = "discovery-failed"


@dataclass(frozen=True)
class DiscoveryResult:
    """Resolved endpoint pair, both derived from the same verified candidate"""
    api_address: str
    stream_address: str

    @classmethod
    def from_candidate(cls, candidate: str) -> 'DiscoveryResult':
        api_address = candidate.rstrip('/')
        return cls(api_address=api_address, stream_address=stream_address_for(api_address))

    def to_dict(self) -> Dict[str, str]:
        return {"api_url": self.api_address, "ws_url": self.stream_address}


@dataclass
class CacheEntry:
    """Outcome of one verification attempt"""
    valid: bool
    checked_at: float

    def is_expired(self, ttl_seconds: float, now: Optional[float] = None) -> bool:
        if now is None:
            now = time.monotonic()
        return now - self.checked_at > ttl_seconds


@dataclass
class DiscoveryEvent:
    """Single event emitted by the coordinator"""
    type: DiscoveryEventType
    candidate: Optional[str] = None
    tested: int = 0
    total: int = 0
    result: Optional[DiscoveryResult] = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "candidate": self.candidate,
            "tested": self.tested,
            "total": self.total,
            "result": self.result.to_dict() if self.result else None,
            "message": self.message,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class ProbeOutcome:
    """Summary of a full prober run"""
    winner: Optional[str]
    candidates_tested: int
    candidates_total: int
    duration_seconds: float
