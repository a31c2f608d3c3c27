# HTTP Helper for backend connections
# Session configuration for discovery probes and for talking to the resolved chamber backend

import aiohttp
import logging

logger = logging.getLogger(__name__)

STREAM_SCHEMES = {
    'http': 'ws',
    'https': 'wss',
}


def create_probe_session(timeout_seconds: float = 2) -> aiohttp.ClientSession:
    """
    Create aiohttp session for a single discovery probe (always plain HTTP)
    Every request made through it is bounded by timeout_seconds
    """
    connector = aiohttp.TCPConnector(
        limit_per_host=2,           # Health check + one secondary path
        ssl=False,                  # Local controllers are HTTP only
        force_close=True,           # No keep-alive between candidates
        enable_cleanup_closed=True
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )


def create_backend_session(timeout_seconds: float = 5) -> aiohttp.ClientSession:
    """
    Create aiohttp session for requests against the resolved backend
    Keeps connections alive since all calls go to the same host
    """
    connector = aiohttp.TCPConnector(
        limit=20,
        limit_per_host=5,
        force_close=False,
        enable_cleanup_closed=True
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )


def stream_address_for(api_address: str) -> str:
    """Swap the request/response scheme for its push counterpart (http -> ws, https -> wss)"""
    scheme, sep, rest = api_address.partition('://')
    if not sep:
        return f"ws://{api_address}"
    return f"{STREAM_SCHEMES.get(scheme.lower(), scheme)}://{rest}"


def join_url(base_url: str, endpoint: str) -> str:
    """Join base address and endpoint path with exactly one slash between them"""
    base = base_url.rstrip('/')
    path = endpoint if endpoint.startswith('/') else f"/{endpoint}"
    return f"{base}{path}"
