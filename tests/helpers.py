"""
Shared test doubles.
"""
import asyncio

from aiohttp import web


class FakeVerifier:
    """Verifier with scripted outcomes and delays; tracks concurrency"""

    def __init__(self, outcomes=None, delays=None, default=False, errors=None):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.default = default
        self.request_timeout = 2.0
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def verify(self, address):
        self.calls.append(address)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(address, 0))
            if address in self.errors:
                raise self.errors[address]
            return self.outcomes.get(address, self.default)
        finally:
            self.active -= 1


class FailingInferrer:
    async def infer_local_address(self):
        raise RuntimeError("negotiation layer exploded")


def make_config(**sections):
    """Minimal coordinator config; keyword args replace or extend sections"""
    config = {
        "backend": {"default_port": 8000, "api_base_url": "http://localhost:8000"},
        "discovery": {
            "batch_size": 20,
            "network_prefixes": [],
            "host_range": [1, 254],
            "fallback_urls": ["http://192.168.1.100:8000"],
            "cache_ttl_seconds": 300,
        },
        "verification": {"expected_service": "elixir", "required_fields": ["status"]},
        "http": {"timeout": 2.0, "retry_attempts": 3, "retry_delay": 0.01},
    }
    for name, values in sections.items():
        config.setdefault(name, {}).update(values)
    return config


def json_handler(payload, status=200, counter=None, delay=0):
    """aiohttp handler returning a fixed JSON payload"""
    async def handler(request):
        if counter is not None:
            counter.append(request.path)
        if delay:
            await asyncio.sleep(delay)
        return web.json_response(payload, status=status)
    return handler


def text_handler(text, status=200):
    async def handler(request):
        return web.Response(text=text, status=status)
    return handler
