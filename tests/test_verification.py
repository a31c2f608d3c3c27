"""
Tests for backend verification against in-process HTTP servers.

Validates:
- Identity substring match is case-insensitive
- Version pattern and required fields are enforced
- Non-2xx, malformed bodies, timeouts and refused connections all fail
- Secondary verification paths must all answer 2xx
- Outcomes are cached; a fresh cached outcome issues no request
"""
import socket

import pytest

from discovery.cache import DiscoveryCache
from discovery.verification import VerificationClient
from helpers import json_handler, text_handler


def _client(cache=None, timeout=1.0, **overrides):
    config = {
        "health_path": "/health",
        "identity_field": "service",
        "expected_service": "elixir",
        "version_field": "version",
        "expected_version": None,
        "required_fields": ["status"],
        "additional_paths": [],
    }
    config.update(overrides)
    return VerificationClient(config, cache if cache is not None else DiscoveryCache(), request_timeout=timeout)


def _closed_port_address():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"http://127.0.0.1:{port}"


class TestIdentityChecks:

    @pytest.mark.asyncio
    async def test_matching_backend_verifies(self, backend_factory, healthy_payload):
        async with backend_factory({"/health": json_handler(healthy_payload)}) as address:
            client = _client()
            assert await client.verify(address) is True
            assert client.cache.get(address).valid is True

    @pytest.mark.asyncio
    async def test_identity_mismatch_fails(self, backend_factory):
        payload = {"service": "grafana", "status": "ok"}
        async with backend_factory({"/health": json_handler(payload)}) as address:
            client = _client()
            assert await client.verify(address) is False
            assert client.cache.get(address).valid is False

    @pytest.mark.asyncio
    async def test_identity_missing_fails(self, backend_factory):
        async with backend_factory({"/health": json_handler({"status": "ok"})}) as address:
            assert await _client().verify(address) is False

    @pytest.mark.asyncio
    async def test_version_pattern(self, backend_factory, healthy_payload):
        async with backend_factory({"/health": json_handler(healthy_payload)}) as address:
            assert await _client(expected_version=r"^1\.").verify(address) is True
            assert await _client(expected_version=r"^2\.").verify(address) is False

    @pytest.mark.asyncio
    async def test_missing_version_fails_only_with_pattern(self, backend_factory):
        payload = {"service": "elixir", "status": "ok"}
        async with backend_factory({"/health": json_handler(payload)}) as address:
            assert await _client().verify(address) is True
            assert await _client(expected_version=r"\d+").verify(address) is False

    @pytest.mark.asyncio
    async def test_required_field_missing(self, backend_factory, healthy_payload):
        async with backend_factory({"/health": json_handler(healthy_payload)}) as address:
            assert await _client(required_fields=["status", "plc_connected"]).verify(address) is False

    @pytest.mark.asyncio
    async def test_custom_health_path(self, backend_factory, healthy_payload):
        async with backend_factory({"/api/health": json_handler(healthy_payload)}) as address:
            assert await _client(health_path="/api/health").verify(address) is True
            assert await _client().verify(address) is False


class TestTransportFailures:

    @pytest.mark.asyncio
    async def test_non_success_status(self, backend_factory, healthy_payload):
        async with backend_factory({"/health": json_handler(healthy_payload, status=503)}) as address:
            assert await _client().verify(address) is False

    @pytest.mark.asyncio
    async def test_malformed_body(self, backend_factory):
        async with backend_factory({"/health": text_handler("<html>router login</html>")}) as address:
            assert await _client().verify(address) is False

    @pytest.mark.asyncio
    async def test_non_object_body(self, backend_factory):
        async with backend_factory({"/health": json_handler(["elixir", "ok"])}) as address:
            assert await _client().verify(address) is False

    @pytest.mark.asyncio
    async def test_timeout(self, backend_factory, healthy_payload):
        async with backend_factory({"/health": json_handler(healthy_payload, delay=1.0)}) as address:
            assert await _client(timeout=0.2).verify(address) is False

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        address = _closed_port_address()
        client = _client()
        assert await client.verify(address) is False
        assert client.cache.get(address).valid is False


class TestSecondaryPaths:

    @pytest.mark.asyncio
    async def test_all_secondary_paths_ok(self, backend_factory, healthy_payload):
        routes = {
            "/health": json_handler(healthy_payload),
            "/api/status/system": json_handler({"ok": True}),
            "/api/control/status": json_handler({"ok": True}),
        }
        async with backend_factory(routes) as address:
            client = _client(additional_paths=["/api/status/system", "/api/control/status"])
            assert await client.verify(address) is True

    @pytest.mark.asyncio
    async def test_one_secondary_path_missing(self, backend_factory, healthy_payload):
        routes = {
            "/health": json_handler(healthy_payload),
            "/api/status/system": json_handler({"ok": True}),
        }
        async with backend_factory(routes) as address:
            client = _client(additional_paths=["/api/status/system", "/api/control/status"])
            assert await client.verify(address) is False

    @pytest.mark.asyncio
    async def test_secondary_paths_skipped_when_health_fails(self, backend_factory):
        hits = []
        routes = {
            "/health": json_handler({"service": "other"}),
            "/api/status/system": json_handler({"ok": True}, counter=hits),
        }
        async with backend_factory(routes) as address:
            client = _client(additional_paths=["/api/status/system"])
            assert await client.verify(address) is False
            assert hits == []


class TestVerificationCache:

    @pytest.mark.asyncio
    async def test_cached_invalid_not_reprobed(self, backend_factory):
        hits = []
        async with backend_factory({"/health": json_handler({"service": "other"}, counter=hits)}) as address:
            client = _client()
            assert await client.verify(address) is False
            assert await client.verify(address) is False
            assert await client.verify(address) is False
            assert hits == ["/health"]

    @pytest.mark.asyncio
    async def test_cached_valid_not_reprobed(self, backend_factory, healthy_payload):
        hits = []
        async with backend_factory({"/health": json_handler(healthy_payload, counter=hits)}) as address:
            client = _client()
            assert await client.verify(address) is True
            assert await client.verify(address) is True
            assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_reprobed_after_ttl(self, backend_factory, healthy_payload):
        hits = []
        now = [0.0]
        cache = DiscoveryCache(ttl_seconds=300, clock=lambda: now[0])
        async with backend_factory({"/health": json_handler(healthy_payload, counter=hits)}) as address:
            client = _client(cache=cache)
            await client.verify(address)
            now[0] = 299.0
            await client.verify(address)
            assert len(hits) == 1
            now[0] = 301.0
            await client.verify(address)
            assert len(hits) == 2

    @pytest.mark.asyncio
    async def test_cleared_cache_reprobes(self, backend_factory, healthy_payload):
        hits = []
        async with backend_factory({"/health": json_handler(healthy_payload, counter=hits)}) as address:
            client = _client()
            await client.verify(address)
            client.cache.clear()
            await client.verify(address)
            assert len(hits) == 2


class TestMatchesIdentity:

    def test_case_insensitive(self):
        client = _client(expected_service="ELIXIR")
        assert client.matches_identity({"service": "elixir-backend", "status": "ok"})

    def test_identity_must_be_string(self):
        assert not _client().matches_identity({"service": 42, "status": "ok"})
