"""
Pytest configuration and fixtures for discovery service tests.
"""
import os
import sys

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

import pytest
from contextlib import asynccontextmanager
from aiohttp import web
from aiohttp.test_utils import TestServer


@pytest.fixture
def backend_factory():
    """Starts an in-process HTTP server on 127.0.0.1; yields its base address"""

    @asynccontextmanager
    async def start(routes):
        app = web.Application()
        for path, handler in routes.items():
            app.router.add_get(path, handler)
            app.router.add_post(path, handler)
        server = TestServer(app, host="127.0.0.1")
        await server.start_server()
        try:
            yield f"http://127.0.0.1:{server.port}"
        finally:
            await server.close()

    return start


@pytest.fixture
def healthy_payload():
    return {"service": "Elixir Chamber Backend", "version": "1.4.2", "status": "ok"}
