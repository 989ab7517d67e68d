# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Root pytest configuration with shared fixtures and markers.

This file is automatically loaded by pytest and provides:
- Custom markers for test categories
- A factory for httpx clients served by a MockTransport, so no test
  touches the network
"""

import inspect
import json

import httpx
import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Mark test as integration test (several components together)",
    )
    config.addinivalue_line(
        "markers",
        "concurrency: Mark test as exercising concurrent request ordering",
    )


# ============================================================================
# Shared Fixtures
# ============================================================================


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        async def recording_handler(request):
            self.requests.append(request)
            response = handler(request)
            if inspect.isawaitable(response):
                response = await response
            return response

        super().__init__(recording_handler)

    def paths(self):
        return [r.url.path for r in self.requests]

    def json_bodies(self):
        return [json.loads(r.content) for r in self.requests if r.content]


@pytest.fixture
def mock_client():
    """
    Factory for an httpx.AsyncClient served by a handler function.

    The handler may be sync or async and may raise httpx errors.

    Usage:
        client, transport = mock_client(lambda request: httpx.Response(200))
    """

    def factory(handler):
        transport = RecordingTransport(handler)
        return httpx.AsyncClient(transport=transport), transport

    return factory
