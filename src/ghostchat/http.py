# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Shared httpx client handling for outbound requests."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

# Errors meaning "no usable response arrived"
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


@asynccontextmanager
async def client_session(
    client: Optional[httpx.AsyncClient],
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield `client` if one was injected, otherwise a short-lived client.

    Injected clients are owned by the caller and are not closed here.
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
        yield owned
