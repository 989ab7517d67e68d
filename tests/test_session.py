# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
End-to-end tests for ChatSession: license, tier enforcement, context and
dispatch running against a mocked network.
"""

import asyncio

import httpx
import pytest

from ghostchat.config import WidgetConfig
from ghostchat.context_pipeline import ContextState
from ghostchat.errors import GhostChatError
from ghostchat.offline import DEFAULT_REPLY, GREETING_REPLY
from ghostchat.session import ChatSession
from ghostchat.tiers import ContextMode, Tier

LICENSE_URL = "https://licenses.example.com/api/validate-license"
FAQ_URL = "https://shop.example.com/faq"
FAQ_HTML = "<h2>Do you ship abroad?</h2><p>Yes, worldwide.</p>"


class FakeNetwork:
    """Routes requests by host to canned responses."""

    def __init__(self, tier="personal", valid=True, page=FAQ_HTML):
        self.tier = tier
        self.valid = valid
        self.page = page
        self.page_release = None

    async def __call__(self, request):
        host = request.url.host
        if host == "licenses.example.com":
            return httpx.Response(200, json={"valid": self.valid, "tier": self.tier})
        if host == "shop.example.com":
            if self.page_release is not None:
                await self.page_release.wait()
            return httpx.Response(200, text=self.page)
        if host == "openrouter.ai":
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "OpenRouter says yes."}}]}
            )
        if host == "api.anthropic.com":
            return httpx.Response(
                200, json={"content": [{"type": "text", "text": "Claude says yes."}]}
            )
        return httpx.Response(404)


def options(**overrides):
    base = {
        "licenseKey": "GC-1234",
        "licenseApiUrl": LICENSE_URL,
        "apiKey": "sk-test",
        "provider": "anthropic:claude",
        "theme": "glassmorphism",
        "contextMode": "faq",
        "contextUrl": FAQ_URL,
    }
    base.update(overrides)
    return base


@pytest.mark.integration
class TestSessionFlow:
    """Full startup and send."""

    @pytest.mark.asyncio
    async def test_personal_tier_with_faq_context(self, mock_client):
        network = FakeNetwork(tier="personal")
        client, transport = mock_client(network)
        session = ChatSession(options(), client=client, referer="https://shop.example.com")

        await session.start()
        reply = await session.send("Do you ship abroad?")

        assert session.tier is Tier.PERSONAL
        assert session.config.theme == "glassmorphism"
        assert session.context_state is ContextState.READY
        assert session.corpus == "Q: Do you ship abroad?\nA: Yes, worldwide.\n\n"
        assert reply == "Claude says yes."
        assert [m.content for m in session.conversation] == [
            "Do you ship abroad?",
            "Claude says yes.",
        ]

        provider_request = transport.json_bodies()[-1]
        assert provider_request["system"].startswith(
            "Context information:\n\nQ: Do you ship abroad?"
        )
        assert session.metrics.get_latency_stats("anthropic:claude")["count"] == 1

    @pytest.mark.asyncio
    async def test_free_tier_narrows_everything(self, mock_client):
        network = FakeNetwork(valid=False)
        client, transport = mock_client(network)
        session = ChatSession(options(), client=client)

        await session.start()
        reply = await session.send("Hello there")

        assert session.tier is Tier.FREE
        assert session.config.theme == "minimal-light"
        assert session.config.provider == "openai:gpt-3.5"
        assert session.config.context_mode is None
        assert session.corpus is None
        # License check and provider call only; no page fetch
        assert [r.url.host for r in transport.requests] == ["licenses.example.com", "openrouter.ai"]
        assert reply == "OpenRouter says yes."
        assert transport.json_bodies()[-1]["model"] == "gpt-3.5"

    @pytest.mark.asyncio
    async def test_requested_config_untouched(self, mock_client):
        client, _ = mock_client(FakeNetwork(valid=False))
        session = ChatSession(options(), client=client)

        await session.start()

        assert session.requested_config.provider == "anthropic:claude"
        assert session.requested_config.context_mode is ContextMode.FAQ

    @pytest.mark.asyncio
    async def test_no_license_key_skips_license_request(self, mock_client):
        client, transport = mock_client(FakeNetwork())
        session = ChatSession(options(licenseKey=None), client=client)

        await session.start()

        assert session.tier is Tier.FREE
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_agency_full_scrape(self, mock_client):
        network = FakeNetwork(tier="agency", page="<h1>Shop</h1><a href='/faq'>FAQ</a>")
        client, transport = mock_client(network)
        session = ChatSession(
            options(contextMode="full_scrape", contextUrl="https://shop.example.com/"),
            client=client,
        )

        await session.start()

        assert session.context_state is ContextState.READY
        assert "--- Page: https://shop.example.com/faq ---" in session.corpus

    @pytest.mark.asyncio
    async def test_background_context_load(self, mock_client):
        network = FakeNetwork(tier="personal")
        network.page_release = asyncio.Event()
        client, transport = mock_client(network)
        session = ChatSession(options(), client=client)

        await session.start(wait_for_context=False)

        # A message sent before the corpus is published goes without context
        await session.send("Early question")
        assert "system" in transport.json_bodies()[-1]
        assert transport.json_bodies()[-1]["system"] == "You are a helpful assistant."

        network.page_release.set()
        state = await session.wait_for_context()

        assert state is ContextState.READY
        await session.send("Later question")
        assert transport.json_bodies()[-1]["system"].startswith("Context information:")

    @pytest.mark.asyncio
    async def test_context_failure_does_not_block_chat(self, mock_client):
        def handler(request):
            if request.url.host == "shop.example.com":
                return httpx.Response(404)
            if request.url.host == "licenses.example.com":
                return httpx.Response(200, json={"valid": True, "tier": "personal"})
            return httpx.Response(
                200, json={"content": [{"type": "text", "text": "Still here."}]}
            )

        client, _ = mock_client(handler)
        session = ChatSession(options(), client=client)

        await session.start()
        reply = await session.send("Anyone there?")

        assert session.context_state is ContextState.FAILED
        assert session.corpus is None
        assert reply == "Still here."


class TestSessionLifecycle:
    """Startup guards and offline behaviour."""

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, mock_client):
        client, transport = mock_client(FakeNetwork())
        session = ChatSession(options(), client=client)

        await session.start()
        request_count = len(transport.requests)
        await session.start()

        assert len(transport.requests) == request_count

    @pytest.mark.asyncio
    async def test_send_before_start_raises(self):
        session = ChatSession()

        with pytest.raises(GhostChatError):
            await session.send("Hello")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", None])
    async def test_blank_message_ignored(self, mock_client, message):
        client, transport = mock_client(FakeNetwork())
        session = ChatSession(options(licenseKey=None, contextMode=None), client=client)
        await session.start()

        assert await session.send(message) is None
        assert len(session.conversation) == 0
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_offline_without_api_key(self, mock_client):
        client, transport = mock_client(FakeNetwork())
        session = ChatSession(options(apiKey=None, contextMode=None), client=client)
        await session.start()

        assert session.offline is True
        assert await session.send("Hi!") == GREETING_REPLY
        assert await session.send("What is this?") == DEFAULT_REPLY
        assert len(session.conversation) == 4
        # License request only
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_offline_mode_flag_overrides_key(self, mock_client):
        client, transport = mock_client(FakeNetwork())
        session = ChatSession(
            options(offlineMode=True, licenseKey=None, contextMode=None), client=client
        )
        await session.start()

        await session.send("Hello")

        assert session.offline is True
        assert session.dispatcher is None
        assert transport.requests == []

    def test_accepts_widget_config(self):
        config = WidgetConfig(api_key="sk-test", provider="openai:gpt-4")

        session = ChatSession(config)

        assert session.config is config
        assert session.tier is Tier.FREE
        assert session.initialized is False
