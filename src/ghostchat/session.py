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
ChatSession - the single owner of a GhostChat conversation's state.

Startup order:
1. Resolve the license (one request, free tier on any failure)
2. Narrow the requested configuration to the tier
3. Load page context if a mode and URL survived enforcement

After startup, send() appends the user's message and answers it, either
from the offline canned replies (no credential) or through the provider
dispatcher.

Version: 1.0.0
"""

from typing import Any, Mapping, Optional, Union
import asyncio
import logging

import httpx

from ghostchat.config import WidgetConfig, merge_options
from ghostchat.context_pipeline import ContextPipeline, ContextState
from ghostchat.conversation import ConversationStore
from ghostchat.errors import GhostChatError
from ghostchat.license import License, LicenseGate
from ghostchat.metrics import ChatMetrics
from ghostchat.offline import offline_reply
from ghostchat.providers import ProviderDispatcher
from ghostchat.tiers import Tier, enforce_tier

logger = logging.getLogger(__name__)


class ChatSession:
    """
    One visitor's chat session.

    Example:
        session = ChatSession({
            "licenseKey": "GC-1234",
            "provider": "anthropic:claude",
            "apiKey": "sk-ant-...",
            "contextMode": "faq",
            "contextUrl": "https://example.com/faq",
        })
        await session.start()
        reply = await session.send("Do you ship abroad?")
    """

    def __init__(
        self,
        config: Union[WidgetConfig, Mapping[str, Any], None] = None,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[ChatMetrics] = None,
        referer: Optional[str] = None,
    ):
        """
        Initialize the session.

        Args:
            config: WidgetConfig or embed options (merged over defaults)
            client: Optional shared httpx client for every request
            metrics: Optional metrics sink (a new one by default)
            referer: Page origin reported to OpenRouter-style providers
        """
        if not isinstance(config, WidgetConfig):
            config = merge_options(config)

        self.requested_config = config
        self.config = config
        self.license = License(key=config.license_key)
        self.conversation = ConversationStore()
        self.metrics = metrics or ChatMetrics()
        self.initialized = False

        self._client = client
        self._referer = referer
        self._context_task: Optional[asyncio.Task] = None

        self.gate = LicenseGate(
            endpoint=config.license_api_url,
            timeout=config.request_timeout,
            client=client,
        )
        self.pipeline = ContextPipeline(timeout=config.request_timeout, client=client)
        self.dispatcher: Optional[ProviderDispatcher] = None

    @property
    def tier(self) -> Tier:
        return self.license.tier

    @property
    def corpus(self) -> Optional[str]:
        """Published context corpus, or None."""
        return self.pipeline.corpus

    @property
    def context_state(self) -> ContextState:
        return self.pipeline.state

    @property
    def offline(self) -> bool:
        """True when replies come from the canned responder."""
        return not self.config.api_key or self.config.offline_mode

    async def start(self, wait_for_context: bool = True) -> "ChatSession":
        """
        Resolve the license, enforce the tier and load context.

        Args:
            wait_for_context: Await the context load; otherwise it runs
                in the background and the corpus appears when ready

        Returns:
            self
        """
        if self.initialized:
            logger.warning("Already initialized")
            return self

        await self.license.resolve(self.gate)
        self.config = enforce_tier(self.requested_config, self.license.tier)

        if not self.offline:
            self.dispatcher = ProviderDispatcher(
                api_key=self.config.api_key,
                timeout=self.config.request_timeout,
                client=self._client,
                metrics=self.metrics,
                referer=self._referer,
            )

        mode, url = self.config.context_mode, self.config.context_url
        if mode is not None and url:
            if wait_for_context:
                await self.pipeline.load(mode, url)
            else:
                self._context_task = asyncio.create_task(self.pipeline.load(mode, url))

        self.initialized = True
        logger.info(f"Session started at {self.tier.value} tier")
        return self

    async def wait_for_context(self) -> ContextState:
        """Wait for a background context load, if one was started."""
        if self._context_task is not None:
            await self._context_task
        return self.pipeline.state

    async def send(self, message: str) -> Optional[str]:
        """
        Append a user message and answer it.

        Args:
            message: Text typed by the visitor

        Returns:
            The assistant text appended, or None for a blank message

        Raises:
            GhostChatError: If the session has not been started
        """
        if not self.initialized:
            raise GhostChatError("Session not started; call start() first")

        text = (message or "").strip()
        if not text:
            return None

        self.conversation.append_user(text)

        if self.offline:
            reply = offline_reply(text)
            self.conversation.append_assistant(reply)
            return reply

        return await self.dispatcher.dispatch(
            self.config.provider,
            text,
            self.conversation,
            self.corpus,
        )
