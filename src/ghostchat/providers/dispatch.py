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
Provider dispatch for GhostChat.

Routes a user message, the context corpus and the conversation history to
the adapter for the selected provider, then appends exactly one assistant
message to the conversation: the reply, or the user-facing text of the
failure. Selectors whose namespace has no adapter get an explicit
"not implemented" reply.

One request per dispatch; nothing is coalesced, cancelled or retried.

Version: 1.0.0
"""

from typing import Dict, Optional, Type
import logging

import httpx

from ghostchat.config import DEFAULT_REQUEST_TIMEOUT
from ghostchat.conversation import ConversationStore
from ghostchat.errors import ProviderError
from ghostchat.metrics import ChatMetrics
from ghostchat.providers.anthropic import AnthropicAdapter
from ghostchat.providers.base import (
    ChatRequest,
    ProviderAdapter,
    ProviderConfig,
    ProviderKind,
    ProviderSelector,
    build_system_prompt,
)
from ghostchat.providers.gemini import GeminiAdapter
from ghostchat.providers.openai import OpenAICompatibleAdapter

logger = logging.getLogger(__name__)

NOT_IMPLEMENTED_REPLY = "Provider not yet implemented: {selector}"

ADAPTERS: Dict[ProviderKind, Type[ProviderAdapter]] = {
    ProviderKind.OPENAI: OpenAICompatibleAdapter,
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.GOOGLE: GeminiAdapter,
}


class ProviderDispatcher:
    """
    Sends conversation turns to the configured provider.

    Example:
        dispatcher = ProviderDispatcher(api_key="sk-...")
        store.append_user("What are your opening hours?")
        reply = await dispatcher.dispatch(
            "openai:gpt-4", "What are your opening hours?", store, corpus
        )
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[ChatMetrics] = None,
        referer: Optional[str] = None,
        base_urls: Optional[Dict[ProviderKind, str]] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            api_key: Provider credential
            timeout: Per-request timeout in seconds
            client: Optional shared httpx client handed to adapters
            metrics: Optional metrics sink
            referer: Origin reported to OpenRouter-style endpoints
            base_urls: Per-provider base URL overrides
        """
        self.api_key = api_key
        self.timeout = timeout
        self.metrics = metrics
        self.referer = referer
        self.base_urls = dict(base_urls or {})
        self._client = client

    def adapter_for(self, selector: ProviderSelector) -> Optional[ProviderAdapter]:
        """Build the adapter for `selector`, or None if none is registered."""
        kind = selector.kind
        if kind is None:
            return None

        config = ProviderConfig(
            api_key=self.api_key,
            model=selector.model,
            base_url=self.base_urls.get(kind),
            timeout=self.timeout,
            referer=self.referer,
        )
        return ADAPTERS[kind](config, client=self._client)

    async def dispatch(
        self,
        provider: str,
        message: str,
        store: ConversationStore,
        corpus: Optional[str] = None,
    ) -> str:
        """
        Send `message` and append the outcome to `store`.

        `message` must already be the latest entry in `store`; everything
        before it is sent as history.

        Args:
            provider: Provider selector
            message: New user message
            store: Session conversation
            corpus: Published context corpus, if any

        Returns:
            The assistant text appended to the conversation
        """
        selector = ProviderSelector.parse(provider)
        adapter = self.adapter_for(selector)

        if adapter is None:
            reply = NOT_IMPLEMENTED_REPLY.format(selector=provider)
            logger.warning(reply)
            store.append_assistant(reply)
            return reply

        request = ChatRequest(
            message=message,
            history=store.history(exclude_latest=True),
            system_prompt=build_system_prompt(corpus),
        )

        placeholder = store.add_placeholder()
        try:
            response = await adapter.complete(request)
        except ProviderError as e:
            logger.error(f"{provider} request failed ({e.kind.name}): {e}")
            if self.metrics:
                self.metrics.record_failure(provider, e.kind, e.status_code)
            reply = e.user_message
        else:
            if self.metrics:
                self.metrics.record_reply(provider, int(response.latency_ms))
            reply = response.content
        finally:
            store.remove_placeholder(placeholder)

        store.append_assistant(reply)
        return reply
