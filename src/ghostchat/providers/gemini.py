# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Google Gemini adapter placeholder. Answers without a network call."""

from ghostchat.providers.base import ChatRequest, ProviderAdapter, ProviderKind, ProviderReply

COMING_SOON_REPLY = "Gemini provider coming soon"


class GeminiAdapter(ProviderAdapter):
    """Stub adapter; always replies that Gemini support is coming."""

    kind = ProviderKind.GOOGLE
    default_model = "gemini"

    async def complete(self, request: ChatRequest) -> ProviderReply:
        return ProviderReply(content=COMING_SOON_REPLY, model=self.model)
