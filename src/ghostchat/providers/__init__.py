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
AI provider adapters for GhostChat.

Usage:
    from ghostchat.providers import ProviderDispatcher

    dispatcher = ProviderDispatcher(api_key="sk-...")
    reply = await dispatcher.dispatch("anthropic:claude", text, store, corpus)
"""

from .base import (
    ChatRequest,
    HTTPProviderAdapter,
    ProviderAdapter,
    ProviderConfig,
    ProviderKind,
    ProviderReply,
    ProviderSelector,
    build_system_prompt,
)
from .anthropic import AnthropicAdapter
from .dispatch import ADAPTERS, ProviderDispatcher
from .gemini import GeminiAdapter
from .openai import OpenAICompatibleAdapter

__all__ = [
    "ADAPTERS",
    "AnthropicAdapter",
    "ChatRequest",
    "GeminiAdapter",
    "HTTPProviderAdapter",
    "OpenAICompatibleAdapter",
    "ProviderAdapter",
    "ProviderConfig",
    "ProviderDispatcher",
    "ProviderKind",
    "ProviderReply",
    "ProviderSelector",
    "build_system_prompt",
]
