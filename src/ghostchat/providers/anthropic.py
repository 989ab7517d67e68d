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
Anthropic Messages API adapter.

    POST {model, messages, system, max_tokens}
    x-api-key: <key>
    anthropic-version: 2023-06-01

The system prompt travels in its own ``system`` field; ``messages`` holds
the history followed by the new user message. The reply is read from
``content[0].text``. Error bodies look like
``{"type": "error", "error": {"type": "rate_limit_error", ...}}``.
"""

from typing import Any, Dict

from ghostchat.errors import AuthFailure, FailureKind, RateLimited, ServerError
from ghostchat.providers.base import ChatRequest, HTTPProviderAdapter, ProviderKind

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(HTTPProviderAdapter):
    """Adapter for the Anthropic Messages API."""

    kind = ProviderKind.ANTHROPIC
    default_base_url = "https://api.anthropic.com/v1"
    default_model = "claude-3-sonnet-20240229"

    max_tokens = 1024

    failure_messages = {
        FailureKind.AUTH: (
            "Sorry, there seems to be an authentication issue. "
            "Please check your API key configuration."
        ),
        FailureKind.RATE_LIMITED: (
            "I'm receiving too many requests right now. "
            "Please wait a moment and try again."
        ),
        FailureKind.SERVER: "I'm having trouble connecting right now. Please try again later.",
    }

    def endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        messages = list(request.history) + [{"role": "user", "content": request.message}]
        return {
            "model": self.model,
            "messages": messages,
            "system": request.system_prompt,
            "max_tokens": self.max_tokens,
        }

    def extract_reply(self, data: Any) -> Any:
        return data["content"][0]["text"]

    def reply_metadata(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            return {}
        return {"id": data.get("id"), "stop_reason": data.get("stop_reason")}

    def classify_error(self, status_code: int, body: Any) -> type:
        error_type = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error_type = body["error"].get("type")

        if status_code == 401 or error_type == "authentication_error":
            return AuthFailure
        if status_code == 429 or error_type == "rate_limit_error":
            return RateLimited
        return ServerError
