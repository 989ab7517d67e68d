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
OpenAI-compatible chat completions adapter.

Requests go to an OpenRouter-style ``/chat/completions`` endpoint:

    POST {model, messages, temperature, max_tokens}
    Authorization: Bearer <key>

The system prompt is the first message, followed by the history and the
new user message. The reply is read from ``choices[0].message.content``.
OpenRouter may report upstream failures inside a 200 body as
``{"error": {"code": ..., "message": ...}}``; those are classified like
status codes.
"""

from typing import Any, Dict, Optional

from ghostchat.errors import (
    AuthFailure,
    FailureKind,
    ProviderError,
    RateLimited,
    ServerError,
)
from ghostchat.providers.base import ChatRequest, HTTPProviderAdapter, ProviderKind

AUTH_ERROR_CODES = {401, "401", "invalid_api_key"}
RATE_LIMIT_ERROR_CODES = {429, "429", "rate_limit_exceeded"}


class OpenAICompatibleAdapter(HTTPProviderAdapter):
    """Adapter for OpenAI-compatible APIs (OpenRouter by default)."""

    kind = ProviderKind.OPENAI
    default_base_url = "https://openrouter.ai/api/v1"
    default_model = "deepseek/deepseek-chat"

    temperature = 0.7
    max_tokens = 500
    title = "GhostChat Widget"

    failure_messages = {
        FailureKind.AUTH: "Invalid OpenRouter API key.",
        FailureKind.RATE_LIMITED: "Rate limit exceeded. Try again later.",
        FailureKind.SERVER: "Error processing your request.",
    }

    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
            "X-Title": self.title,
        }
        if self.config.referer:
            headers["HTTP-Referer"] = self.config.referer
        return headers

    def build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        messages = (
            [{"role": "system", "content": request.system_prompt}]
            + list(request.history)
            + [{"role": "user", "content": request.message}]
        )
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def extract_reply(self, data: Any) -> Any:
        return data["choices"][0]["message"]["content"]

    def reply_metadata(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            return {}
        usage = data.get("usage") or {}
        return {
            "id": data.get("id"),
            "tokens_used": usage.get("total_tokens", 0) if isinstance(usage, dict) else 0,
        }

    def classify_error(self, status_code: int, body: Any) -> type:
        code = _error_code(body)
        if status_code == 401 or code in AUTH_ERROR_CODES:
            return AuthFailure
        if status_code == 429 or code in RATE_LIMIT_ERROR_CODES:
            return RateLimited
        return ServerError

    def payload_error(self, data: Any) -> Optional[ProviderError]:
        if not isinstance(data, dict) or "choices" in data or "error" not in data:
            return None

        code = _error_code(data)
        if code in AUTH_ERROR_CODES:
            error_cls = AuthFailure
        elif code in RATE_LIMIT_ERROR_CODES:
            error_cls = RateLimited
        else:
            error_cls = ServerError
        return self._error(error_cls, f"error in response body: {code!r}")


def _error_code(body: Any) -> Any:
    """``error.code`` from an OpenAI-style error body, if present."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if not isinstance(error, dict):
        return None
    code = error.get("code")
    return code if isinstance(code, (int, str)) else None
