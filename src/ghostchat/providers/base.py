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
Provider adapter base for GhostChat.

Each AI backend speaks its own wire protocol. An adapter translates one
internal ChatRequest into that protocol and maps the outcome back to
either a ProviderReply or one of the five provider-agnostic failures:

- AuthFailure: credential rejected
- RateLimited: too many requests
- ServerError: any other non-success status
- ParseFailure: success status with an unreadable payload
- TransportFailure: no response at all (including timeouts)

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import time
import logging

import httpx

from ghostchat.config import DEFAULT_REQUEST_TIMEOUT
from ghostchat.errors import (
    AuthFailure,
    FailureKind,
    ParseFailure,
    ProviderError,
    RateLimited,
    ServerError,
    TransportFailure,
)
from ghostchat.http import TRANSPORT_ERRORS, client_session

logger = logging.getLogger(__name__)

ASSISTANT_INSTRUCTION = "You are a helpful assistant."
CONTEXT_PREFIX = "Context information:\n\n"


class ProviderKind(Enum):
    """Provider namespaces with a registered adapter."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


@dataclass(frozen=True)
class ProviderSelector:
    """
    A parsed provider selector such as ``openai:gpt-4`` or ``ollama``.

    Attributes:
        namespace: Provider namespace
        model: Model name, if the selector has one
    """

    namespace: str
    model: Optional[str] = None

    @classmethod
    def parse(cls, selector: str) -> "ProviderSelector":
        namespace, _, model = (selector or "").partition(":")
        return cls(namespace=namespace.strip().lower(), model=model.strip() or None)

    @property
    def kind(self) -> Optional[ProviderKind]:
        """The registered provider kind, or None for unregistered namespaces."""
        try:
            return ProviderKind(self.namespace)
        except ValueError:
            return None

    def __str__(self) -> str:
        if self.model:
            return f"{self.namespace}:{self.model}"
        return self.namespace


def build_system_prompt(corpus: Optional[str]) -> str:
    """System text: context corpus (if any) followed by the instruction."""
    context = f"{CONTEXT_PREFIX}{corpus}\n\n" if corpus else ""
    return context + ASSISTANT_INSTRUCTION


@dataclass
class ChatRequest:
    """
    Provider-neutral request.

    Attributes:
        message: The new user message
        history: Prior messages in wire form, excluding `message`
        system_prompt: Context and instruction text
    """

    message: str
    history: List[Dict[str, str]] = field(default_factory=list)
    system_prompt: str = ASSISTANT_INSTRUCTION


@dataclass
class ProviderConfig:
    """
    Configuration for one provider adapter.

    Attributes:
        api_key: Provider credential
        model: Model name (adapter default if None)
        base_url: API base URL (adapter default if None)
        timeout: Request timeout in seconds
        referer: Origin reported to OpenRouter-style endpoints
    """

    api_key: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    referer: Optional[str] = None


@dataclass
class ProviderReply:
    """
    Normalized reply from a provider.

    Attributes:
        content: Reply text
        model: Model that produced the reply
        latency_ms: Round trip in milliseconds
        metadata: Provider-specific extras (usage, ids)
    """

    content: str
    model: str
    latency_ms: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """
    Base class for provider adapters.

    An adapter turns one ChatRequest into one ProviderReply, or raises
    one of the five ProviderError kinds.
    """

    kind: ProviderKind
    default_base_url: str = ""
    default_model: str = ""

    # Per-adapter failure text; missing kinds use the defaults in errors.py
    failure_messages: Dict[FailureKind, str] = {}

    def __init__(
        self,
        config: ProviderConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the adapter.

        Args:
            config: Provider configuration
            client: Optional shared httpx client
        """
        self.config = config
        self._client = client

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.default_base_url).rstrip("/")

    @abstractmethod
    async def complete(self, request: ChatRequest) -> ProviderReply:
        """
        Send `request` and return the reply.

        Raises:
            ProviderError: One of the five failure kinds
        """

    def _error(
        self,
        error_cls: type,
        detail: str,
        status_code: Optional[int] = None,
    ) -> ProviderError:
        return error_cls(
            detail,
            user_message=self.failure_messages.get(error_cls.kind),
            status_code=status_code,
            provider=self.kind.value,
        )


class HTTPProviderAdapter(ProviderAdapter):
    """
    Adapter for providers reached with one JSON POST per request.

    Subclasses define the endpoint, headers, payload and reply location,
    and may refine error classification and user-facing failure text.
    """

    async def complete(self, request: ChatRequest) -> ProviderReply:
        start_time = time.time()
        data = await self._post(self.build_payload(request))

        error = self.payload_error(data)
        if error is not None:
            raise error

        try:
            content = self.extract_reply(data)
        except (KeyError, IndexError, TypeError) as e:
            raise self._error(ParseFailure, f"unexpected payload: {e!r}")
        if not isinstance(content, str):
            raise self._error(ParseFailure, f"reply is {type(content).__name__}, not text")

        return ProviderReply(
            content=content,
            model=data.get("model", self.model) if isinstance(data, dict) else self.model,
            latency_ms=(time.time() - start_time) * 1000,
            metadata=self.reply_metadata(data),
        )

    @abstractmethod
    def endpoint(self) -> str:
        """Full URL requests are POSTed to."""

    @abstractmethod
    def headers(self) -> Dict[str, str]:
        """Request headers, including the credential."""

    @abstractmethod
    def build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        """Translate a ChatRequest into the provider's JSON body."""

    @abstractmethod
    def extract_reply(self, data: Any) -> Any:
        """Pull the reply text out of a success payload."""

    def reply_metadata(self, data: Any) -> Dict[str, Any]:
        return {}

    def payload_error(self, data: Any) -> Optional[ProviderError]:
        """Failure reported inside a success response, if any."""
        return None

    def classify_error(self, status_code: int, body: Any) -> type:
        """
        Choose the failure class for a non-success response.

        Subclasses can inspect provider error payloads; the default looks
        at the status code only.
        """
        if status_code == 401:
            return AuthFailure
        if status_code == 429:
            return RateLimited
        return ServerError

    async def _post(self, payload: Dict[str, Any]) -> Any:
        """POST the payload and return the decoded success body."""
        try:
            async with client_session(self._client, self.config.timeout) as client:
                response = await client.post(
                    self.endpoint(),
                    json=payload,
                    headers=self.headers(),
                )
        except TRANSPORT_ERRORS as e:
            raise self._error(TransportFailure, f"{type(e).__name__}: {e}")

        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = None
            error_cls = self.classify_error(response.status_code, body)
            logger.error(
                f"{self.kind.value} API error: {response.status_code} {response.text[:200]}"
            )
            raise self._error(
                error_cls,
                f"status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise self._error(ParseFailure, f"invalid JSON: {e}", status_code=200)
