# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Error types for GhostChat.

Provider failures fall into five provider-agnostic kinds. Each one is
recoverable: the session turns it into a single assistant message and
the user may simply resend.
"""

from enum import Enum, auto
from typing import Optional


class GhostChatError(Exception):
    """Base class for GhostChat errors."""


class ConfigError(GhostChatError):
    """Raised when a configuration file cannot be used."""


class FailureKind(Enum):
    """Provider-agnostic failure classes."""

    AUTH = auto()  # Credential rejected
    RATE_LIMITED = auto()  # Too many requests
    SERVER = auto()  # Any other non-2xx status
    PARSE = auto()  # 2xx with a payload we cannot read
    TRANSPORT = auto()  # No response at all


DEFAULT_MESSAGES = {
    FailureKind.AUTH: (
        "Sorry, there seems to be an authentication issue. "
        "Please check your API key configuration."
    ),
    FailureKind.RATE_LIMITED: (
        "I'm receiving too many requests right now. "
        "Please wait a moment and try again."
    ),
    FailureKind.SERVER: "I'm having trouble connecting right now. Please try again later.",
    FailureKind.PARSE: (
        "I apologize, but I encountered an error processing the response. "
        "Please try again."
    ),
    FailureKind.TRANSPORT: (
        "Unable to connect to the AI service. "
        "Please check your internet connection."
    ),
}


class ProviderError(GhostChatError):
    """
    A provider request that did not produce a reply.

    Attributes:
        kind: Failure class
        user_message: Text shown to the user in place of a reply
        status_code: HTTP status, when a response was received
        provider: Provider selector that failed
    """

    kind: FailureKind = FailureKind.SERVER

    def __init__(
        self,
        detail: str = "",
        user_message: Optional[str] = None,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(detail or self.kind.name.lower())
        self.user_message = user_message or DEFAULT_MESSAGES[self.kind]
        self.status_code = status_code
        self.provider = provider


class AuthFailure(ProviderError):
    kind = FailureKind.AUTH


class RateLimited(ProviderError):
    kind = FailureKind.RATE_LIMITED


class ServerError(ProviderError):
    kind = FailureKind.SERVER


class ParseFailure(ProviderError):
    kind = FailureKind.PARSE


class TransportFailure(ProviderError):
    kind = FailureKind.TRANSPORT
