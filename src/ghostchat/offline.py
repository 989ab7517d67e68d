# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Canned replies used when no provider credential is configured.

Keyword routing, first match wins: greeting, help, contact, pricing,
then a default that invites the visitor to leave an email.
"""

import re

GREETING_REPLY = (
    "Hello! I'm currently in offline mode. "
    "Please provide an API key to enable AI responses."
)
HELP_REPLY = (
    "I'd love to help! However, I need an API key to provide intelligent "
    "responses. Please configure your OpenAI API key."
)
CONTACT_REPLY = (
    "Thank you for your interest! To get in touch with us, please email "
    "support@example.com or visit our contact page."
)
PRICING_REPLY = (
    "For pricing information, please visit our pricing page or contact "
    "our sales team."
)
DEFAULT_REPLY = (
    "Thank you for your message. I'm currently in offline mode and cannot "
    "provide AI-powered responses. Please configure an API key or leave "
    "your email and we'll get back to you."
)

# "hi" only as a whole word, so "this" or "which" are not greetings
_GREETING_RE = re.compile(r"hello|\bhi\b")


def offline_reply(message: str) -> str:
    """Pick a canned reply for `message`."""
    text = message.lower()

    if _GREETING_RE.search(text):
        return GREETING_REPLY
    if "help" in text:
        return HELP_REPLY
    if "email" in text or "contact" in text:
        return CONTACT_REPLY
    if "price" in text or "cost" in text:
        return PRICING_REPLY
    return DEFAULT_REPLY
