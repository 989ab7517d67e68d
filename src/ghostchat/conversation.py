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
Conversation store for GhostChat.

An append-only log of the messages exchanged in one session. Messages are
never edited after they are appended; the only removal is of the transient
loading placeholder shown while a provider request is outstanding.

Version: 1.0.0
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional
import logging

logger = logging.getLogger(__name__)


class Role(Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    """
    A message in the conversation.

    Attributes:
        role: Who wrote the message
        content: Message text
        timestamp: When the message was appended
        placeholder: True for the transient loading indicator
    """

    role: Role
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    placeholder: bool = False

    def to_dict(self) -> Dict[str, str]:
        """Wire form used by provider adapters."""
        return {"role": self.role.value, "content": self.content}


class ConversationStore:
    """
    Ordered, append-only message log for one session.

    Example:
        store = ConversationStore()
        store.append_user("Hello")
        store.append_assistant("Hi! How can I help?")
        history = store.history()
    """

    def __init__(self):
        self._messages: List[ConversationMessage] = []

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self.messages)

    @property
    def messages(self) -> List[ConversationMessage]:
        """Real messages, oldest first (placeholders excluded)."""
        return [m for m in self._messages if not m.placeholder]

    @property
    def loading(self) -> bool:
        """Whether a loading placeholder is currently shown."""
        return any(m.placeholder for m in self._messages)

    def append(self, role: Role, content: str) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content)
        self._messages.append(message)
        return message

    def append_user(self, content: str) -> ConversationMessage:
        return self.append(Role.USER, content)

    def append_assistant(self, content: str) -> ConversationMessage:
        return self.append(Role.ASSISTANT, content)

    def add_placeholder(self) -> ConversationMessage:
        """Show the loading indicator."""
        message = ConversationMessage(role=Role.ASSISTANT, content="", placeholder=True)
        self._messages.append(message)
        return message

    def remove_placeholder(self, message: Optional[ConversationMessage] = None) -> bool:
        """
        Remove a loading placeholder.

        Args:
            message: The placeholder to remove; the oldest one if omitted

        Returns:
            True if a placeholder was removed
        """
        for i, existing in enumerate(self._messages):
            if not existing.placeholder:
                continue
            if message is None or existing is message:
                del self._messages[i]
                return True
        return False

    def history(self, exclude_latest: bool = False) -> List[Dict[str, str]]:
        """
        Messages in provider wire form.

        Args:
            exclude_latest: Drop the most recent message (the one being sent)
        """
        messages = self.messages
        if exclude_latest:
            messages = messages[:-1]
        return [m.to_dict() for m in messages]

    def last(self) -> Optional[ConversationMessage]:
        messages = self.messages
        return messages[-1] if messages else None
