# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Message types exchanged between the relay and the application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class MessageFormat(Enum):
    """How Telegram should render an outbound message.

    Attributes:
        PLAIN_TEXT: Text is sent verbatim.
        HTML: Text is parsed as Telegram HTML markup.
    """

    PLAIN_TEXT = "plain_text"
    HTML = "html"


@dataclass(frozen=True)
class OutboundMessage:
    """A message waiting to be delivered to a chat.

    Attributes:
        chat_id: Destination chat id.
        text: Message text.  The Bot API length limit is enforced when
            the message is encoded, not here.
        format: Rendering mode.
    """

    chat_id: int
    text: str
    format: MessageFormat = MessageFormat.PLAIN_TEXT


@dataclass(frozen=True)
class InboundMessage:
    """A message received from a chat.

    Attributes:
        timestamp: When Telegram received the message (local time,
            timezone-aware).
        chat_id: Chat the message came from.
        text: Message text, empty for non-text messages.
    """

    timestamp: datetime
    chat_id: int
    text: str

    def create_response(
        self, text: str, format: MessageFormat = MessageFormat.PLAIN_TEXT
    ) -> OutboundMessage:
        """Build a reply addressed to the chat this message came from."""
        return OutboundMessage(chat_id=self.chat_id, text=text, format=format)
