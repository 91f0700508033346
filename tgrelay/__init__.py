# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Telegram Bot API relay.

Provides a long-running bridge between an application and a Telegram bot:
- Outbound queue drained by a sender thread (``sendMessage``)
- Inbound long-polling with a monotonic cursor (``getUpdates``)
- Chat authorization with auto-reply and administrator alerts
"""

from tgrelay.authorization import AuthorizationPolicy
from tgrelay.config import ConfigError, RelayConfig
from tgrelay.errors import (
    EncodingError,
    PollError,
    ProtocolError,
    RelayError,
    TransportError,
)
from tgrelay.health import ChannelHealth, ChannelStatus
from tgrelay.messages import InboundMessage, MessageFormat, OutboundMessage
from tgrelay.relay import MessageHandler, TelegramRelay


__all__ = [
    # authorization
    "AuthorizationPolicy",
    # config
    "ConfigError",
    "RelayConfig",
    # errors
    "EncodingError",
    "PollError",
    "ProtocolError",
    "RelayError",
    "TransportError",
    # health
    "ChannelHealth",
    "ChannelStatus",
    # messages
    "InboundMessage",
    "MessageFormat",
    "OutboundMessage",
    # relay
    "MessageHandler",
    "TelegramRelay",
]
