# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Chat authorization policy.

Decides whether an inbound chat may talk to the relay.  The policy is an
immutable snapshot; the relay swaps in a new snapshot to change it, so the
poller thread never observes a half-updated set.
"""

from __future__ import annotations

import html
from collections.abc import Iterable
from dataclasses import dataclass, field

from tgrelay.messages import InboundMessage


#: Auto-reply sent to chats that are not admitted.
REJECTION_REPLY = "Not authorized!"

_WARNING_SIGN = "⚠️"


@dataclass(frozen=True)
class AuthorizationPolicy:
    """Static authorization sets.

    Attributes:
        administrators: Chat ids that receive alerts and broadcasts.
            Administrators are not admitted implicitly; list them in
            ``whitelist`` as well if they should be able to send messages.
        whitelist: Chat ids admitted when ``allow_all`` is False.
        allow_all: Admit every chat.
    """

    administrators: frozenset[int] = field(default_factory=frozenset)
    whitelist: frozenset[int] = field(default_factory=frozenset)
    allow_all: bool = False

    @classmethod
    def build(
        cls,
        administrators: Iterable[int] = (),
        whitelist: Iterable[int] = (),
        allow_all: bool = False,
    ) -> AuthorizationPolicy:
        """Build a policy from arbitrary iterables of chat ids."""
        return cls(
            administrators=frozenset(administrators),
            whitelist=frozenset(whitelist),
            allow_all=allow_all,
        )

    def is_admitted(self, chat_id: int) -> bool:
        """Return True if messages from ``chat_id`` may be delivered."""
        return self.allow_all or chat_id in self.whitelist

    def is_administrator(self, chat_id: int) -> bool:
        """Return True if ``chat_id`` is an administrator."""
        return chat_id in self.administrators


def format_rejection_alert(message: InboundMessage) -> str:
    """Build the HTML alert sent to administrators for a rejected message."""
    return (
        f"{_WARNING_SIGN} A non-whitelisted client ({message.chat_id}) "
        f"has sent a message: '{html.escape(message.text)}'"
    )
