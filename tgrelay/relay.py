# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Relay facade tying the sender, poller and authorization together.

``TelegramRelay`` is what the rest of the application talks to: it accepts
outbound messages, broadcasts to administrators and notifies registered
handlers about admitted inbound messages.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable, Iterable

import httpx

from tgrelay.authorization import (
    REJECTION_REPLY,
    AuthorizationPolicy,
    format_rejection_alert,
)
from tgrelay.client import BotApiClient, build_http_client
from tgrelay.config import RelayConfig
from tgrelay.health import ChannelStatus
from tgrelay.messages import InboundMessage, MessageFormat, OutboundMessage
from tgrelay.poller import InboundPoller
from tgrelay.sender import OutboundSender


logger = logging.getLogger(__name__)

#: Seconds ``stop()`` waits for the poller thread.  A long poll in flight
#: is abandoned to the daemon thread rather than waited out.
POLLER_JOIN_TIMEOUT = 1.0

#: Signature of inbound message handlers.
MessageHandler = Callable[["TelegramRelay", InboundMessage], None]


class TelegramRelay:
    """Bidirectional relay between the application and a Telegram bot.

    Args:
        config: Relay configuration.
        http_client: Optional pre-built ``httpx.Client`` whose base URL
            points at the bot (for testing).  Built from ``config`` when
            omitted.  The relay closes it on ``stop()`` either way, once
            the sender has drained.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._policy = config.policy()
        self._handlers: list[MessageHandler] = []
        self._handlers_lock = threading.Lock()
        self._enabled = False
        self._stopped = False

        if http_client is None:
            http_client = build_http_client(
                config.api_url,
                config.token,
                long_poll_timeout=config.long_poll_timeout,
                request_timeout=config.request_timeout,
            )
        self._client = BotApiClient(http_client, config.long_poll_timeout)
        self._sender = OutboundSender(self._client)
        self._poller = InboundPoller(
            self._client,
            policy_provider=lambda: self._policy,
            on_admitted=self._notify_handlers,
            on_rejected=self._reject,
            backoff_initial=config.backoff_initial,
            backoff_max=config.backoff_max,
        )

    @property
    def config(self) -> RelayConfig:
        """Configuration the relay was built with."""
        return self._config

    @property
    def policy(self) -> AuthorizationPolicy:
        """Current authorization policy snapshot."""
        return self._policy

    @property
    def status(self) -> ChannelStatus:
        """Health of the inbound poller."""
        return self._poller.status

    @property
    def cursor(self) -> int:
        """Highest update id processed so far."""
        return self._poller.cursor

    @property
    def pending_outbound(self) -> int:
        """Approximate number of queued outbound messages."""
        return self._sender.pending

    def enable(self) -> None:
        """Start the sender and poller threads.

        Only the first call has an effect.
        """
        if self._enabled:
            logger.warning("Relay already enabled, ignoring")
            return
        self._enabled = True
        self._sender.start()
        self._poller.start()
        logger.info("Telegram relay enabled")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop both loops and close the HTTP client.

        Polling stops first so no new updates are dispatched.  The poller
        is joined only briefly since a long poll in flight cannot be
        interrupted; its response is discarded when it arrives.  Outbound
        messages queued before this call are then still attempted (within
        ``timeout``).  If the sender is still draining when ``timeout``
        expires, the HTTP client is left open for it.  Safe to call more
        than once.

        Args:
            timeout: Seconds to wait for the sender to drain.
        """
        if self._stopped:
            return
        self._stopped = True

        logger.info("Stopping Telegram relay...")
        self._poller.stop(timeout=min(timeout, POLLER_JOIN_TIMEOUT))
        drained = self._sender.stop(timeout=timeout)
        if drained:
            self._client.close()
        else:
            logger.warning(
                "Leaving HTTP client open for %d undelivered message(s)",
                self._sender.pending,
            )
        logger.info("Telegram relay stopped")

    def enqueue(self, message: OutboundMessage) -> None:
        """Queue a message for delivery.  Never blocks.

        Raises:
            ValueError: If ``message`` is None.
        """
        self._sender.enqueue(message)

    def enqueue_for_administrators(
        self, text: str, format: MessageFormat = MessageFormat.HTML
    ) -> None:
        """Queue one copy of ``text`` for every administrator.

        Raises:
            ValueError: If ``text`` is None.
        """
        if text is None:
            raise ValueError("text must not be None")

        for chat_id in sorted(self._policy.administrators):
            self._sender.enqueue(
                OutboundMessage(chat_id=chat_id, text=text, format=format)
            )

    def update_policy(
        self,
        *,
        administrators: Iterable[int] | None = None,
        whitelist: Iterable[int] | None = None,
        allow_all: bool | None = None,
    ) -> AuthorizationPolicy:
        """Replace parts of the authorization policy.

        The new policy is built as a copy and swapped in with a single
        assignment, so the poller sees either the old or the new policy.

        Returns:
            The new policy.
        """
        changes: dict[str, object] = {}
        if administrators is not None:
            changes["administrators"] = frozenset(administrators)
        if whitelist is not None:
            changes["whitelist"] = frozenset(whitelist)
        if allow_all is not None:
            changes["allow_all"] = allow_all

        policy = dataclasses.replace(self._policy, **changes)
        self._policy = policy
        logger.info(
            "Authorization policy updated: %d administrator(s), "
            "%d whitelisted chat(s), allow_all=%s",
            len(policy.administrators),
            len(policy.whitelist),
            policy.allow_all,
        )
        return policy

    def add_message_handler(self, handler: MessageHandler) -> None:
        """Register a handler for admitted inbound messages.

        Handlers run on the poller thread, in registration order.
        """
        with self._handlers_lock:
            self._handlers.append(handler)

    def remove_message_handler(self, handler: MessageHandler) -> None:
        """Unregister a handler.  Unknown handlers are ignored."""
        with self._handlers_lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def _notify_handlers(self, message: InboundMessage) -> None:
        """Deliver an admitted message to every handler."""
        with self._handlers_lock:
            handlers = list(self._handlers)

        if not handlers:
            logger.debug(
                "No handler registered for message from chat %d",
                message.chat_id,
            )

        for handler in handlers:
            try:
                handler(self, message)
            except Exception:
                logger.exception(
                    "Message handler failed for message from chat %d",
                    message.chat_id,
                )

    def _reject(self, message: InboundMessage) -> None:
        """Answer a rejected chat and alert the administrators."""
        self.enqueue(message.create_response(REJECTION_REPLY))
        self.enqueue_for_administrators(format_rejection_alert(message))
