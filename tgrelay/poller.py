# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Inbound long-polling loop.

Repeatedly calls ``getUpdates`` with ``offset = cursor + 1``, advances the
cursor past every update it sees, and dispatches each decoded message to
either the admitted or the rejected callback depending on the current
authorization policy.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from tgrelay.authorization import AuthorizationPolicy
from tgrelay.client import BotApiClient
from tgrelay.codec import decode_poll_response, decode_update, decode_update_id
from tgrelay.errors import ProtocolError
from tgrelay.health import ChannelHealth, ChannelStatus
from tgrelay.messages import InboundMessage


logger = logging.getLogger(__name__)


def compute_backoff(failures: int, initial: float, maximum: float) -> float:
    """Return the wait before the next poll after ``failures`` failures.

    Doubles from ``initial`` and is capped at ``maximum``.  Zero failures,
    or ``initial == 0``, means retry immediately.
    """
    if failures <= 0 or initial <= 0:
        return 0.0
    return min(initial * 2 ** (failures - 1), maximum)


class InboundPoller:
    """Long-polls for updates in a background thread.

    The cursor is written only by the polling thread.

    Args:
        client: Bot API client used for ``getUpdates``.
        policy_provider: Returns the current authorization policy.  Called
            once per update so policy changes apply immediately.
        on_admitted: Called with each admitted message.
        on_rejected: Called with each rejected message.
        backoff_initial: First retry delay after a failed poll, seconds.
        backoff_max: Upper bound for the retry delay, seconds.
    """

    def __init__(
        self,
        client: BotApiClient,
        policy_provider: Callable[[], AuthorizationPolicy],
        on_admitted: Callable[[InboundMessage], None],
        on_rejected: Callable[[InboundMessage], None],
        *,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
    ) -> None:
        self._client = client
        self._policy_provider = policy_provider
        self._on_admitted = on_admitted
        self._on_rejected = on_rejected
        self._backoff_initial = backoff_initial
        self._backoff_max = backoff_max
        self._cursor = 0
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._status = ChannelStatus(health=ChannelHealth.STARTING)

    @property
    def cursor(self) -> int:
        """Highest update id processed so far (0 if none)."""
        return self._cursor

    @property
    def status(self) -> ChannelStatus:
        """Current health of the poller."""
        return self._status

    def start(self) -> None:
        """Start the polling thread."""
        if self._thread is not None:
            logger.warning("Inbound poller already started, ignoring")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="InboundPoller",
        )
        self._thread.start()
        logger.info(
            "Inbound poller started (long-poll timeout %ds)",
            self._client.long_poll_timeout,
        )

    def request_stop(self) -> None:
        """Ask the polling thread to stop without waiting for it.

        Updates that arrive after this call are not dispatched and do not
        advance the cursor.
        """
        self._stop_event.set()

    def stop(self, timeout: float = 10.0) -> None:
        """Stop polling.

        A long poll already in flight is not interrupted.  If it outlasts
        ``timeout`` the daemon thread is left to exit once it returns.

        Args:
            timeout: Seconds to wait for the thread to finish.
        """
        self.request_stop()
        thread = self._thread
        if thread is not None:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(
                    "Poller thread still waiting on a long poll after "
                    "%.1fs; it will exit when the request returns",
                    timeout,
                )
            else:
                logger.info("Inbound poller stopped")
            self._thread = None

        # Set after join so a cycle finishing mid-stop cannot overwrite it
        self._status = ChannelStatus(
            health=ChannelHealth.FAILED, message="stopped"
        )

    def poll_once(self) -> int:
        """Run one poll/decode/dispatch cycle.

        Returns:
            Number of updates processed (0 for an empty or ``ok:false``
            response, or if stop was requested while polling).

        Raises:
            PollError: If ``getUpdates`` returned a non-success status.
            TransportError: On network failures.
        """
        body = self._client.get_updates(offset=self._cursor + 1)
        if self._stop_event.is_set():
            # Cursor untouched so the batch is fetched again next run
            logger.debug("Discarding poll response received after stop")
            return 0

        ok, updates = decode_poll_response(body)
        if not ok:
            logger.debug("Poll response not ok, treating as empty")
            return 0

        processed = 0
        for raw_update in updates:
            if self._stop_event.is_set():
                logger.debug(
                    "Stopped with %d update(s) left in batch",
                    len(updates) - processed,
                )
                break
            self._process_update(raw_update)
            processed += 1
        return processed

    def _process_update(self, raw_update: dict[str, Any]) -> None:
        """Advance the cursor past one update and dispatch its message."""
        try:
            update_id = decode_update_id(raw_update)
        except ProtocolError as e:
            logger.warning("Skipping update: %s", e)
            return

        if update_id <= self._cursor:
            logger.debug("Skipping already processed update %d", update_id)
            return
        self._cursor = update_id

        try:
            _, message = decode_update(raw_update)
        except ProtocolError as e:
            logger.warning("Skipping malformed update: %s", e)
            return

        if message is None:
            logger.debug("Update %d carries no message, skipping", update_id)
            return

        if self._policy_provider().is_admitted(message.chat_id):
            self._on_admitted(message)
        else:
            logger.warning(
                "Rejected message from non-whitelisted chat %d",
                message.chat_id,
            )
            self._on_rejected(message)

    def _poll_loop(self) -> None:
        """Poll until stopped, backing off on consecutive failures."""
        failures = 0

        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                if self._stop_event.is_set():
                    # Long poll cancelled by shutdown
                    break
                failures += 1
                delay = compute_backoff(
                    failures, self._backoff_initial, self._backoff_max
                )
                logger.warning(
                    "Error while waiting for updates (attempt %d, "
                    "retrying in %.1fs): %s",
                    failures,
                    delay,
                    e,
                )
                self._status = ChannelStatus(
                    health=ChannelHealth.DEGRADED,
                    message=f"poll failed (attempt {failures})",
                    error_type=type(e).__name__,
                )
                if delay > 0:
                    self._stop_event.wait(delay)
                continue

            if failures:
                logger.info(
                    "Polling recovered after %d failed attempt(s)", failures
                )
            failures = 0
            if not self._stop_event.is_set():
                self._status = ChannelStatus(health=ChannelHealth.CONNECTED)
