# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Outbound message queue and the thread that drains it.

Any thread may enqueue; a single sender thread delivers messages one at a
time in FIFO order.  Delivery is best-effort: a message that fails is
logged and dropped, and the loop moves on to the next one.
"""

from __future__ import annotations

import logging
import queue
import threading

from tgrelay.client import BotApiClient
from tgrelay.codec import encode_outbound
from tgrelay.errors import EncodingError, TransportError
from tgrelay.messages import OutboundMessage


logger = logging.getLogger(__name__)

# Wakes the sender thread on shutdown.
_STOP = object()


class OutboundSender:
    """Unbounded FIFO queue with a dedicated delivery thread.

    Args:
        client: Bot API client used for ``sendMessage``.
    """

    def __init__(self, client: BotApiClient) -> None:
        self._client = client
        self._queue: queue.Queue[OutboundMessage | object] = queue.Queue()
        self._thread: threading.Thread | None = None

    @property
    def pending(self) -> int:
        """Approximate number of messages waiting for delivery."""
        return self._queue.qsize()

    def enqueue(self, message: OutboundMessage) -> None:
        """Append a message to the queue.  Never blocks.

        Raises:
            ValueError: If ``message`` is None.
        """
        if message is None:
            raise ValueError("message must not be None")
        self._queue.put(message)

    def start(self) -> None:
        """Start the delivery thread."""
        if self._thread is not None:
            logger.warning("Outbound sender already started, ignoring")
            return
        self._thread = threading.Thread(
            target=self._sender_loop,
            daemon=True,
            name="OutboundSender",
        )
        self._thread.start()
        logger.info("Outbound sender started")

    def stop(self, timeout: float = 10.0) -> bool:
        """Stop the delivery thread.

        Messages enqueued before this call are still attempted.  If the
        thread is still draining after ``timeout`` it keeps running and
        exits once it reaches the stop sentinel.

        Args:
            timeout: Seconds to wait for the thread to finish.

        Returns:
            True if the thread has finished (or was never started), False
            if it is still delivering queued messages.
        """
        thread = self._thread
        if thread is None:
            return True
        self._queue.put(_STOP)
        thread.join(timeout=timeout)
        self._thread = None
        if thread.is_alive():
            logger.warning(
                "Sender thread did not terminate within %.1fs "
                "(%d messages pending)",
                timeout,
                self.pending,
            )
            return False
        logger.info("Outbound sender stopped")
        return True

    def process_next(self, timeout: float | None = None) -> bool:
        """Dequeue and deliver one message.

        Blocks until a message is available.  Every failure is logged and
        swallowed so the caller can keep looping.

        Args:
            timeout: Seconds to wait for a message, None to wait forever.

        Returns:
            False if the stop sentinel was dequeued or the wait timed out,
            True otherwise.
        """
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return False

        try:
            if item is _STOP:
                return False
            assert isinstance(item, OutboundMessage)
            self._deliver(item)
        except EncodingError as e:
            logger.error("Dropping unsendable message: %s", e)
        except TransportError as e:
            logger.error("Error while sending message: %s", e)
        except Exception as e:
            logger.exception("Error while processing pending message: %s", e)
        finally:
            self._queue.task_done()
        return True

    def _sender_loop(self) -> None:
        """Deliver messages until the stop sentinel arrives."""
        while self.process_next():
            pass

    def _deliver(self, message: OutboundMessage) -> None:
        """Send one message and log the outcome."""
        body = encode_outbound(message)
        response = self._client.send_message(body)

        if not response.is_success:
            logger.warning(
                "Sending message failed (message='%s' status_code=%d)",
                message.text,
                response.status_code,
            )
            return

        logger.info(
            "Sent message '%s' to chat %d", message.text, message.chat_id
        )
