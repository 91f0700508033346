# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Thin HTTP client for the two Bot API methods the relay uses.

Network-level failures are translated into ``TransportError`` so the
sender and poller loops do not need to know about ``httpx``.
"""

from __future__ import annotations

import logging

import httpx

from tgrelay.errors import PollError, TransportError


logger = logging.getLogger(__name__)

#: Default Bot API endpoint.
DEFAULT_API_URL = "https://api.telegram.org"


def build_http_client(
    api_url: str,
    token: str,
    *,
    long_poll_timeout: int,
    request_timeout: float,
) -> httpx.Client:
    """Create the shared ``httpx.Client`` for a bot.

    The read timeout must outlast the server-side long-poll ceiling,
    otherwise every idle ``getUpdates`` would end in a timeout.

    Args:
        api_url: Bot API base URL (e.g. ``https://api.telegram.org``).
        token: Bot authentication token.
        long_poll_timeout: ``getUpdates`` timeout in seconds.
        request_timeout: Connect/write/pool timeout in seconds.

    Returns:
        Configured client whose base URL includes the bot token.
    """
    return httpx.Client(
        base_url=f"{api_url.rstrip('/')}/bot{token}/",
        timeout=httpx.Timeout(
            request_timeout, read=long_poll_timeout + request_timeout
        ),
    )


class BotApiClient:
    """Performs ``sendMessage`` and ``getUpdates`` calls.

    ``httpx.Client`` is thread-safe, so one instance is shared by the
    sender and poller threads.

    Args:
        http_client: Client with the bot's base URL.
        long_poll_timeout: ``timeout`` parameter for ``getUpdates``.
    """

    def __init__(
        self, http_client: httpx.Client, long_poll_timeout: int
    ) -> None:
        self._http = http_client
        self._long_poll_timeout = long_poll_timeout

    @property
    def long_poll_timeout(self) -> int:
        """Server-side long-poll ceiling in seconds."""
        return self._long_poll_timeout

    def send_message(self, body: bytes) -> httpx.Response:
        """POST an encoded ``sendMessage`` body.

        Args:
            body: JSON body from ``encode_outbound``.

        Returns:
            The response, whatever its status.

        Raises:
            TransportError: On timeouts and connection failures.
        """
        try:
            return self._http.post(
                "sendMessage",
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.TransportError as e:
            raise TransportError(f"sendMessage failed: {e}") from e

    def get_updates(self, offset: int) -> str:
        """Long-poll for updates with ids at or above ``offset``.

        Args:
            offset: First update id to return.

        Returns:
            Raw response body.

        Raises:
            PollError: If the response status is not 2xx.
            TransportError: On timeouts and connection failures.
        """
        try:
            response = self._http.get(
                "getUpdates",
                params={"timeout": self._long_poll_timeout, "offset": offset},
            )
        except httpx.TransportError as e:
            raise TransportError(f"getUpdates failed: {e}") from e

        if not response.is_success:
            raise PollError(response.status_code)
        return response.text

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
