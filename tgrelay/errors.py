# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception hierarchy shared by the relay components."""


class RelayError(Exception):
    """Base exception for relay errors."""


class EncodingError(RelayError):
    """Raised when an outbound message cannot be encoded for the Bot API."""


class ProtocolError(RelayError):
    """Raised when an update from the Bot API is malformed."""


class TransportError(RelayError):
    """Raised when an HTTP request fails at the network level."""


class PollError(RelayError):
    """Raised when ``getUpdates`` returns a non-success status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(
            f"Failed to fetch updates (status_code={status_code})"
        )
