# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Health reporting for the relay's background loops."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ChannelHealth(Enum):
    """Health state of the inbound poller.

    Attributes:
        STARTING: No poll has completed yet.
        CONNECTED: The last poll succeeded.
        DEGRADED: The last poll failed, retrying with backoff.
        FAILED: Stopped, will not poll again.
    """

    STARTING = "starting"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class ChannelStatus:
    """Current status of the inbound poller.

    Attributes:
        health: Current health state.
        message: Human-readable status description
            (e.g. "poll failed (attempt 3)").
        error_type: Exception type name if degraded.
    """

    health: ChannelHealth
    message: str = ""
    error_type: str | None = None
