# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Telegram Bot API wire format.

Encodes outbound messages into ``sendMessage`` request bodies and decodes
``getUpdates`` responses into updates and inbound messages.  The module is
stateless; all functions are safe to call from any thread.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from tgrelay.errors import EncodingError, ProtocolError
from tgrelay.messages import InboundMessage, MessageFormat, OutboundMessage


logger = logging.getLogger(__name__)

#: Maximum text length accepted by ``sendMessage``.
MAX_MESSAGE_LENGTH = 4096

#: ``parse_mode`` value for HTML formatted messages.
HTML_PARSE_MODE = "HTML"


def encode_outbound(message: OutboundMessage) -> bytes:
    """Serialize a message into a ``sendMessage`` JSON body.

    Args:
        message: Message to encode.

    Returns:
        UTF-8 encoded JSON body.

    Raises:
        EncodingError: If the text exceeds ``MAX_MESSAGE_LENGTH``.
    """
    if len(message.text) > MAX_MESSAGE_LENGTH:
        raise EncodingError(
            f"Message text is too long ({len(message.text)} > "
            f"{MAX_MESSAGE_LENGTH} characters)"
        )

    payload: dict[str, Any] = {
        "chat_id": message.chat_id,
        "text": message.text,
    }
    if message.format is MessageFormat.HTML:
        payload["parse_mode"] = HTML_PARSE_MODE

    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode_poll_response(
    raw_body: str | bytes,
) -> tuple[bool, list[dict[str, Any]]]:
    """Decode a ``getUpdates`` response body.

    Anything that is not a JSON object with a truthy ``ok`` field and a
    ``result`` list decodes to ``(False, [])``.  Telegram occasionally
    returns such bodies during incidents; they are treated as "nothing
    new" rather than errors.

    Args:
        raw_body: Response body.

    Returns:
        Tuple of (ok, updates).  Non-object entries of ``result`` are
        dropped.
    """
    try:
        response = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Ignoring poll response that is not valid JSON")
        return False, []

    if not isinstance(response, dict) or not response.get("ok"):
        return False, []

    result = response.get("result")
    if not isinstance(result, list):
        return False, []

    return True, [update for update in result if isinstance(update, dict)]


def decode_update_id(raw_update: dict[str, Any]) -> int:
    """Extract ``update_id`` from a raw update.

    Raises:
        ProtocolError: If the id is missing or not an integer.
    """
    update_id = raw_update.get("update_id")
    # bool is an int subclass but never a valid id
    if not isinstance(update_id, int) or isinstance(update_id, bool):
        raise ProtocolError(f"Update has no valid update_id: {update_id!r}")
    return update_id


def decode_update(
    raw_update: dict[str, Any],
) -> tuple[int, InboundMessage | None]:
    """Decode a raw update into its id and inbound message.

    Updates without a ``message`` object (edited messages, channel posts,
    callback queries) decode to ``None`` so the caller can still advance
    its cursor past them.

    Args:
        raw_update: One entry of the ``getUpdates`` result list.

    Returns:
        Tuple of (update_id, message or None).

    Raises:
        ProtocolError: If the update id, chat id or date is unusable.
    """
    update_id = decode_update_id(raw_update)

    message = raw_update.get("message")
    if message is None:
        return update_id, None
    if not isinstance(message, dict):
        raise ProtocolError(f"Update {update_id}: message is not an object")

    chat = message.get("chat")
    chat_id = chat.get("id") if isinstance(chat, dict) else None
    if not isinstance(chat_id, int) or isinstance(chat_id, bool):
        raise ProtocolError(f"Update {update_id}: message has no chat id")

    date = message.get("date")
    if not isinstance(date, (int, float)) or isinstance(date, bool):
        raise ProtocolError(f"Update {update_id}: message has no date")

    text = message.get("text")
    if not isinstance(text, str):
        text = ""

    return update_id, InboundMessage(
        timestamp=_unix_to_local(date),
        chat_id=chat_id,
        text=text,
    )


def _unix_to_local(timestamp: float) -> datetime:
    """Convert Unix seconds to a timezone-aware local datetime."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone()
