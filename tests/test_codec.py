# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for the Bot API wire format."""

import json
from datetime import datetime, timezone

import pytest

from tgrelay.codec import (
    MAX_MESSAGE_LENGTH,
    decode_poll_response,
    decode_update,
    decode_update_id,
    encode_outbound,
)
from tgrelay.errors import EncodingError, ProtocolError
from tgrelay.messages import MessageFormat, OutboundMessage


class TestEncodeOutbound:
    def test_plain_text_has_no_parse_mode(self) -> None:
        body = encode_outbound(OutboundMessage(chat_id=7, text="hi"))
        assert json.loads(body) == {"chat_id": 7, "text": "hi"}

    def test_html_sets_parse_mode(self) -> None:
        msg = OutboundMessage(
            chat_id=7, text="<b>hi</b>", format=MessageFormat.HTML
        )
        assert json.loads(encode_outbound(msg)) == {
            "chat_id": 7,
            "text": "<b>hi</b>",
            "parse_mode": "HTML",
        }

    def test_text_is_json_escaped(self) -> None:
        text = 'He said "hi"\nand\\left'
        body = encode_outbound(OutboundMessage(chat_id=1, text=text))
        assert json.loads(body)["text"] == text

    def test_non_ascii_is_utf8(self) -> None:
        body = encode_outbound(OutboundMessage(chat_id=1, text="⚠️ hyvä"))
        assert "⚠️ hyvä".encode() in body

    def test_negative_chat_id(self) -> None:
        body = encode_outbound(OutboundMessage(chat_id=-100123, text="x"))
        assert json.loads(body)["chat_id"] == -100123

    def test_max_length_is_accepted(self) -> None:
        text = "a" * MAX_MESSAGE_LENGTH
        body = encode_outbound(OutboundMessage(chat_id=1, text=text))
        assert json.loads(body)["text"] == text

    def test_too_long_raises(self) -> None:
        text = "a" * (MAX_MESSAGE_LENGTH + 1)
        with pytest.raises(EncodingError, match="too long"):
            encode_outbound(OutboundMessage(chat_id=1, text=text))


class TestDecodePollResponse:
    def test_ok_with_updates(self) -> None:
        raw = json.dumps(
            {"ok": True, "result": [{"update_id": 1}, {"update_id": 2}]}
        )
        ok, updates = decode_poll_response(raw)
        assert ok is True
        assert [u["update_id"] for u in updates] == [1, 2]

    def test_ok_empty(self) -> None:
        assert decode_poll_response('{"ok": true, "result": []}') == (
            True,
            [],
        )

    def test_accepts_bytes(self) -> None:
        ok, updates = decode_poll_response(b'{"ok": true, "result": []}')
        assert ok is True
        assert updates == []

    @pytest.mark.parametrize(
        "raw",
        [
            '{"ok": false, "description": "Conflict"}',
            '{"ok": true}',
            '{"ok": true, "result": {}}',
            "[1, 2]",
            "not json",
            "",
        ],
    )
    def test_unusable_bodies_decode_as_not_ok(self, raw: str) -> None:
        assert decode_poll_response(raw) == (False, [])

    def test_non_object_entries_dropped(self) -> None:
        raw = json.dumps({"ok": True, "result": [1, {"update_id": 3}, None]})
        ok, updates = decode_poll_response(raw)
        assert ok is True
        assert updates == [{"update_id": 3}]


class TestDecodeUpdateId:
    def test_valid(self) -> None:
        assert decode_update_id({"update_id": 17}) == 17

    @pytest.mark.parametrize("value", [None, "17", 1.5, True])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(ProtocolError):
            decode_update_id({"update_id": value})

    def test_missing(self) -> None:
        with pytest.raises(ProtocolError):
            decode_update_id({})


class TestDecodeUpdate:
    def test_text_message(self) -> None:
        update_id, msg = decode_update(
            {
                "update_id": 5,
                "message": {
                    "date": 1_700_000_000,
                    "chat": {"id": 42},
                    "text": "hello",
                },
            }
        )
        assert update_id == 5
        assert msg is not None
        assert msg.chat_id == 42
        assert msg.text == "hello"

    def test_timestamp_is_local_and_aware(self) -> None:
        _, msg = decode_update(
            {
                "update_id": 1,
                "message": {"date": 0, "chat": {"id": 1}, "text": "x"},
            }
        )
        assert msg is not None
        assert msg.timestamp.tzinfo is not None
        assert msg.timestamp == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_missing_text_becomes_empty(self) -> None:
        _, msg = decode_update(
            {
                "update_id": 1,
                "message": {"date": 0, "chat": {"id": 1}, "photo": []},
            }
        )
        assert msg is not None
        assert msg.text == ""

    def test_update_without_message(self) -> None:
        assert decode_update(
            {"update_id": 9, "edited_message": {"text": "x"}}
        ) == (9, None)

    @pytest.mark.parametrize(
        "message",
        [
            "not an object",
            {"date": 0, "text": "x"},
            {"date": 0, "chat": {}, "text": "x"},
            {"date": 0, "chat": {"id": "42"}, "text": "x"},
            {"chat": {"id": 42}, "text": "x"},
            {"date": "yesterday", "chat": {"id": 42}, "text": "x"},
        ],
    )
    def test_malformed_message_raises(self, message: object) -> None:
        with pytest.raises(ProtocolError):
            decode_update({"update_id": 1, "message": message})
