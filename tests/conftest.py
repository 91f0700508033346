# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test modules."""

import json
import threading
import time
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from tgrelay.client import BotApiClient
from tgrelay.config import RelayConfig
from tgrelay.dotenv_loader import reset_dotenv_state
from tgrelay.logging import SecretFilter


TEST_TOKEN = "123456:test-token"

#: Base URL matching what ``build_http_client`` produces for TEST_TOKEN.
TEST_BASE_URL = f"https://api.telegram.org/bot{TEST_TOKEN}/"


def make_config(**overrides: Any) -> RelayConfig:
    """Build a RelayConfig with test defaults."""
    defaults: dict[str, Any] = {
        "token": TEST_TOKEN,
        "administrators": frozenset({1, 2}),
        "whitelist": frozenset({42}),
        "allow_all": False,
        "long_poll_timeout": 60,
        "backoff_initial": 0.0,
        "backoff_max": 0.0,
    }
    defaults.update(overrides)
    return RelayConfig(**defaults)


def make_update(
    update_id: int,
    chat_id: int,
    text: str = "hello",
    date: int = 1_700_000_000,
) -> dict[str, Any]:
    """Build a raw ``getUpdates`` result entry."""
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id * 10,
            "date": date,
            "chat": {"id": chat_id, "type": "private"},
            "text": text,
        },
    }


def updates_response(*updates: dict[str, Any]) -> httpx.Response:
    """Build a successful ``getUpdates`` response."""
    return httpx.Response(200, json={"ok": True, "result": list(updates)})


PollReply = httpx.Response | Exception | Callable[[], httpx.Response]


class FakeBotApi:
    """In-memory Bot API served through ``httpx.MockTransport``.

    ``getUpdates`` replies are consumed from ``poll_replies`` in order;
    once exhausted, an empty result is returned after a short sleep so
    a polling thread does not spin.  ``sendMessage`` replies are consumed
    from ``send_replies`` and default to 200.

    Exceptions in either list are raised from the transport, which is
    how httpx surfaces network failures.  Callables are invoked outside
    the internal lock and their return value is the reply, which lets a
    test hold a request in flight.
    """

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.poll_offsets: list[int] = []
        self.poll_timeouts: list[int] = []
        self.poll_replies: list[PollReply] = []
        self.send_replies: list[PollReply] = []
        self._cond = threading.Condition()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sendMessage"):
            return self._handle_send(request)
        if request.url.path.endswith("/getUpdates"):
            return self._handle_poll(request)
        return httpx.Response(404, json={"ok": False})

    def _handle_send(self, request: httpx.Request) -> httpx.Response:
        with self._cond:
            self.sent.append(json.loads(request.content))
            reply = self.send_replies.pop(0) if self.send_replies else None
            self._cond.notify_all()
        if callable(reply):
            reply = reply()
        if isinstance(reply, Exception):
            raise reply
        return reply or httpx.Response(200, json={"ok": True, "result": {}})

    def _handle_poll(self, request: httpx.Request) -> httpx.Response:
        with self._cond:
            self.poll_offsets.append(int(request.url.params["offset"]))
            self.poll_timeouts.append(int(request.url.params["timeout"]))
            reply = self.poll_replies.pop(0) if self.poll_replies else None
            self._cond.notify_all()
        if callable(reply):
            reply = reply()
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            time.sleep(0.01)
            return updates_response()
        return reply

    def http_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=TEST_BASE_URL,
            transport=httpx.MockTransport(self.handler),
        )

    def wait_for(
        self, predicate: Callable[["FakeBotApi"], bool], timeout: float = 5.0
    ) -> bool:
        """Block until ``predicate(self)`` holds or the timeout expires."""
        with self._cond:
            return self._cond.wait_for(lambda: predicate(self), timeout)

    def wait_for_sent(self, count: int, timeout: float = 5.0) -> bool:
        return self.wait_for(lambda api: len(api.sent) >= count, timeout)

    def wait_for_polls(self, count: int, timeout: float = 5.0) -> bool:
        return self.wait_for(
            lambda api: len(api.poll_offsets) >= count, timeout
        )


@pytest.fixture
def bot_api() -> FakeBotApi:
    """Fake Bot API backend."""
    return FakeBotApi()


@pytest.fixture
def api_client(bot_api: FakeBotApi) -> Iterator[BotApiClient]:
    """BotApiClient talking to the fake backend."""
    client = BotApiClient(bot_api.http_client(), long_poll_timeout=60)
    yield client
    client.close()


@pytest.fixture(autouse=True)
def _reset_global_state() -> Iterator[None]:
    """Reset registered secrets and dotenv state around each test."""
    SecretFilter.clear_secrets()
    reset_dotenv_state()
    yield
    SecretFilter.clear_secrets()
    reset_dotenv_state()
