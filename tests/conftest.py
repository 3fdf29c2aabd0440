"""Shared fixtures: an in-memory WebSocket and a scripted history server."""

from __future__ import annotations

import io
import json
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

import httpx
import pytest
from rich.console import Console
from websockets.exceptions import ConnectionClosedOK
from websockets.frames import Close

from parkchat.client import ChatClient, ClientConfig
from parkchat.config import get_default_config
from parkchat.display import Renderer
from parkchat.exceptions import ConnectError
from parkchat.history import HistoryFetcher
from parkchat.session import Identity, Session


class FakeWebSocket:
    """Blocking ``recv`` fed from a queue; ``close`` unblocks it."""

    def __init__(self, url: str):
        self.url = url
        self.inbox: queue.Queue[Any] = queue.Queue()
        self.sent: list[str] = []
        self.pings = 0
        self.close_calls = 0
        self.ping_error: Exception | None = None
        self._lock = threading.Lock()

    def feed(self, item: Any) -> None:
        self.inbox.put(item)

    def recv(self) -> str | bytes:
        item = self.inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def send(self, data: str) -> None:
        with self._lock:
            self.sent.append(data)

    def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error
        self.pings += 1

    def close(self) -> None:
        self.close_calls += 1
        self.inbox.put(ConnectionClosedOK(Close(1000, ""), Close(1000, ""), False))


class FakeDialer:
    """Records every dial and hands out a fresh FakeWebSocket."""

    def __init__(self) -> None:
        self.sockets: list[FakeWebSocket] = []
        self.headers: list[str] = []
        self.fail_with: str | None = None

    def __call__(self, url: str, identity: Identity, *, timeout_s: float = 10.0):
        if self.fail_with is not None:
            raise ConnectError(url, self.fail_with)
        ws = FakeWebSocket(url)
        self.sockets.append(ws)
        self.headers.append(identity.authorization_header())
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


def chat_json(
    content: str,
    *,
    nickname: str = "a",
    room: str = "general",
    mid: int | None = None,
    timestamp: str = "2024-05-01T12:00:00Z",
    kind: str = "chat",
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "chat_room": room,
        "nickname": nickname,
        "content": content,
        "timestamp": timestamp,
        "type": kind,
    }
    if mid is not None:
        data["id"] = mid
    return data


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class HistoryServer:
    """Maps room name to a JSON history response for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.rooms: dict[str, Any] = {}
        self.status: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.before_response: Callable[[httpx.Request], None] | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.before_response is not None:
            self.before_response(request)
        room = request.url.path.rsplit("/", 1)[-1]
        status = self.status.get(room, 200)
        if status != 200:
            return httpx.Response(status, text="nope")
        return httpx.Response(200, content=json.dumps(self.rooms.get(room, [])))


@pytest.fixture
def config() -> dict[str, Any]:
    cfg = get_default_config()
    cfg.update(
        {
            "nickname": "me",
            "password": "secret",
            "server_ip": "chat.test",
            "websocket_port": "8080",
            "prompt": "> ",
        }
    )
    return cfg


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def renderer(config, output) -> Renderer:
    console = Console(file=output, force_terminal=False, color_system=None, width=200)
    return Renderer(config, console=console)


@pytest.fixture
def dialer() -> FakeDialer:
    return FakeDialer()


@pytest.fixture
def history_server() -> HistoryServer:
    return HistoryServer()


@pytest.fixture
def session() -> Session:
    return Session(Identity("me", "secret"))


@pytest.fixture
def client(session, renderer, config, dialer, history_server):
    http_client = httpx.Client(transport=httpx.MockTransport(history_server.handler))
    client_config = replace(ClientConfig.from_dict(config), idle_interval_s=0.01)
    chat_client = ChatClient(
        session,
        renderer,
        client_config,
        dialer=dialer,
        history=HistoryFetcher(http_client=http_client),
    )
    yield chat_client
    chat_client.close()
    http_client.close()
