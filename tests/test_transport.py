"""Tests for the WebSocket transport against a local websockets server."""

from __future__ import annotations

import base64
import logging
import socket
import threading
from dataclasses import replace

import httpx
import pytest
from websockets.sync.server import serve

from conftest import wait_for
from parkchat.client import ChatClient, ClientConfig
from parkchat.exceptions import ConnectError
from parkchat.history import HistoryFetcher
from parkchat.session import Identity, Session
from parkchat.transport import open_connection, room_ws_url

pytestmark = pytest.mark.filterwarnings("error::DeprecationWarning")


class RoomServer:
    """Accepts room connections and records what each handshake carried."""

    def __init__(self) -> None:
        self.paths: list[str] = []
        self.auth_headers: list[str | None] = []
        self.connected = threading.Event()
        self._server = serve(self._handler, "127.0.0.1", 0)
        self.port = self._server.socket.getsockname()[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    def _handler(self, connection) -> None:
        self.paths.append(connection.request.path)
        self.auth_headers.append(connection.request.headers.get("Authorization"))
        self.connected.set()
        for _ in connection:
            pass

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._thread.join(timeout=2.0)


@pytest.fixture
def room_server():
    server = RoomServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def identity() -> Identity:
    return Identity("me", "secret")


def test_library_keepalive_is_disabled(room_server, identity):
    websocket = open_connection(room_ws_url("127.0.0.1", room_server.port, "general"), identity)
    try:
        assert websocket.ping_interval is None
        assert websocket.ping_timeout is None
    finally:
        websocket.close()


def test_handshake_carries_room_path_and_basic_auth(room_server, identity):
    url = room_ws_url("127.0.0.1", room_server.port, "Back Room")
    websocket = open_connection(url, identity)
    try:
        assert room_server.connected.wait(timeout=2.0)
    finally:
        websocket.close()

    assert room_server.paths == ["/ws/Back%20Room"]
    expected = base64.b64encode(b"me:secret").decode("ascii")
    assert room_server.auth_headers == [f"Basic {expected}"]


def test_refused_dial_raises_connect_error(identity):
    # Bind then release a port so nothing is listening on it.
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    with pytest.raises(ConnectError) as exc_info:
        open_connection(room_ws_url("127.0.0.1", port, "general"), identity, timeout_s=2.0)
    assert exc_info.value.url.endswith("/ws/general")


def test_room_switch_is_logged_as_expected_closure(room_server, renderer, config, caplog):
    config.update({"server_ip": "127.0.0.1", "websocket_port": str(room_server.port)})
    http_client = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"[]"))
    )
    client = ChatClient(
        Session(Identity("me", "secret")),
        renderer,
        replace(ClientConfig.from_dict(config), idle_interval_s=0.01),
        history=HistoryFetcher(http_client=http_client),
    )
    try:
        with caplog.at_level(logging.DEBUG, logger="parkchat.client"):
            first = client.join_room("general")
            client.start()
            assert wait_for(lambda: len(room_server.paths) == 1)

            client.join_room("random")

            assert wait_for(lambda: first.dead)
            assert wait_for(lambda: "Connection to room general closed" in caplog.text)
        assert "Error reading from room general" not in caplog.text
        assert "lost" not in renderer.console.file.getvalue()
        assert room_server.paths == ["/ws/general", "/ws/random"]
    finally:
        client.close()
        http_client.close()
