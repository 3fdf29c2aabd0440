"""WebSocket transport for room connections."""

from __future__ import annotations

import contextlib
import logging
from urllib.parse import quote

from websockets.exceptions import ConnectionClosedOK, InvalidHandshake, InvalidURI
from websockets.sync.client import ClientConnection, connect

from .exceptions import ConnectError
from .session import ConnectionHandle, Identity

logger = logging.getLogger(__name__)


def room_ws_url(host: str, port: str | int, room: str) -> str:
    return f"ws://{host}:{port}/ws/{quote(room, safe='')}"


def room_history_url(host: str, port: str | int, room: str) -> str:
    return f"http://{host}:{port}/history/{quote(room, safe='')}"


def open_connection(
    url: str, identity: Identity, *, timeout_s: float = 10.0
) -> ClientConnection:
    """Open an authenticated WebSocket connection.

    The library keepalive is disabled: pings come only from the client's
    ping thread, and a stalled connection is never closed automatically.

    Raises:
        ConnectError: If the server is unreachable or rejects the handshake
    """
    logger.debug("Dialing %s as %s", url, identity.nickname)
    try:
        with contextlib.ExitStack() as stack:
            websocket = stack.enter_context(
                connect(
                    url,
                    additional_headers={
                        "Authorization": identity.authorization_header()
                    },
                    open_timeout=timeout_s,
                    ping_interval=None,
                    ping_timeout=None,
                )
            )
            # Ownership passes to the ConnectionHandle, which closes it.
            stack.pop_all()
        return websocket
    except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as e:
        raise ConnectError(url, str(e) or type(e).__name__) from e


def is_expected_closure(error: Exception, handle: ConnectionHandle) -> bool:
    """Tell an intentional close apart from a lost connection.

    Normal closure and going-away are expected, as is any failure on a
    connection this client already closed itself.
    """
    return isinstance(error, ConnectionClosedOK) or handle.closed
