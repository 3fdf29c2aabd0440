"""Process-wide session state shared by the client's workers."""

from __future__ import annotations

import base64
import logging
import threading
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Credentials sent with every connection attempt and history request."""

    nickname: str
    password: str

    @property
    def basic_auth(self) -> tuple[str, str]:
        return (self.nickname, self.password)

    def authorization_header(self) -> str:
        token = base64.b64encode(
            f"{self.nickname}:{self.password}".encode("utf-8")
        ).decode("ascii")
        return f"Basic {token}"


class ConnectionHandle:
    """One transport connection and the generation it belongs to.

    The handle is closed at most once, no matter how many callers race to
    close it. A handle whose read failed is marked dead so the reader does
    not spin on it.
    """

    def __init__(self, websocket: Any, generation: int, room: str):
        self.websocket = websocket
        self.generation = generation
        self.room = room
        self._lock = threading.Lock()
        self._closed = False
        self._dead = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def dead(self) -> bool:
        with self._lock:
            return self._dead or self._closed

    def mark_dead(self) -> None:
        with self._lock:
            self._dead = True

    def close(self) -> bool:
        """Close the underlying connection. Returns False if already closed."""
        with self._lock:
            if self._closed:
                return False
            self._closed = True

        try:
            self.websocket.close()
        except Exception as e:
            logger.debug("Error closing connection to room %s: %s", self.room, e)
        return True

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<ConnectionHandle room={self.room!r} gen={self.generation} {state}>"


class Session:
    """Current room, identity and active connection behind a single lock.

    Only the connection manager swaps the active connection. Every other
    component reads it under ``lock`` and releases the lock before any
    blocking read.
    """

    def __init__(self, identity: Identity, room: str = ""):
        self.identity = identity
        self.room = room
        self.connection: ConnectionHandle | None = None
        self.generation = 0
        self.lock = threading.Lock()

    def current_connection(self) -> ConnectionHandle | None:
        with self.lock:
            return self.connection

    def is_current(self, generation: int) -> bool:
        with self.lock:
            return self.connection is not None and generation == self.generation
