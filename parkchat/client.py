from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .display import DEFAULT_QUEUE_SIZE, DisplayDispatcher, DisplayQueue, Renderer
from .exceptions import HistoryError, MessageDecodeError, NotConnectedError
from .history import HistoryFetcher
from .models import TYPE_CHAT, Message, QueuedMessage
from .session import ConnectionHandle, Identity, Session
from .transport import (
    is_expected_closure,
    open_connection,
    room_history_url,
    room_ws_url,
)

logger = logging.getLogger(__name__)

Dialer = Callable[..., Any]


@dataclass(frozen=True)
class ClientConfig:
    host: str = "chat.astelta.world"
    port: str = "8080"
    display_queue_size: int = DEFAULT_QUEUE_SIZE
    ping_interval_s: float = 30.0
    connect_timeout_s: float = 10.0
    history_timeout_s: float = 10.0
    idle_interval_s: float = 0.1

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> ClientConfig:
        return cls(
            host=config.get("server_ip") or cls.host,
            port=str(config.get("websocket_port") or cls.port),
            display_queue_size=int(
                config.get("display_queue_size", DEFAULT_QUEUE_SIZE)
            ),
            ping_interval_s=float(config.get("ping_interval_seconds", 30)),
            connect_timeout_s=float(config.get("connection_timeout_seconds", 10)),
            history_timeout_s=float(config.get("history_timeout_seconds", 10)),
        )


class ChatClient:
    """Owns the live room connection and the background workers.

    ``join_room`` is the only place the active connection changes. The
    reader, keepalive and senders take the session lock just long enough to
    read the handle or write one frame.
    """

    def __init__(
        self,
        session: Session,
        renderer: Renderer,
        config: ClientConfig | None = None,
        *,
        dialer: Dialer = open_connection,
        history: HistoryFetcher | None = None,
    ) -> None:
        self.session = session
        self.renderer = renderer
        self.config = config or ClientConfig()

        self._dialer = dialer
        self.history = history or HistoryFetcher(
            timeout_s=self.config.history_timeout_s
        )

        self.display_queue = DisplayQueue(self.config.display_queue_size)
        self.dispatcher = DisplayDispatcher(
            self.display_queue, renderer, session.is_current
        )

        self._stop = threading.Event()
        self._reader_thread: threading.Thread | None = None
        self._ping_thread: threading.Thread | None = None

    @property
    def identity(self) -> Identity:
        return self.session.identity

    @property
    def room(self) -> str:
        with self.session.lock:
            return self.session.room

    def join_room(self, room: str) -> ConnectionHandle:
        """Switch the session to ``room`` and replay its history.

        The previous connection is closed and its generation retired before
        the new one is dialed. History is rendered before this returns and
        before any live message of the new room.

        Raises:
            ValueError: If the room name is empty
            ConnectError: If the connection cannot be opened (fatal)
        """
        room = room.strip()
        if not room:
            raise ValueError("Room name cannot be empty.")

        with self.renderer.hold():
            with self.session.lock:
                previous = self.session.connection
                self.session.connection = None
                self.session.generation += 1
                generation = self.session.generation

                if previous is not None:
                    logger.info(
                        "Leaving room %s (generation %d)",
                        previous.room,
                        previous.generation,
                    )
                    previous.close()

                url = room_ws_url(self.config.host, self.config.port, room)
                websocket = self._dialer(
                    url, self.identity, timeout_s=self.config.connect_timeout_s
                )
                handle = ConnectionHandle(websocket, generation, room)
                self.session.connection = handle
                self.session.room = room

            logger.info(
                "Joined room %s as %s (generation %d)",
                room,
                self.identity.nickname,
                generation,
            )
            self.renderer.reset_seen()
            self.renderer.notice(f"Joined room '{room}' as {self.identity.nickname}")
            self._replay_history(room)
            self.renderer.show_prompt()

        return handle

    def _replay_history(self, room: str) -> int:
        url = room_history_url(self.config.host, self.config.port, room)
        try:
            messages = self.history.fetch(url, self.identity)
        except HistoryError as e:
            logger.warning("History for room %s unavailable: %s", room, e)
            self.renderer.notice(str(e))
            return 0

        if messages:
            self.renderer.notice("Room:")
        rendered = 0
        for message in messages:
            if self.renderer.render(
                message, redraw_prompt=False, from_history=True
            ):
                rendered += 1
        return rendered

    def send_message(self, text: str) -> Message:
        """Send chat text to the current room.

        Raises:
            NotConnectedError: If no connection is active
        """
        if not text.strip():
            raise ValueError("Message text cannot be empty.")

        with self.session.lock:
            handle = self.session.connection
            if handle is None:
                raise NotConnectedError("Not connected to a room.")
            message = Message(
                chat_room=self.session.room,
                nickname=self.identity.nickname,
                content=text,
                type=TYPE_CHAT,
            )
            handle.websocket.send(message.to_json())
        return message

    def start(self) -> None:
        """Start the reader, display dispatcher and keepalive threads."""
        self._stop.clear()
        self.dispatcher.start()

        if self._reader_thread is None:
            self._reader_thread = threading.Thread(
                target=self._read_loop, name="parkchat-reader", daemon=True
            )
            self._reader_thread.start()

        self.start_ping_thread(self.config.ping_interval_s)

    def close(self) -> None:
        self._stop.set()

        with self.session.lock:
            handle = self.session.connection
            self.session.connection = None
            self.session.generation += 1

        if handle is not None:
            handle.close()

        self.dispatcher.stop()
        for thread in (self._reader_thread, self._ping_thread):
            if thread is not None and thread.is_alive():
                thread.join(timeout=2.0)
        self._reader_thread = None
        self._ping_thread = None

    def start_ping_thread(self, interval: float) -> None:
        """Start a background thread that periodically pings the server."""
        if self._ping_thread is not None:
            return

        self._ping_thread = threading.Thread(
            target=self._ping_loop,
            args=(interval,),
            name="parkchat-ping",
            daemon=True,
        )
        self._ping_thread.start()

    def _ping_loop(self, interval: float) -> None:
        while not self._stop.wait(timeout=interval):
            self.ping()

    def ping(self) -> bool:
        """Ping the active connection. Failures are logged, never raised."""
        with self.session.lock:
            handle = self.session.connection
            if handle is None:
                return False
            try:
                handle.websocket.ping()
            except Exception as e:
                logger.warning("Error sending ping to room %s: %s", handle.room, e)
                return False
        return True

    def _read_loop(self) -> None:
        while not self._stop.is_set():
            handle = self.session.current_connection()

            if handle is None or handle.dead:
                self._stop.wait(self.config.idle_interval_s)
                continue

            try:
                data = handle.websocket.recv()
            except Exception as e:
                handle.mark_dead()
                if is_expected_closure(e, handle):
                    logger.debug("Connection to room %s closed: %s", handle.room, e)
                else:
                    logger.warning("Error reading from room %s: %s", handle.room, e)
                    self.renderer.notice(
                        f"Connection to room '{handle.room}' lost.", redraw_prompt=True
                    )
                continue

            self._handle_frame(handle, data)

    def _handle_frame(self, handle: ConnectionHandle, data: str | bytes) -> bool:
        try:
            message = Message.from_json(data)
        except MessageDecodeError as e:
            logger.warning(
                "Dropping malformed message from room %s: %s", handle.room, e
            )
            return False

        if not self.session.is_current(handle.generation):
            logger.debug("Dropping message read from superseded room %s", handle.room)
            return False

        self.display_queue.put(QueuedMessage(handle.generation, message))
        return True
