"""Terminal rendering and the bounded display pipeline."""

from __future__ import annotations

import contextlib
import logging
import queue
import re
import threading
from collections.abc import Callable, Iterator
from typing import Any, TextIO

from rich.console import Console
from rich.text import Text

from .models import Message, QueuedMessage

logger = logging.getLogger(__name__)

CLEAR_LINE = "\r\x1b[K"
ERASE_PREVIOUS_LINE = "\x1b[1A\r\x1b[K"
DEFAULT_QUEUE_SIZE = 10

_CAMEL_RE = re.compile(r"(?<=[a-z])(?=[A-Z])")


def rich_color(name: str | None) -> str | None:
    """Map a config color name (``brightCyan``) to a rich color (``bright_cyan``)."""
    if not name:
        return None
    return _CAMEL_RE.sub("_", name.strip()).lower()


class MessageFormatter:
    """Builds styled chat lines with timestamps and per-sender colors."""

    def __init__(self, config: dict[str, Any]):
        self.config = config

    def _colors(self, section: str) -> dict[str, str]:
        colors = self.config.get("colors") or {}
        return colors.get(section) or {}

    def _style(self, section: str, key: str, with_background: bool = False) -> str:
        colors = self._colors(section)
        parts = []
        fg = rich_color(colors.get(key))
        if fg:
            parts.append(fg)
        bg = rich_color(colors.get("background")) if with_background else None
        if bg:
            parts.append(f"on {bg}")
        return " ".join(parts)

    def format_timestamp(self, message: Message) -> str:
        fmt = self.config.get("timestamp_format") or "%H:%M"
        return message.timestamp.astimezone().strftime(fmt)

    def format_message(self, message: Message) -> Text:
        """Format ``{prefix}({time}) {nick}: {content}``."""
        if message.is_system:
            section, nick = "system", "System"
        elif message.nickname and message.nickname == self.config.get("nickname"):
            section, nick = "user", message.nickname
        else:
            section, nick = "messages", message.nickname

        line = Text(self.config.get("message_prefix") or "")
        line.append(f"({self.format_timestamp(message)})", style=self._style(section, "date"))
        line.append(" ")
        line.append(nick, style=self._style(section, "nickname", with_background=True))
        line.append(": ")
        line.append(message.content, style=self._style(section, "text"))
        return line

    def format_notice(self, text: str) -> Text:
        return Text(text, style=self._style("system", "text"))


class Renderer:
    """Writes chat lines without corrupting the line the user is typing.

    All terminal output goes through the render gate. Holding the gate with
    :meth:`hold` keeps the display dispatcher from rendering, which is how
    history replay stays ahead of live messages.
    """

    def __init__(
        self,
        config: dict[str, Any],
        *,
        console: Console | None = None,
        file: TextIO | None = None,
    ):
        self.formatter = MessageFormatter(config)
        self.prompt = config.get("prompt", "> ")
        self.console = console or Console(file=file, highlight=False, soft_wrap=True)
        self._gate = threading.RLock()
        self._history_ids: set[int] = set()

    @contextlib.contextmanager
    def hold(self) -> Iterator[None]:
        with self._gate:
            yield

    def _write(self, raw: str) -> None:
        self.console.file.write(raw)
        self.console.file.flush()

    def reset_seen(self) -> None:
        """Forget replayed history ids (called when joining a room)."""
        with self._gate:
            self._history_ids.clear()

    def render(
        self,
        message: Message,
        *,
        redraw_prompt: bool = True,
        from_history: bool = False,
    ) -> bool:
        """Render one message. Returns False if it was already shown.

        Only history ids are remembered. A live copy of a replayed message
        is skipped once and its id forgotten.
        """
        with self._gate:
            if message.id is not None:
                if message.id in self._history_ids:
                    if not from_history:
                        self._history_ids.discard(message.id)
                    logger.debug("Skipping already rendered message id=%s", message.id)
                    return False
                if from_history:
                    self._history_ids.add(message.id)

            self._write(CLEAR_LINE)
            self.console.print(self.formatter.format_message(message))
            if redraw_prompt:
                self.show_prompt()
            return True

    def notice(self, text: str, *, redraw_prompt: bool = False) -> None:
        with self._gate:
            self._write(CLEAR_LINE)
            self.console.print(self.formatter.format_notice(text))
            if redraw_prompt:
                self.show_prompt()

    def show_prompt(self) -> None:
        with self._gate:
            self._write(self.prompt)

    def erase_input_echo(self) -> None:
        """Remove the line the terminal echoed after the user pressed enter."""
        with self._gate:
            self._write(ERASE_PREVIOUS_LINE)


class DisplayQueue:
    """Bounded FIFO between the reader and the dispatcher.

    A full queue blocks the producer; nothing is dropped.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize < 1:
            raise ValueError("display queue size must be at least 1")
        self.maxsize = maxsize
        self._queue: queue.Queue[QueuedMessage] = queue.Queue(maxsize=maxsize)

    def put(self, item: QueuedMessage, timeout: float | None = None) -> None:
        """Enqueue, blocking while the queue is full.

        Raises:
            queue.Full: If ``timeout`` elapses first
        """
        self._queue.put(item, block=True, timeout=timeout)

    def get(self, timeout: float | None = None) -> QueuedMessage:
        """Dequeue the oldest entry.

        Raises:
            queue.Empty: If ``timeout`` elapses first
        """
        return self._queue.get(block=True, timeout=timeout)

    def task_done(self) -> None:
        self._queue.task_done()

    def join(self) -> None:
        self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()


class DisplayDispatcher:
    """Drains the display queue in order and renders each entry."""

    def __init__(
        self,
        display_queue: DisplayQueue,
        renderer: Renderer,
        is_current: Callable[[int], bool],
        *,
        poll_interval_s: float = 0.25,
    ):
        self.queue = display_queue
        self.renderer = renderer
        self.is_current = is_current
        self.poll_interval_s = poll_interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="parkchat-display", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None

    def dispatch(self, item: QueuedMessage) -> bool:
        """Render one entry unless its connection has been superseded."""
        with self.renderer.hold():
            if not self.is_current(item.generation):
                logger.debug(
                    "Dropping message from stale connection generation %d",
                    item.generation,
                )
                return False
            return self.renderer.render(item.message)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                item = self.queue.get(timeout=self.poll_interval_s)
            except queue.Empty:
                continue
            try:
                self.dispatch(item)
            except Exception as e:
                logger.exception("Error rendering message: %s", e)
            finally:
                self.queue.task_done()
