"""Foreground input loop: slash commands and chat text."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from .client import ChatClient
from .exceptions import NotConnectedError

logger = logging.getLogger(__name__)

HELP_TEXT = [
    "Commands:",
    "/room <name> - Switch to another room",
    "/help - Show this help message",
    "/exit - Log out and quit",
    "Anything else is sent to the current room.",
]


class InputLoop:
    """Reads user lines and turns them into client operations.

    ``ConnectError`` from a room switch is not handled here: without a room
    the client cannot continue, so it propagates to the entry point.
    """

    def __init__(self, client: ChatClient, stream: TextIO | None = None):
        self.client = client
        self.renderer = client.renderer
        self.stream = stream or sys.stdin
        self.running = False

    def run(self) -> None:
        self.running = True
        while self.running:
            line = self.stream.readline()
            if not line:
                logger.info("End of input, logging out")
                self._logout()
                break
            self.handle_line(line)

    def handle_line(self, line: str) -> None:
        text = line.strip()
        if not text:
            self.renderer.show_prompt()
            return

        if text.startswith("/") and self._handle_slash_command(text):
            return

        self.renderer.erase_input_echo()
        try:
            self.client.send_message(text)
        except NotConnectedError as e:
            self.renderer.notice(str(e), redraw_prompt=True)
        except Exception as e:
            logger.warning("Error sending message: %s", e)
            self.renderer.notice(f"Failed to send message: {e}", redraw_prompt=True)

    def _handle_slash_command(self, text: str) -> bool:
        """Handle slash commands. Returns True if handled client-side."""
        parts = text.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd in ["/exit", "/quit"]:
            self._logout()
            return True

        elif cmd == "/room":
            self.renderer.erase_input_echo()
            if not arg:
                self.renderer.notice("Usage: /room <name>", redraw_prompt=True)
                return True
            self.client.join_room(arg)
            return True

        elif cmd in ["/help", "/h", "/?"]:
            self.renderer.erase_input_echo()
            for line in HELP_TEXT:
                self.renderer.notice(line)
            self.renderer.show_prompt()
            return True

        return False

    def _logout(self) -> None:
        self.running = False
        self.renderer.notice("Logged out.")
        self.client.close()
