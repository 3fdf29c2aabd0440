"""Exception types raised by the ParkChat client."""

from __future__ import annotations


class ParkChatError(Exception):
    """Base class for client errors."""

    pass


class ConnectError(ParkChatError):
    """Raised when a room connection cannot be opened.

    The client cannot operate without a room, so callers treat this as fatal.
    """

    def __init__(self, url: str, reason: str):
        super().__init__(f"Could not connect to {url}: {reason}")
        self.url = url
        self.reason = reason


class HistoryError(ParkChatError):
    """Raised when a room's history could not be fetched or decoded."""

    pass


class MessageDecodeError(ParkChatError, ValueError):
    """Raised when an inbound payload is not a valid chat message."""

    pass


class NotConnectedError(ParkChatError):
    """Raised when sending while no connection is active."""

    pass
