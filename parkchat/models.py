"""Chat message model and JSON wire codec."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .exceptions import MessageDecodeError

TYPE_CHAT = "chat"
TYPE_SYSTEM = "system"
MESSAGE_TYPES = (TYPE_CHAT, TYPE_SYSTEM)

_RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?(?P<tz>[Zz]|[+-]\d{2}:\d{2})?$"
)


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC3339 timestamp.

    Fractions longer than microseconds (the server may send nanoseconds)
    are truncated. A missing offset is read as UTC.

    Raises:
        ValueError: If the value is not RFC3339
    """
    m = _RFC3339_RE.match(value.strip())
    if not m:
        raise ValueError(f"invalid RFC3339 timestamp {value!r}")

    text = f"{m.group('date')}T{m.group('time')}"
    frac = m.group("frac")
    if frac:
        text += "." + frac[:6].ljust(6, "0")

    tz = m.group("tz")
    if not tz or tz in ("Z", "z"):
        tz = "+00:00"

    return datetime.fromisoformat(text + tz)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC3339, assuming UTC for naive values."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A chat message as exchanged with the server."""

    chat_room: str
    nickname: str
    content: str
    timestamp: datetime = field(default_factory=utc_now)
    type: str = TYPE_CHAT
    id: int | None = None

    @property
    def is_system(self) -> bool:
        return self.type == TYPE_SYSTEM

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "chat_room": self.chat_room,
            "nickname": self.nickname,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
            "type": self.type,
        }
        if self.id:
            data["id"] = self.id
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> Message:
        """Build a message from a decoded JSON object.

        Raises:
            MessageDecodeError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise MessageDecodeError("message must be a JSON object")

        for key in ("chat_room", "nickname", "content"):
            value = data.get(key, "")
            if not isinstance(value, str):
                raise MessageDecodeError(f"message field {key!r} must be a string")

        mid = data.get("id")
        if mid is not None and (isinstance(mid, bool) or not isinstance(mid, int)):
            raise MessageDecodeError("message id must be an integer")

        msg_type = data.get("type") or TYPE_CHAT
        if msg_type not in MESSAGE_TYPES:
            raise MessageDecodeError(f"unknown message type {msg_type!r}")

        raw_ts = data.get("timestamp")
        if not isinstance(raw_ts, str):
            raise MessageDecodeError("message timestamp must be a string")
        try:
            timestamp = parse_timestamp(raw_ts)
        except ValueError as e:
            raise MessageDecodeError(str(e)) from e

        return cls(
            id=mid or None,
            chat_room=data.get("chat_room", ""),
            nickname=data.get("nickname", ""),
            content=data.get("content", ""),
            timestamp=timestamp,
            type=msg_type,
        )

    @classmethod
    def from_json(cls, payload: str | bytes) -> Message:
        """Decode a single message from a data frame payload."""
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            data = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MessageDecodeError(f"invalid JSON payload: {e}") from e
        return cls.from_dict(data)


def decode_history(payload: Any) -> list[Message]:
    """Decode a history response body (a JSON array, oldest first)."""
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise MessageDecodeError("history must be a JSON array")
    return [Message.from_dict(item) for item in payload]


@dataclass(frozen=True)
class QueuedMessage:
    """A message waiting for display, tagged with its connection generation."""

    generation: int
    message: Message
