from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from forkcast.prompts import WELCOME_MESSAGE


DEFAULT_TITLE = "New Chat"
TITLE_WORDS = 4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def from_iso(raw: str) -> datetime:
    ts = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class IdFactory:
    """Millisecond-based ids that stay unique and increasing within a process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last = 0

    def __call__(self) -> str:
        with self._lock:
            self._last = max(self._last + 1, time.time_ns() // 1_000_000)
            return str(self._last)


new_id = IdFactory()


@dataclass
class Message:
    id: str
    role: str  # user | assistant
    content: str
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            id=str(data["id"]),
            role=data["role"],
            content=data.get("content") or "",
            created_at=from_iso(data["createdAt"]),
        )


@dataclass
class ChatSession:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    messages: List[Message] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSession":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or DEFAULT_TITLE,
            created_at=from_iso(data["createdAt"]),
            updated_at=from_iso(data["updatedAt"]),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
        )

    def is_untouched(self) -> bool:
        """Only the welcome message and the default title so far."""
        return len(self.messages) == 1 and self.title == DEFAULT_TITLE


def generate_session_title(first_message: str) -> str:
    words = first_message.split(" ")
    title = " ".join(words[:TITLE_WORDS])
    return title + ("..." if len(words) > TITLE_WORDS else "")


def new_session() -> ChatSession:
    now = utcnow()
    welcome = Message(id=new_id(), role="assistant", content=WELCOME_MESSAGE, created_at=now)
    return ChatSession(id=new_id(), title=DEFAULT_TITLE, created_at=now, updated_at=now, messages=[welcome])
