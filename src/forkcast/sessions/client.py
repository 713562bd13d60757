from __future__ import annotations

import codecs
import logging
from typing import Callable, Optional

import httpx

from forkcast.errors import ForkcastError
from forkcast.limits import MAX_MESSAGE_UNITS, utf16_len
from forkcast.sessions.models import ChatSession, Message, generate_session_title, new_id, utcnow
from forkcast.sessions.store import SessionStore


logger = logging.getLogger("forkcast.sessions")

MAX_INPUT_CHARS = MAX_MESSAGE_UNITS
EMPTY_INPUT_TEXT = "Please enter a message."
TOO_LONG_TEXT = "Message is too long. Please keep it under 4000 characters."
FALLBACK_REPLY = (
    "The service is temporarily unavailable. Please try again shortly. "
    "You can still ask about features, safety, or how it works."
)
GENERIC_ERROR_TEXT = "An error occurred. Please try again."

Renderer = Callable[[ChatSession], None]


class ChatClient:
    """Sends the current session to the proxy and streams the reply into it.

    ``is_loading`` blocks new submissions until the current one settles;
    ``is_streaming`` is set while deltas are still arriving. ``error`` holds
    the inline error text of the last submission, if any.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_update: Optional[Renderer] = None,
        timeout: float = 60.0,
    ) -> None:
        self.store = store
        self.base_url = base_url
        self._transport = transport
        self._on_update = on_update
        self._timeout = timeout
        self.is_loading = False
        self.is_streaming = False
        self.error: Optional[str] = None

    def _render(self, session_id: str) -> None:
        if self._on_update is not None:
            self._on_update(self.store.get_session(session_id))

    async def send_message(self, text: str) -> Optional[Message]:
        """Submit ``text`` and return the assistant reply, or None when nothing was sent."""
        if self.is_loading:
            return None
        if not text.strip():
            self.error = EMPTY_INPUT_TEXT
            return None
        if utf16_len(text) > MAX_INPUT_CHARS:
            self.error = TOO_LONG_TEXT
            return None
        session = self.store.current_session
        if session is None:
            logger.warning("No current session found")
            return None

        content = text.strip()
        user_msg = Message(id=new_id(), role="user", content=content, created_at=utcnow())
        title = generate_session_title(content) if session.is_untouched() else None
        self.store.append_message(session.id, user_msg, title=title)
        history = [{"role": m.role, "content": m.content} for m in session.messages]

        self.is_loading = True
        self.error = None
        self._render(session.id)
        try:
            return await self._exchange(session.id, history)
        except httpx.HTTPError as e:
            logger.warning("Chat request failed: %s", e)
            self.error = str(e) or GENERIC_ERROR_TEXT
            return None
        except ForkcastError as e:
            logger.error("Chat reply could not be recorded: %s", e)
            self.error = GENERIC_ERROR_TEXT
            return None
        finally:
            self.is_loading = False
            self.is_streaming = False
            self._render(session.id)

    async def _exchange(self, session_id: str, history: list[dict]) -> Message:
        async with httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=self._timeout) as http:
            async with http.stream("POST", "/api/chat", params={"stream": "1"}, json={"messages": history}) as resp:
                if not resp.is_success or resp.status_code == 204:
                    body = await resp.aread()
                    logger.info("Proxy answered %s: %s", resp.status_code, body[:200])
                    return self._append_reply(session_id, FALLBACK_REPLY)

                # Degraded replies arrive as JSON even when a stream was requested
                if resp.headers.get("content-type", "").startswith("application/json"):
                    await resp.aread()
                    try:
                        content = resp.json().get("content")
                    except (ValueError, AttributeError):
                        content = None
                    return self._append_reply(session_id, content or FALLBACK_REPLY)

                self.is_streaming = True
                reply = self._append_reply(session_id, "")
                decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
                async for chunk in resp.aiter_bytes():
                    piece = decoder.decode(chunk)
                    if piece:
                        reply = self.store.append_to_message(session_id, reply.id, piece)
                        self._render(session_id)
                tail = decoder.decode(b"", final=True)
                if tail:
                    reply = self.store.append_to_message(session_id, reply.id, tail)
                return reply

    def _append_reply(self, session_id: str, content: str) -> Message:
        msg = Message(id=new_id(), role="assistant", content=content, created_at=utcnow())
        self.store.append_message(session_id, msg)
        self._render(session_id)
        return msg
