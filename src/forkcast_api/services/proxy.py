from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional

import httpx

from forkcast.core.config import ProxyConfig
from forkcast.errors import UpstreamError, UpstreamTimeout, ValidationError
from forkcast.limits import MAX_MESSAGE_UNITS, utf16_len
from forkcast.llm.client import CompletionClient, Sleep, completion_text
from forkcast.llm.sse import iter_deltas


logger = logging.getLogger("forkcast.proxy")


# Friendly texts; the chat UI renders these as assistant replies
MISSING_KEY_STREAM_TEXT = (
    "The AI service is temporarily unavailable due to missing configuration. "
    "Please add GROQ_API_KEY and try again."
)
MISSING_KEY_TEXT = (
    "The AI service is temporarily unavailable due to missing server configuration. "
    "You can still explore features and FAQs, or try again later."
)
BUSY_TEXT = "Service is busy. Please wait a moment and try again."
AUTH_TEXT = "The AI service is unavailable due to authentication issues. Please try again later while we resolve it."
HIGH_LOAD_TEXT = "The AI service is experiencing high load. Please try again in a moment."
UNPROCESSED_TEXT = "I couldn't process your request right now. Please try again in a moment."
TIMEOUT_TEXT = "The request timed out. Please try again with a shorter message or retry shortly."
NO_CONTENT_TEXT = "I apologize, but I couldn't generate a response. Please try again."
STREAM_UNAVAILABLE_TEXT = "Streaming not available."

RATE_LIMITED_TEXT = "Too many requests. Please wait a moment and try again."
AUTH_CONFIG_TEXT = "Service temporarily unavailable. Please try again later."
CONNECTION_TEXT = "Connection timeout. Please try again."
UNEXPECTED_TEXT = "An unexpected error occurred. Please try again."


class ReplyKind(str, Enum):
    OK = "ok"
    SOFT_FAIL = "soft_fail"  # degraded, still HTTP 200 with a renderable message
    HARD_FAIL = "hard_fail"  # real 4xx with an error string


@dataclass
class ProxyReply:
    kind: ReplyKind
    status_code: int = 200
    content: Optional[str] = None
    notice: Optional[str] = None
    error: Optional[str] = None
    stream: Optional[AsyncIterator[bytes]] = None

    @classmethod
    def ok(cls, content: str) -> "ProxyReply":
        return cls(kind=ReplyKind.OK, content=content)

    @classmethod
    def streaming(cls, body: AsyncIterator[bytes], kind: ReplyKind = ReplyKind.OK) -> "ProxyReply":
        return cls(kind=kind, stream=body)

    @classmethod
    def soft_fail(cls, content: str, notice: Optional[str] = None) -> "ProxyReply":
        return cls(kind=ReplyKind.SOFT_FAIL, content=content, notice=notice)

    @classmethod
    def hard_fail(cls, status_code: int, error: str) -> "ProxyReply":
        return cls(kind=ReplyKind.HARD_FAIL, status_code=status_code, error=error)

    def body(self) -> dict:
        if self.kind is ReplyKind.HARD_FAIL:
            return {"error": self.error}
        out: dict = {"content": self.content}
        if self.notice is not None:
            out["notice"] = self.notice
        return out


def stream_requested(flag: Optional[str]) -> bool:
    return (flag or "").strip().lower() in {"1", "true"}


def validate_history(payload: Any, max_chars: int = MAX_MESSAGE_UNITS) -> list[dict]:
    if not isinstance(payload, dict):
        raise ValidationError("Messages array is required")
    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise ValidationError("Messages array is required")
    if not all(isinstance(m, dict) for m in messages):
        raise ValidationError("Each message must be an object")
    content = messages[-1].get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Message content is required")
    if utf16_len(content) > max_chars:
        raise ValidationError("Message too long")
    return messages


def classify_failure(exc: BaseException) -> ProxyReply:
    """Map an unexpected error to a friendly HTTP 200 reply by its message text."""
    text = str(exc).lower()
    if "rate limit" in text:
        return ProxyReply.soft_fail(RATE_LIMITED_TEXT, "rate limit")
    if "api key" in text or "authentication" in text:
        return ProxyReply.soft_fail(AUTH_CONFIG_TEXT, "auth config")
    if any(s in text for s in ("timeout", "timed out", "econnreset", "connection reset")):
        return ProxyReply.soft_fail(CONNECTION_TEXT, "timeout/ECONNRESET")
    return ProxyReply.soft_fail(UNEXPECTED_TEXT)


def reply_for_status(err: UpstreamError) -> ProxyReply:
    status = err.status_code
    logger.error("Upstream gave up with %s after %d attempt(s): %s", status, err.attempts, err.body[:500])
    if status == 429:
        return ProxyReply.hard_fail(429, BUSY_TEXT)
    if status == 401:
        return ProxyReply.soft_fail(AUTH_TEXT, "Upstream API 401")
    if status >= 500:
        return ProxyReply.soft_fail(HIGH_LOAD_TEXT, f"Upstream API {status} after {err.attempts} attempts")
    return ProxyReply.soft_fail(UNPROCESSED_TEXT, f"Unhandled upstream error {status}")


def has_body(resp: httpx.Response) -> bool:
    return resp.status_code != 204 and resp.headers.get("content-length") != "0"


async def _one_shot(text: str) -> AsyncIterator[bytes]:
    yield text.encode("utf-8")


class CompletionProxy:
    """Stateless handler behind ``POST /api/chat``.

    Every upstream failure is absorbed here: callers only ever see a rendered
    reply (ok / soft_fail) or an input/busy error (hard_fail).
    """

    def __init__(
        self,
        config: ProxyConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self._transport = transport
        self._sleep = sleep

    async def handle(self, payload: Any, *, stream: bool) -> ProxyReply:
        try:
            history = validate_history(payload, self.config.max_message_chars)
        except ValidationError as e:
            logger.info("Rejected chat payload: %s", e.message)
            return ProxyReply.hard_fail(e.http_status, e.message)

        if not self.config.api_key:
            logger.error("GROQ_API_KEY not found in environment variables")
            if stream:
                return ProxyReply.streaming(_one_shot(MISSING_KEY_STREAM_TEXT), kind=ReplyKind.SOFT_FAIL)
            return ProxyReply.soft_fail(MISSING_KEY_TEXT, "Missing GROQ_API_KEY on server")

        try:
            return await self._forward(history, stream=stream)
        except Exception as e:
            logger.exception("Chat proxy error")
            return classify_failure(e)

    async def _forward(self, history: list[dict], *, stream: bool) -> ProxyReply:
        client = CompletionClient(self.config, transport=self._transport, sleep=self._sleep)
        handed_off = False
        try:
            try:
                resp = await client.open(history, stream=stream)
            except UpstreamTimeout as e:
                logger.warning("%s", e)
                return ProxyReply.soft_fail(TIMEOUT_TEXT, "upstream timeout")
            except UpstreamError as e:
                return reply_for_status(e)

            if not stream:
                try:
                    data = resp.json()
                except ValueError:
                    logger.warning("Upstream returned a non-JSON body")
                    data = None
                return ProxyReply.ok(completion_text(data) or NO_CONTENT_TEXT)

            if not has_body(resp):
                await resp.aclose()
                return ProxyReply.soft_fail(STREAM_UNAVAILABLE_TEXT, "Upstream returned no stream body")

            handed_off = True
            return ProxyReply.streaming(self._relay(resp, client))
        finally:
            if not handed_off:
                await client.aclose()

    async def _relay(self, resp: httpx.Response, client: CompletionClient) -> AsyncIterator[bytes]:
        sent = 0
        try:
            async for piece in iter_deltas(resp.aiter_bytes()):
                sent += len(piece)
                yield piece
        except Exception as e:
            # The body must still end cleanly for the client
            logger.warning("Upstream stream interrupted after %d bytes: %s", sent, e, exc_info=True)
        finally:
            await resp.aclose()
            await client.aclose()
            logger.debug("Stream closed after %d bytes", sent)
