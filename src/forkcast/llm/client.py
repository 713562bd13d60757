from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

from forkcast.core.config import ProxyConfig
from forkcast.errors import UpstreamError, UpstreamTimeout
from forkcast.llm.retry import RetryState


logger = logging.getLogger("forkcast.llm")

Sleep = Callable[[float], Awaitable[None]]


def build_messages(history: Iterable[dict], *, system_prompt: str, window: int) -> list[dict]:
    """System instruction plus the trailing ``window`` turns, roles collapsed to user/assistant."""
    turns = list(history)
    tail = turns[-window:] if window > 0 else []
    messages = [{"role": "system", "content": system_prompt}]
    for turn in tail:
        messages.append({
            "role": "user" if turn.get("role") == "user" else "assistant",
            "content": turn.get("content"),
        })
    return messages


def completion_text(data: Any) -> Optional[str]:
    """Return ``choices[0].message.content`` of a non-streaming reply."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) and content else None


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class CompletionClient:
    """
    Async client for an OpenAI-compatible chat-completions endpoint.

    ``open()`` returns the first 2xx response; with ``stream=True`` the body is
    left unread so the caller can relay it and must ``aclose()`` it.
    Rate limits, 5xx and network failures are retried with linear backoff;
    every other non-2xx status raises ``UpstreamError`` immediately.
    """

    def __init__(
        self,
        config: ProxyConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=config.api_base,
            timeout=httpx.Timeout(config.timeout_s),
            transport=transport,
        )

    async def __aenter__(self) -> "CompletionClient":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # --- Public API ---------------------------------------------------------
    def build_payload(self, history: Iterable[dict], *, stream: bool) -> dict:
        cfg = self.config
        return {
            "model": cfg.model,
            "messages": build_messages(history, system_prompt=cfg.system_prompt, window=cfg.history_window),
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "stream": stream,
        }

    async def open(self, history: Iterable[dict], *, stream: bool) -> httpx.Response:
        payload = self.build_payload(history, stream=stream)
        state = RetryState(max_retries=self.config.max_retries, base_ms=self.config.backoff_ms)

        while True:
            try:
                resp = await self._attempt(payload, stream=stream)
            except UpstreamTimeout:
                state.fail()
                raise
            except httpx.TransportError as e:
                logger.warning("Upstream network error (attempt %d): %s", state.attempt, e)
                delay = state.retry()
                if delay is None:
                    raise
                await self._backoff(state, delay)
                continue

            if resp.is_success:
                state.succeed()
                return resp

            body = await self._drain(resp)
            logger.error("Upstream API error (attempt %d): %s %s", state.attempt, resp.status_code, body[:500])
            if is_retryable_status(resp.status_code):
                delay = state.retry()
                if delay is not None:
                    await self._backoff(state, delay)
                    continue
            else:
                state.fail()
            raise UpstreamError(
                f"Upstream HTTP {resp.status_code}",
                status_code=resp.status_code,
                attempts=state.attempt,
                body=body,
            )

    # --- Internals ----------------------------------------------------------
    async def _attempt(self, payload: dict, *, stream: bool) -> httpx.Response:
        request = self._http.build_request(
            "POST",
            "/chat/completions",
            json=payload,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        )
        # The deadline covers connecting and receiving the response head
        try:
            return await asyncio.wait_for(self._http.send(request, stream=stream), timeout=self.config.timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeout(
                f"Upstream request timed out after {self.config.timeout_s:g}s",
                timeout_s=self.config.timeout_s,
            ) from e

    async def _backoff(self, state: RetryState, delay: float) -> None:
        logger.info("Retrying upstream call in %.1fs (retry %d/%d)", delay, state.retries, state.max_retries)
        await self._sleep(delay)
        state.resume()

    @staticmethod
    async def _drain(resp: httpx.Response) -> str:
        try:
            await resp.aread()
            return resp.text
        except httpx.HTTPError as e:
            return str(e)
        finally:
            await resp.aclose()
