"""Incremental decoding of OpenAI-compatible server-sent-event streams.

Upstream bodies arrive in arbitrary byte chunks: a chunk may end in the middle
of a line or in the middle of a multi-byte UTF-8 character. The parser keeps
both the undecoded bytes and the unterminated trailing line until the next
chunk completes them.
"""

from __future__ import annotations

import codecs
import json
from typing import Any, AsyncIterable, AsyncIterator, List, Optional


DATA_PREFIX = "data:"
DONE_SENTINEL = "data: [DONE]"


def delta_content(payload: Any) -> Optional[str]:
    """Return ``choices[0].delta.content`` when it is a non-empty string."""
    try:
        content = payload["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    if isinstance(content, str) and content:
        return content
    return None


def parse_line(line: str) -> Optional[str]:
    """Extract the text delta carried by one SSE line, if any.

    Blank lines, comments/keepalives, the ``[DONE]`` sentinel and frames that
    are not valid JSON all yield ``None``.
    """
    line = line.strip()
    if not line or line == DONE_SENTINEL:
        return None
    if not line.startswith(DATA_PREFIX):
        return None
    try:
        payload = json.loads(line[len(DATA_PREFIX):].strip())
    except json.JSONDecodeError:
        return None
    return delta_content(payload)


class SSEDeltaParser:
    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        deltas = []
        for line in lines:
            delta = parse_line(line)
            if delta:
                deltas.append(delta)
        return deltas

    def flush(self) -> List[str]:
        """Parse whatever is left once the body is exhausted."""
        rest = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        delta = parse_line(rest)
        return [delta] if delta else []


async def iter_deltas(chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """Re-encode every text delta of an SSE byte stream as soon as it is parsed."""
    parser = SSEDeltaParser()
    async for chunk in chunks:
        for delta in parser.feed(chunk):
            yield delta.encode("utf-8")
    for delta in parser.flush():
        yield delta.encode("utf-8")
