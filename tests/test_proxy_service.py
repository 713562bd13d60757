import json

import httpx
import pytest

from forkcast_api.services import proxy as proxy_mod
from forkcast_api.services.proxy import (
    CompletionProxy,
    ReplyKind,
    classify_failure,
    stream_requested,
    validate_history,
)
from forkcast.errors import ValidationError

from conftest import Upstream, completion_json, sse_line, sse_response


HELLO = {"messages": [{"role": "user", "content": "Hello"}]}


def make_proxy(config, upstream, sleeps) -> CompletionProxy:
    return CompletionProxy(config, transport=upstream.transport, sleep=sleeps.sleep)


async def collect(reply) -> list:
    return [piece async for piece in reply.stream]


@pytest.mark.parametrize(
    "payload, error",
    [
        (None, "Messages array is required"),
        ({}, "Messages array is required"),
        ({"messages": []}, "Messages array is required"),
        ({"messages": "hello"}, "Messages array is required"),
        ({"messages": ["hello"]}, "Each message must be an object"),
        ({"messages": [{"role": "user"}]}, "Message content is required"),
        ({"messages": [{"role": "user", "content": "   \n"}]}, "Message content is required"),
        ({"messages": [{"role": "user", "content": 12}]}, "Message content is required"),
        ({"messages": [{"role": "user", "content": "x" * 4001}]}, "Message too long"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_payloads_are_rejected_without_upstream_call(config, sleeps, payload, error):
    upstream = Upstream(httpx.Response(200, json=completion_json("never")))
    reply = await make_proxy(config, upstream, sleeps).handle(payload, stream=False)

    assert reply.kind is ReplyKind.HARD_FAIL
    assert reply.status_code == 400
    assert reply.body() == {"error": error}
    assert upstream.calls == 0


def test_validation_only_checks_the_last_entry():
    history = [{"role": "assistant", "content": ""}, {"role": "user", "content": "x" * 4000}]
    assert validate_history({"messages": history}) == history
    with pytest.raises(ValidationError):
        validate_history({"messages": [{"role": "user", "content": "ok"}, {"role": "user", "content": " "}]})


@pytest.mark.parametrize("flag, expected", [("1", True), ("true", True), ("TRUE", True), ("0", False), ("false", False), (None, False), ("yes", False)])
def test_stream_flag(flag, expected):
    assert stream_requested(flag) is expected


@pytest.mark.asyncio
async def test_missing_api_key_degrades_to_json(config, sleeps):
    config.api_key = None
    upstream = Upstream(httpx.Response(200, json=completion_json("never")))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.kind is ReplyKind.SOFT_FAIL
    assert reply.status_code == 200
    assert reply.body() == {"content": proxy_mod.MISSING_KEY_TEXT, "notice": "Missing GROQ_API_KEY on server"}
    assert upstream.calls == 0


@pytest.mark.asyncio
async def test_missing_api_key_degrades_to_one_shot_stream(config, sleeps):
    config.api_key = None
    upstream = Upstream(httpx.Response(200, json=completion_json("never")))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    assert reply.kind is ReplyKind.SOFT_FAIL
    assert await collect(reply) == [proxy_mod.MISSING_KEY_STREAM_TEXT.encode()]
    assert upstream.calls == 0


@pytest.mark.asyncio
async def test_non_streaming_success(config, sleeps):
    upstream = Upstream(httpx.Response(200, json=completion_json("Glad to help!")))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.kind is ReplyKind.OK
    assert reply.body() == {"content": "Glad to help!"}


@pytest.mark.asyncio
async def test_non_streaming_without_content_uses_fallback(config, sleeps):
    upstream = Upstream(httpx.Response(200, json={"choices": []}))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.body() == {"content": proxy_mod.NO_CONTENT_TEXT}


@pytest.mark.asyncio
async def test_rate_limit_after_retries_is_429(config, sleeps):
    upstream = Upstream(httpx.Response(429, json={"error": {"message": "rate limited"}}))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.kind is ReplyKind.HARD_FAIL
    assert reply.status_code == 429
    assert reply.body() == {"error": proxy_mod.BUSY_TEXT}
    assert upstream.calls == 3
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_server_error_after_retries_is_soft_fail(config, sleeps):
    upstream = Upstream(httpx.Response(500, text="boom"))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    assert reply.kind is ReplyKind.SOFT_FAIL
    assert reply.status_code == 200
    body = reply.body()
    assert body["content"] == proxy_mod.HIGH_LOAD_TEXT
    assert body["notice"]
    assert upstream.calls == 3
    assert sleeps.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_unauthorized_is_answered_immediately(config, sleeps):
    upstream = Upstream(httpx.Response(401, json={"error": "invalid key"}))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.status_code == 200
    assert reply.content == proxy_mod.AUTH_TEXT
    assert reply.notice == "Upstream API 401"
    assert upstream.calls == 1
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_other_client_errors_get_generic_reply(config, sleeps):
    upstream = Upstream(httpx.Response(404, text="no such model"))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.status_code == 200
    assert reply.content == proxy_mod.UNPROCESSED_TEXT
    assert upstream.calls == 1


@pytest.mark.asyncio
async def test_timeout_gets_timeout_reply(config, sleeps):
    upstream = Upstream(httpx.ConnectTimeout("connect timed out"))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.kind is ReplyKind.SOFT_FAIL
    assert reply.content == proxy_mod.TIMEOUT_TEXT
    assert upstream.calls == 1


@pytest.mark.asyncio
async def test_exhausted_network_failures_reach_the_outer_handler(config, sleeps):
    upstream = Upstream(httpx.ConnectError("[Errno 104] Connection reset by peer"))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)

    assert reply.status_code == 200
    assert reply.content == proxy_mod.CONNECTION_TEXT
    assert upstream.calls == 3


@pytest.mark.asyncio
async def test_streaming_relays_exact_deltas(config, sleeps):
    upstream = Upstream(lambda request: sse_response(
        b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n',
        b'data: {"choices":[{"delta":{"content":" there"}}]}\n\n',
        b"data: [DONE]\n\n",
    ))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    assert reply.kind is ReplyKind.OK
    assert await collect(reply) == [b"Hi", b" there"]
    sent = upstream.requests[0]
    assert json.loads(sent.content)["stream"] is True


@pytest.mark.asyncio
async def test_streaming_survives_malformed_frames(config, sleeps):
    upstream = Upstream(lambda request: sse_response(
        sse_line("one").encode(),
        b"data: {oops\n",
        b": keepalive\n",
        sse_line("two").encode(),
    ))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    assert await collect(reply) == [b"one", b"two"]


@pytest.mark.asyncio
async def test_streaming_ends_cleanly_when_upstream_drops(config, sleeps):
    async def dropping():
        yield sse_line("partial").encode()
        raise httpx.ReadError("connection lost")

    upstream = Upstream(lambda request: httpx.Response(200, content=dropping()))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    assert await collect(reply) == [b"partial"]


@pytest.mark.asyncio
async def test_streaming_without_body_falls_back_to_json(config, sleeps):
    upstream = Upstream(httpx.Response(204))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    assert reply.stream is None
    assert reply.body()["content"] == proxy_mod.STREAM_UNAVAILABLE_TEXT


@pytest.mark.parametrize(
    "message, content",
    [
        ("Rate limit reached for model", proxy_mod.RATE_LIMITED_TEXT),
        ("Invalid API key provided", proxy_mod.AUTH_CONFIG_TEXT),
        ("authentication failed", proxy_mod.AUTH_CONFIG_TEXT),
        ("read timeout", proxy_mod.CONNECTION_TEXT),
        ("socket hang up: ECONNRESET", proxy_mod.CONNECTION_TEXT),
        ("something else", proxy_mod.UNEXPECTED_TEXT),
    ],
)
def test_classify_failure(message, content):
    reply = classify_failure(RuntimeError(message))
    assert reply.status_code == 200
    assert reply.kind is ReplyKind.SOFT_FAIL
    assert reply.content == content


@pytest.mark.asyncio
async def test_large_history_is_trimmed_to_trailing_window(config, sleeps):
    upstream = Upstream(httpx.Response(200, json=completion_json("ok")))
    history = [{"role": "user" if i % 2 else "assistant", "content": f"turn {i}"} for i in range(25)]
    await make_proxy(config, upstream, sleeps).handle({"messages": history}, stream=False)

    sent = json.loads(upstream.requests[0].content)["messages"]
    assert len(sent) == 11
    assert sent[0]["content"] == config.system_prompt
    assert [m["content"] for m in sent[1:]] == [f"turn {i}" for i in range(15, 25)]


@pytest.mark.asyncio
async def test_length_limit_counts_utf16_units(config, sleeps):
    upstream = Upstream(httpx.Response(200, json=completion_json("never")))
    proxy = make_proxy(config, upstream, sleeps)

    reply = await proxy.handle({"messages": [{"role": "user", "content": "\U0001F600" * 2001}]}, stream=False)
    assert reply.status_code == 400
    assert reply.body() == {"error": "Message too long"}
    assert upstream.calls == 0

    reply = await proxy.handle({"messages": [{"role": "user", "content": "\U0001F600" * 2000}]}, stream=False)
    assert reply.kind is ReplyKind.OK


@pytest.mark.asyncio
async def test_streaming_ends_cleanly_on_any_read_failure(config, sleeps, caplog):
    async def broken():
        yield sse_line("partial").encode()
        raise RuntimeError("decoder blew up")

    upstream = Upstream(lambda request: httpx.Response(200, content=broken()))
    reply = await make_proxy(config, upstream, sleeps).handle(HELLO, stream=True)

    with caplog.at_level("WARNING", logger="forkcast.proxy"):
        assert await collect(reply) == [b"partial"]
    assert "decoder blew up" in caplog.text


@pytest.mark.asyncio
async def test_final_upstream_error_body_is_logged(config, sleeps, caplog):
    upstream = Upstream(httpx.Response(404, text="model llama-x does not exist"))
    with caplog.at_level("ERROR", logger="forkcast.proxy"):
        await make_proxy(config, upstream, sleeps).handle(HELLO, stream=False)
    proxy_logs = [r.getMessage() for r in caplog.records if r.name == "forkcast.proxy"]
    assert any("model llama-x does not exist" in m for m in proxy_logs)
