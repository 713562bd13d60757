from __future__ import annotations

import os
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from forkcast.core.config import load_config
from ...schemas.chat import ChatReply, ErrorReply
from ...services.proxy import CompletionProxy, stream_requested


router = APIRouter()


def get_proxy() -> CompletionProxy:
    return CompletionProxy(load_config(os.getenv("FORKCAST_PROFILE", "default")))


@router.post(
    "/chat",
    response_model=ChatReply,
    responses={400: {"model": ErrorReply}, 429: {"model": ErrorReply}},
)
async def chat(
    request: Request,
    stream: Optional[str] = Query(None, description="1/true to receive a plain-text token stream"),
    proxy: CompletionProxy = Depends(get_proxy),
) -> Response:
    # Body is parsed by hand so malformed input maps to 400 {error}, not 422
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    reply = await proxy.handle(payload, stream=stream_requested(stream))
    if reply.stream is not None:
        return StreamingResponse(reply.stream, media_type="text/plain; charset=utf-8")
    return JSONResponse(reply.body(), status_code=reply.status_code)
