from __future__ import annotations

import os

from fastapi import APIRouter

from forkcast.core.config import load_config

router = APIRouter(tags=["meta"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/meta")
async def meta() -> dict:
    cfg = load_config(os.getenv("FORKCAST_PROFILE", "default"))
    return {
        "app": "FORKCAST Chat API",
        "version": os.getenv("APP_VERSION", "0.1.0"),
        "model": cfg.model,
        "upstream_configured": bool(cfg.api_key),
    }
