from __future__ import annotations

import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes.health import router as health_router
from .api.routes.chat import router as chat_router


def create_app() -> FastAPI:
    app = FastAPI(title="FORKCAST Chat API", version=os.getenv("APP_VERSION", "0.1.0"))

    # CORS for local dev and typical frontend origins
    web_origin = os.getenv("WEB_ORIGIN", "http://localhost:5173")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[web_origin, "http://localhost:3000", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(chat_router, prefix="/api", tags=["chat"])
    return app


app = create_app()
