"""
FastAPI application.

Run with `uvicorn odbfinder.api.app:app`. Endpoints live in `odbfinder.api.routes`;
CORS is enabled only when `app.cors_origins` lists browser origins (a map frontend
served from another host).
"""

from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from odbfinder.config.settings import get_settings
from odbfinder.core.logging import configure_logging

from .routes import router

configure_logging()

settings = get_settings()
app = FastAPI(title=f"{settings.app.name} API", version="0.1.0")

if settings.app.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

app.include_router(router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
