"""FastAPI application exposing cron, workflow, RAG and automation endpoints."""

from __future__ import annotations

import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import load_envs
from .routes import automations, cron, rag, workflows


load_envs(os.getcwd())

app = FastAPI(
    title=os.getenv("API_TITLE", "ZZP Back Office API"),
    version=os.getenv("API_VERSION", "0.1.0"),
    description=(
        "Automation engine, n8n workflow actions and retrieval endpoints. "
        "Dashboard routes authenticate with a Supabase JWT; cron and workflow "
        "callers use shared secrets."
    ),
)


def _configure_cors(api_app: FastAPI) -> None:
    raw_origins = os.getenv("API_CORS_ORIGINS", "").strip()
    if not raw_origins:
        return

    origins: List[str] = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    if not origins:
        return

    api_app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


_configure_cors(app)


@app.get("/health", tags=["health"])  # pragma: no cover - trivial fast check
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(cron.router, prefix="/v1", tags=["cron"])
app.include_router(workflows.router, prefix="/v1", tags=["workflows"])
app.include_router(rag.router, prefix="/v1", tags=["rag"])
app.include_router(automations.router, prefix="/v1", tags=["automations"])
