"""Tests for the FastAPI application wiring."""

from __future__ import annotations

from backoffice.api import main


def test_routes_are_mounted_under_v1() -> None:
    paths = set(main.app.openapi()["paths"])

    assert "/health" in paths
    assert {
        "/v1/cron/run-automations",
        "/v1/workflows/actions",
        "/v1/rag/reindex",
        "/v1/context/search",
        "/v1/automations",
        "/v1/automations/templates",
        "/v1/automations/{automation_id}/toggle",
    } <= paths


def test_healthcheck() -> None:
    assert main.healthcheck() == {"status": "ok"}
