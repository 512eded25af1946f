import os
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from cv_assistant.api.v1.health import router as health_router
from cv_assistant.main import app


def _registered_paths() -> set[str]:
    return {route.path for route in app.routes}


def test_cv_assistant_routes_are_registered() -> None:
    paths = _registered_paths()

    assert "/v1/health" in paths
    assert "/v1/extract-text" in paths
    assert "/v1/analyze" in paths
    assert "/v1/create-cv" in paths
    assert "/v1/create-cover-letter" in paths
    assert "/v1/evaluate-cover-letter" in paths
    assert "/v1/sessions" in paths
    assert "/v1/sessions/{session_id}/inputs/{role}/upload" in paths
    assert "/v1/sessions/{session_id}/regenerate" in paths
    assert "/v1/sessions/{session_id}/download/{artifact}" in paths


def test_health_endpoint_returns_healthy() -> None:
    local = FastAPI()
    local.include_router(health_router, prefix="/v1")
    response = TestClient(local).get("/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
