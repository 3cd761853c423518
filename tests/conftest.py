import os
import tempfile

# Must be set before safebite.database is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="safebite-uploads-"))
os.environ.setdefault("PUBLIC_BASE_URL", "https://cdn.example.test")

import json

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from safebite import orchestrator, uploads
from safebite.database import engine
from safebite.main import app

BRAND_PAYLOAD = {
    "brandName": "Fanta",
    "productType": "Soda",
    "keyIngredients": ["sugar", "water"],
    "confidenceScore": 85,
}

MEAL_PAYLOAD = {
    "risk_level": "MODERATE",
    "risk_score": 6,
    "localized_visible_ingredients": ["Wali (White Rice) (RISK)", "Nyama (Beef) (SAFE)"],
    "safe_swaps": ["Nduma (Arrowroot)"],
}


def gemini_response(text, finish_reason="STOP"):
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": finish_reason}]}


def fenced(payload):
    return "```json\n" + json.dumps(payload) + "\n```"


class FakeModel:
    """Stands in for the hosted model; records every call it receives."""

    def __init__(self):
        self.response = gemini_response(fenced(BRAND_PAYLOAD))
        self.calls = []

    async def brand(self, image_bytes, mime_type="image/jpeg"):
        return self._answer("brand", image_bytes, mime_type, None)

    async def meal(self, image_bytes, mime_type="image/jpeg", profile=None):
        return self._answer("meal", image_bytes, mime_type, profile)

    def _answer(self, kind, image_bytes, mime_type, profile):
        self.calls.append({"kind": kind, "bytes": image_bytes, "mime_type": mime_type, "profile": profile})
        if isinstance(self.response, Exception):
            raise self.response
        return {"response": self.response, "cost": 0.0012, "latency": 0.5}


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(uploads, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def fake_model(monkeypatch):
    model = FakeModel()
    monkeypatch.setattr(orchestrator, "analyze_brand_image", model.brand)
    monkeypatch.setattr(orchestrator, "analyze_meal_image", model.meal)
    return model


@pytest.fixture
def client(upload_dir, fake_model):
    SQLModel.metadata.drop_all(engine)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_id(client):
    res = client.post("/api/profile", json={
        "name": "Amina",
        "allergicFoods": ["peanuts", "eggs"],
        "healthConditions": ["diabetes"],
    })
    assert res.status_code == 200
    return res.json()["profileId"]
