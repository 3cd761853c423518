import asyncio
import base64
import time
from types import SimpleNamespace

import pytest

from safebite import ai_engine


class FakeUsage:
    def __init__(self, cost):
        self.cost = cost

    def model_dump(self):
        return {"prompt_tokens": 1200, "completion_tokens": 90, "cost": self.cost}


class FakeCompletion:
    def __init__(self, content, cost=0.002):
        self.content = content
        self.usage = FakeUsage(cost)

    def model_dump(self):
        return {
            "id": "gen-1",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": self.content}, "finish_reason": "stop"}],
            "usage": self.usage.model_dump(),
        }


class FakeClient:
    def __init__(self, result):
        self.result = result
        self.requests = []
        self.delay = 0
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self.create))

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeClient(FakeCompletion('{"brandName": "Fanta"}'))
    monkeypatch.setattr(ai_engine, "get_client", lambda: client)
    return client


def test_brand_request_asks_for_json(fake_client):
    call = asyncio.run(ai_engine.analyze_brand_image(b"img", "image/png"))

    request = fake_client.requests[0]
    assert request["model"] == ai_engine.MODEL_ID
    assert request["response_format"] == {"type": "json_object"}
    system, user = request["messages"]
    assert "brandName" in system["content"]
    image_url = user["content"][0]["image_url"]["url"]
    assert image_url == "data:image/png;base64," + base64.b64encode(b"img").decode()

    assert call["response"]["choices"][0]["message"]["content"] == '{"brandName": "Fanta"}'
    assert call["cost"] == 0.002
    assert call["latency"] >= 0


def test_meal_request_is_personalized(fake_client):
    profile = {"allergicFoods": ["peanuts", "eggs"], "healthConditions": ["diabetes"]}

    asyncio.run(ai_engine.analyze_meal_image(b"img", "image/jpeg", profile))

    prompt = fake_client.requests[0]["messages"][0]["content"]
    assert "User Allergies: peanuts, eggs" in prompt
    assert "User Health Conditions: diabetes" in prompt
    assert "risk_level" in prompt


def test_meal_prompt_without_profile():
    prompt = ai_engine.build_meal_prompt([], None)

    assert "User Allergies: None reported" in prompt
    assert "User Health Conditions: None reported" in prompt


def test_transport_errors_propagate(fake_client):
    fake_client.result = ConnectionError("network down")

    with pytest.raises(ConnectionError):
        asyncio.run(ai_engine.analyze_brand_image(b"img"))


def test_missing_cost_defaults_to_zero(fake_client):
    fake_client.result = FakeCompletion("{}", cost=None)

    assert asyncio.run(ai_engine.analyze_brand_image(b"img"))["cost"] == 0.0


def test_concurrent_requests_do_not_block_each_other(fake_client):
    fake_client.delay = 0.4

    async def two_scans():
        return await asyncio.gather(
            ai_engine.analyze_brand_image(b"a"),
            ai_engine.analyze_brand_image(b"b"),
        )

    start = time.monotonic()
    results = asyncio.run(two_scans())
    elapsed = time.monotonic() - start

    assert len(results) == 2
    assert len(fake_client.requests) == 2
    assert elapsed < 0.7


def test_client_is_async(monkeypatch):
    monkeypatch.setattr(ai_engine, "OPENROUTER_API_KEY", "sk-or-test")
    monkeypatch.setattr(ai_engine, "_client", None)

    client = ai_engine.get_client()

    assert isinstance(client, ai_engine.AsyncOpenAI)
    assert str(client.base_url).startswith(ai_engine.AI_BASE_URL)
