import asyncio
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from worldwiki.api.endpoints.generate import PushStreamResponse, QueuePushSink
from worldwiki.core.config import RateLimitRule
from worldwiki.main import create_app
from worldwiki.protocol import decode_chunks
from worldwiki.protocol.push_stream import ClientDisconnected

from .fakes import PAGE_CHUNKS, USER_KEY, make_container, make_settings

ALICE = {"X-User-Id": "alice"}
SEED = {"input": "A floating city above crystal clouds", "type": "seed"}


@contextmanager
def serving(config=None, upstream=None):
    container = make_container(config, upstream)
    with TestClient(create_app(container.settings, container=container)) as client:
        yield client, container


def test_generate_streams_snapshots():
    with serving() as (client, _):
        response = client.post("/api/generate", json=SEED, headers=ALICE)

    assert response.status_code == 200
    assert response.headers["x-streaming"] == "true"
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-ratelimit-limit"] == "50"
    assert response.headers["x-ratelimit-remaining"] == "49"

    partials = []
    terminal = decode_chunks([response.content], partials.append)
    assert len(partials) == len(PAGE_CHUNKS) + 1
    assert partials[0]["progress"] == 20
    assert terminal["isComplete"] is True
    assert terminal["title"] == "A Floating City Above Crystal"
    assert terminal["usageInfo"] == {"usageCount": 1, "dailyLimit": 5, "remaining": 4}


def test_generate_section_streams_snapshots():
    section = {"sectionTitle": "history", "pageTitle": "Aethros", "pageContent": "A city in the clouds."}
    with serving() as (client, _):
        response = client.post("/api/generate-section", json=section, headers=ALICE)

    terminal = decode_chunks([response.content])
    assert terminal["title"] == "History"
    assert "categories" not in terminal


def test_invalid_json_is_rejected():
    with serving() as (client, _):
        response = client.post(
            "/api/generate",
            content=b"{not json",
            headers={**ALICE, "Content-Type": "application/json"},
        )

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["message"] == "Request body must be a JSON object"


def test_invalid_field_is_named():
    with serving() as (client, _):
        response = client.post("/api/generate", json={"input": "x" * 5001, "type": "seed"}, headers=ALICE)

    assert response.status_code == 400
    assert response.json()["field"] == "input"


def test_sliding_window_limit():
    rule = RateLimitRule(window_ms=60_000, max_requests=1, key_prefix="rl:wiki")
    with serving(make_settings(rate_limits={"wiki_generation": rule})) as (client, _):
        first = client.post("/api/generate", json=SEED, headers=ALICE)
        second = client.post("/api/generate", json=SEED, headers=ALICE)

    assert first.status_code == 200
    assert second.status_code == 429
    assert second.headers["retry-after"] == "60"
    assert second.headers["x-ratelimit-remaining"] == "0"
    assert second.json()["code"] == "TOO_MANY_REQUESTS"
    assert second.json()["limitType"] == "user"


def test_daily_quota_exhausted():
    with serving() as (client, container):

        async def use_all():
            for _ in range(5):
                await container.usage.increment("alice")

        asyncio.run(use_all())
        response = client.post("/api/generate", json=SEED, headers=ALICE)

    assert response.status_code == 429
    body = response.json()
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["requiresApiKey"] is True
    assert (body["usageCount"], body["dailyLimit"]) == (5, 5)


def test_missing_credential_outside_development():
    with serving(make_settings(openai_api_key=None)) as (client, _):
        response = client.post("/api/generate", json=SEED, headers=ALICE)

    assert response.status_code == 401
    assert response.json()["code"] == "API_KEY_REQUIRED"


def test_usage_requires_identity():
    with serving() as (client, _):
        anonymous = client.get("/api/usage")
        client.post("/api/generate", json=SEED, headers=ALICE)
        usage = client.get("/api/usage", headers=ALICE)
        config = client.get("/api/config", headers=ALICE)

    assert anonymous.status_code == 401
    assert anonymous.json()["code"] == "UNAUTHORIZED"
    assert usage.json() == {
        "hasUserApiKey": False,
        "usageCount": 1,
        "dailyLimit": 5,
        "remaining": 4,
        "unlimited": False,
    }
    assert config.json() == {"enableUserApiKeys": False}


def test_store_key_lifecycle():
    with serving(make_settings(enable_user_api_keys=True)) as (client, _):
        bad = client.post("/api/store-key", json={"apiKey": "not-a-key"}, headers=ALICE)
        stored = client.post("/api/store-key", json={"apiKey": USER_KEY}, headers=ALICE)
        has_key = client.get("/api/store-key", headers=ALICE)
        usage = client.get("/api/usage", headers=ALICE)
        removed = client.delete("/api/store-key", headers=ALICE)
        after = client.get("/api/store-key", headers=ALICE)
        put = client.put("/api/store-key", headers=ALICE)

    assert bad.status_code == 400
    assert bad.json()["code"] == "VALIDATION_ERROR"
    assert stored.json() == {"success": True, "message": "API key stored securely"}
    assert has_key.json() == {"hasKey": True}
    assert usage.json()["unlimited"] is True
    assert removed.json() == {"success": True}
    assert after.json() == {"hasKey": False}
    assert put.status_code == 405
    assert put.json()["code"] == "METHOD_NOT_ALLOWED"


def test_health_and_root():
    with serving() as (client, _):
        health = client.get("/health").json()
        root = client.get("/").json()
        missing = client.get("/api/nope")

    assert health["status"] == "healthy"
    assert health["store"] == {"shared": False}
    assert health["maintenance"]["scheduler_running"] is True
    assert root["message"] == "WorldWiki generation API"
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_dropped_client_stops_background_writes():
    sink = QueuePushSink()
    response = PushStreamResponse(sink, status_code=200)
    sent = []

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    async def run():
        await response({"type": "http", "asgi": {"version": "3.0"}}, receive, send)
        with pytest.raises(ClientDisconnected):
            await sink.write("data: {}\n\n")

    asyncio.run(run())
    assert sink.disconnected
    assert not any(message.get("body") for message in sent)
