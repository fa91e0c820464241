"""
Tests for the HTTP surface, with in-memory collaborators wired into the app.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app import main
from app.errors import ProviderError, StoreError


@pytest.fixture
def client(monkeypatch, ingestion, retriever, store, make_reranker):
    monkeypatch.setattr(main, "ingestion_pipeline", ingestion)
    monkeypatch.setattr(main, "retriever", retriever)
    monkeypatch.setattr(main, "vector_store_manager", store)
    monkeypatch.setattr(main, "reranker", make_reranker("not json at all"))
    # No context manager: the lifespan would replace the fakes with real clients
    return TestClient(main.app)


def ingest(client, *items):
    return client.post("/ingest", json={"items": list(items)})


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_ingest_scenario(client):
    response = ingest(
        client,
        {"title": "Inception", "year": 2010, "categories": ["Sci-Fi"], "description": "dream heist"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["inserted"] == 1
    assert len(body["ids"]) == 1


def test_ingest_accepts_movie_fields_and_ids(client, store):
    response = ingest(client, {"id": "m-1", "title": "Alien", "genres": ["Horror"], "cast": ["Sigourney Weaver"]})

    assert response.json()["ids"] == ["m-1"]
    assert store.rows["m-1"].categories == ["Horror"]
    assert store.rows["m-1"].participants == ["Sigourney Weaver"]


@pytest.mark.parametrize(
    "body",
    [
        {"items": []},
        {},
        {"items": [{"year": 2010}]},
        {"items": [{"title": ""}]},
        {"items": [{"title": "X", "year": "soon"}]},
    ],
)
def test_ingest_validation_errors(client, store, body):
    response = client.post("/ingest", json=body)

    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "validation_error"
    assert response.json()["error"]["detail"]
    assert store.upsert_calls == 0


def test_recommend_returns_ranked_results(client):
    ingest(
        client,
        {"title": "Interstellar", "categories": ["Sci-Fi"]},
        {"title": "Notting Hill", "categories": ["Romance", "Comedy"]},
    )

    response = client.post("/recommend", json={"answers": ["I love sci-fi"], "threshold": 0.5})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["title"] for r in results] == ["Interstellar"]
    assert results[0]["why"] is None
    assert results[0]["score"] >= 0.5
    assert set(results[0]) >= {"id", "title", "year", "categories", "score", "why", "attributes"}


def test_recommend_far_store_is_empty(client):
    ingest(client, {"title": "Notting Hill", "categories": ["Romance", "Comedy"]})

    response = client.post(
        "/recommend", json={"answers": ["mind-bending sci-fi"], "topN": 1, "threshold": 0.9}
    )

    assert response.status_code == 200
    assert response.json() == {"results": []}


def test_recommend_offset_past_matches_is_empty(client):
    ingest(client, *[{"title": f"Space {i}", "categories": ["Sci-Fi"]} for i in range(3)])

    response = client.post("/recommend", json={"answers": ["sci-fi"], "topN": 5, "offset": 5})

    assert response.status_code == 200
    assert response.json() == {"results": []}


def test_recommend_rerank_with_unparsable_reply(client):
    ingest(client, *[{"title": f"Space {i}", "categories": ["Sci-Fi"]} for i in range(3)])

    response = client.post("/recommend", json={"answers": ["sci-fi"], "rerank": True})

    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 3
    assert all(r["why"] is None for r in results)


def test_recommend_rerank_attaches_reasons(client, monkeypatch, make_reranker):
    ingest(
        client,
        {"title": "Interstellar", "categories": ["Sci-Fi"]},
        {"title": "Arrival", "categories": ["Sci-Fi", "Sci-Fi"]},
    )
    plain = client.post("/recommend", json={"answers": ["sci-fi"]}).json()["results"]
    reply = json.dumps([{"title": "interstellar", "reason": "space epic"}])
    monkeypatch.setattr(main, "reranker", make_reranker(reply))

    reranked = client.post("/recommend", json={"answers": ["sci-fi"], "rerank": True}).json()["results"]

    assert [r["id"] for r in reranked] == [r["id"] for r in plain]
    assert [r["score"] for r in reranked] == [r["score"] for r in plain]
    whys = {r["title"]: r["why"] for r in reranked}
    assert whys == {"Interstellar": "space epic", "Arrival": None}


@pytest.mark.parametrize(
    "body",
    [
        {"answers": []},
        {"answers": ["x"] * 11},
        {"answers": ["x"], "topN": 0},
        {"answers": ["x"], "topN": 51},
        {"answers": ["x"], "offset": 501},
        {"answers": ["x"], "threshold": 2},
    ],
)
def test_recommend_validation_errors(client, body):
    response = client.post("/recommend", json=body)

    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "validation_error"


def test_provider_error_is_500(client, monkeypatch):
    failing = MagicMock()
    failing.recommend = AsyncMock(side_effect=ProviderError("embedding quota exceeded"))
    monkeypatch.setattr(main, "retriever", failing)

    response = client.post("/recommend", json={"answers": ["x"]})

    assert response.status_code == 500
    assert response.json() == {
        "error": {"kind": "provider_error", "detail": "embedding quota exceeded"}
    }


def test_store_error_is_500(client, monkeypatch):
    failing = MagicMock()
    failing.ingest = AsyncMock(side_effect=StoreError("connection lost"))
    monkeypatch.setattr(main, "ingestion_pipeline", failing)

    response = ingest(client, {"title": "X"})

    assert response.status_code == 500
    assert response.json()["error"]["kind"] == "store_error"


def test_item_stats(client):
    ingest(client, {"title": "A"}, {"title": "B"})

    assert client.get("/items/stats").json() == {"collection_name": "memory", "item_count": 2}
