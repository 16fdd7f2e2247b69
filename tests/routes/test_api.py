import pytest
from fastapi.testclient import TestClient

from cinerate.main import create_app
from cinerate.services.cache_service import CacheService
from cinerate.services.prior_refresher import PriorRefresher
from cinerate.services.ratings_config import DEFAULT_RATINGS_CONFIG

UNKNOWN_ID = "01HZZZZZZZZZZZZZZZZZZZZZZZ"


@pytest.fixture
def client(db):
    """Client over a fresh app; `db` empties the tables afterwards."""
    app = create_app(
        prior_refresher=PriorRefresher(DEFAULT_RATINGS_CONFIG, synchronous=True),
        cache=CacheService(),
    )
    with TestClient(app) as c:
        yield c


def _voter(client, name="Ada") -> str:
    resp = client.post("/api/v1/voters", json={"display_name": name})
    assert resp.status_code == 201
    return resp.json()["id"]


def _entity(client, title="Metropolis", category="drama") -> str:
    resp = client.post("/api/v1/entities", json={"title": title, "category": category, "release_year": 1927})
    assert resp.status_code == 201
    return resp.json()["id"]


def _vote(client, voter_id, entity_id, score, comment=""):
    return client.post(
        "/api/v1/votes",
        json={"voter_id": voter_id, "entity_id": entity_id, "score": score, "comment": comment},
    )


def test_health_reports_cache_and_prior(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["cache"] == "memory"
    assert body["global_mean"] == 3.0


def test_metrics_exposed(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "cinerate_" in resp.text


def test_entity_crud(client):
    entity_id = _entity(client)

    body = client.get(f"/api/v1/entities/{entity_id}").json()
    assert body["title"] == "Metropolis"
    assert body["release_year"] == 1927

    missing = client.get(f"/api/v1/entities/{UNKNOWN_ID}")
    assert missing.status_code == 404
    assert missing.headers["content-type"].startswith("application/problem+json")
    assert missing.json()["code"] == "ENTITY_NOT_FOUND"


def test_vote_lifecycle(client):
    voter_id, entity_id = _voter(client), _entity(client)

    created = _vote(client, voter_id, entity_id, 4, comment="  moody  ")
    assert created.status_code == 201
    vote = created.json()
    assert vote["comment"] == "moody"

    assert client.get(f"/api/v1/votes/{vote['id']}").json()["score"] == 4
    assert client.get(f"/api/v1/voters/{voter_id}/entities/{entity_id}/vote").json()["id"] == vote["id"]

    patched = client.patch(f"/api/v1/votes/{vote['id']}", json={"score": 2})
    assert patched.status_code == 200
    assert patched.json()["score"] == 2
    assert patched.json()["comment"] == "moody"

    deleted = client.delete(f"/api/v1/votes/{vote['id']}")
    assert deleted.json() == {"message": "Vote deleted"}

    gone = client.get(f"/api/v1/votes/{vote['id']}")
    assert gone.status_code == 404
    assert gone.json()["code"] == "VOTE_NOT_FOUND"


def test_duplicate_vote_is_conflict(client):
    voter_id, entity_id = _voter(client), _entity(client)
    assert _vote(client, voter_id, entity_id, 5).status_code == 201

    resp = _vote(client, voter_id, entity_id, 1)

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "DUPLICATE_VOTE"
    assert body["status"] == 409
    assert client.get(f"/api/v1/entities/{entity_id}/stats").json()["total_votes"] == 1


def test_vote_for_unknown_entity(client):
    resp = _vote(client, _voter(client), UNKNOWN_ID, 3)
    assert resp.status_code == 404
    assert resp.json()["code"] == "ENTITY_NOT_FOUND"


@pytest.mark.parametrize("score", [0, 6])
def test_out_of_range_score_is_rejected(client, score):
    resp = _vote(client, _voter(client), _entity(client), score)
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_empty_patch_is_rejected(client):
    voter_id, entity_id = _voter(client), _entity(client)
    vote_id = _vote(client, voter_id, entity_id, 3).json()["id"]

    assert client.patch(f"/api/v1/votes/{vote_id}", json={}).status_code == 422


def test_stats_and_enhanced_stats(client):
    entity_id = _entity(client)

    empty = client.get(f"/api/v1/entities/{entity_id}/stats/enhanced").json()
    assert empty["total_votes"] == 0
    assert empty["bayesian_average"] == 3.0
    assert empty["confidence"] == 0.0

    for i, score in enumerate((5, 4, 3)):
        assert _vote(client, _voter(client, f"v{i}"), entity_id, score).status_code == 201

    stats = client.get(f"/api/v1/entities/{entity_id}/stats").json()
    assert stats["total_votes"] == 3
    assert stats["average_score"] == 4.0
    assert stats["score_counts"] == {"3": 1, "4": 1, "5": 1}

    enhanced = client.get(f"/api/v1/entities/{entity_id}/stats/enhanced").json()
    assert enhanced["confidence"] == 0.3
    # Prior moved to the new global mean (4.0), so smoothing has no pull
    assert enhanced["bayesian_average"] == 4.0
    assert "small sample" in enhanced["explanation"]

    assert client.get(f"/api/v1/entities/{UNKNOWN_ID}/stats").status_code == 404


def test_prior_endpoint_tracks_votes(client):
    assert client.get("/api/v1/ratings/prior").json() == {
        "global_mean": 3.0,
        "min_votes_threshold": 10,
        "confidence_constant": 25.0,
    }

    _vote(client, _voter(client), _entity(client), 5)

    assert client.get("/api/v1/ratings/prior").json()["global_mean"] == 5.0


def test_listings_paginate(client):
    voter_id = _voter(client)
    for i in range(3):
        _vote(client, voter_id, _entity(client, title=f"Film {i}"), i + 1)

    page = client.get(f"/api/v1/voters/{voter_id}/votes", params={"limit": 2, "sort_by": "score", "order": "asc"})
    body = page.json()
    assert [v["score"] for v in body["votes"]] == [1, 2]
    assert body["total"] == 3
    assert body["has_more"] is True

    bad = client.get(f"/api/v1/voters/{voter_id}/votes", params={"limit": 1000})
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_LIMIT"


def test_voter_profile(client):
    alice, bob = _voter(client, "Alice"), _voter(client, "Bob")
    film = _entity(client, title="Film A", category="noir")
    _vote(client, alice, film, 5)
    _vote(client, bob, film, 3)

    profile = client.get(f"/api/v1/voters/{alice}/profile").json()

    assert profile["total"] == 1
    row = profile["votes"][0]
    assert row["entity"]["title"] == "Film A"
    assert row["entity_average"] == 4.0
    assert row["voter_vs_average"] == "much_above"
    assert profile["stats"]["favorite_category"] == "noir"
    assert profile["stats"]["score_distribution"] == {"5": 1}

    assert client.get(f"/api/v1/voters/{UNKNOWN_ID}/profile").status_code == 404
