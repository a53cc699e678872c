"""
Unit tests for the spaced repetition API.

The review service dependency is overridden with one backed by the
in-memory repository, and the client is used without entering the app
lifespan, so no database is touched.
"""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from src.api.main import app
from src.api.routers.spaced_repetition_router import get_review_service
from src.core.exceptions import ConcurrencyConflict
from src.db.repository import InMemoryReviewStateRepository
from src.study.review_service import ReviewService

PREFIX = "/api/spaced-repetition"
HEADERS = {"X-User-Id": "alice"}


class AlwaysStaleRepository(InMemoryReviewStateRepository):
    def put_state(self, user_id, item_id, state, expected_version=None):
        raise ConcurrencyConflict(user_id, item_id, expected_version)


@pytest.fixture
def make_client():
    def _make(repository):
        service = ReviewService(repository, settings=Settings(srs_default_due_limit=3))
        app.dependency_overrides[get_review_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, memory_repository):
    return make_client(memory_repository)


def post_review(client, word_id, quality, now="2024-01-01T09:00:00Z"):
    return client.post(
        f"{PREFIX}/update-review",
        json={"wordId": word_id, "quality": quality, "now": now},
        headers=HEADERS,
    )


class TestDueWords:
    def test_default_limit_and_camel_case(self, client):
        response = client.get(f"{PREFIX}/due-words", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert [w["wordId"] for w in body] == [1, 2, 3]
        assert body[0]["isNew"] is True
        assert body[0]["word"] == "abate"
        assert body[0]["repetitionLevel"] == 0

    def test_explicit_limit(self, client):
        response = client.get(f"{PREFIX}/due-words", params={"limit": 10}, headers=HEADERS)
        assert len(response.json()) == 4

    def test_invalid_limit(self, client):
        response = client.get(f"{PREFIX}/due-words", params={"limit": 0}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "limit"

    def test_requires_user(self, client):
        assert client.get(f"{PREFIX}/due-words").status_code == 422
        assert client.get(f"{PREFIX}/due-words", headers={"X-User-Id": " "}).status_code == 401


class TestUpdateReview:
    def test_records_review(self, client):
        response = post_review(client, 2, 4)

        assert response.status_code == 200
        body = response.json()
        assert body["wordId"] == 2
        assert body["repetitionLevel"] == 1
        assert body["correctStreak"] == 1
        assert body["easinessFactor"] == pytest.approx(2.5)
        assert body["nextReviewDueAt"].startswith("2024-01-02T09:00:00")
        assert body["reviewHistory"][0]["intervalDays"] == 1

    def test_naive_time_is_utc(self, client):
        body = post_review(client, 2, 5, now="2024-01-01T09:00:00").json()
        assert body["nextReviewDueAt"].startswith("2024-01-02T09:00:00")

    def test_quality_out_of_range(self, client, memory_repository):
        response = post_review(client, 1, 6)

        assert response.status_code == 400
        assert response.json()["detail"]["field"] == "quality"
        assert memory_repository.get_state("alice", 1) is None

    def test_non_integer_quality(self, client):
        assert post_review(client, 1, 4.5).status_code == 422

    def test_unknown_word(self, client):
        assert post_review(client, 404, 4).status_code == 404

    def test_conflict(self, make_client, sample_items):
        client = make_client(AlwaysStaleRepository(sample_items))
        assert post_review(client, 1, 4).status_code == 409


class TestStatsAndProgress:
    def test_stats(self, client):
        post_review(client, 1, 5)
        post_review(client, 2, 0)

        response = client.get(f"{PREFIX}/stats", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["totalWords"] == 4
        assert body["learningCount"] == 1
        assert body["newCount"] == 3
        assert body["masteredCount"] == 0
        assert body["streaks"] == {"current": 1}
        assert body["totalReviews"] == 2

    def test_stats_without_reviews(self, client):
        body = client.get(f"{PREFIX}/stats", headers=HEADERS).json()
        assert body["averageEasinessFactor"] == 2.5
        assert body["currentStreak"] == 0

    def test_word_progress(self, client):
        post_review(client, 3, 4)

        response = client.get(f"{PREFIX}/words/3/progress", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["word"] == "candid"
        assert body["state"]["repetitionLevel"] == 1
        assert body["intervalPreview"]["5"] == 6

    def test_word_progress_unknown(self, client):
        assert client.get(f"{PREFIX}/words/404/progress", headers=HEADERS).status_code == 404


def test_root(client):
    assert client.get("/").json()["service"] == "vocab-srs"
