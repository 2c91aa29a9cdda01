"""HTTP-level tests: envelope, auth, validation and rate limiting."""

import asyncpg
import pytest
from fastapi.testclient import TestClient

from blog_api.comments import service as comment_service
from blog_api.core.config import get_settings
from blog_api.core.errors import ValidationFailed
from blog_api.main import create_app
from blog_api.posts import service as post_service

PREVIEW = {
    "id": "p1",
    "slug": "hello-world",
    "meta": {
        "title": "Hello World",
        "description": None,
        "author": "Ada",
        "publishedAt": "2024-05-01T00:00:00+00:00",
        "readTime": 1,
        "coverImage": None,
    },
    "tags": ["python"],
}


@pytest.fixture
def db(database_factory):
    return database_factory()


@pytest.fixture
def client(db):
    with TestClient(create_app(database=db), raise_server_exceptions=False) as test_client:
        yield test_client


def test_lifespan_opens_and_closes_store(db):
    with TestClient(create_app(database=db)):
        assert db.connected is True
    assert db.connected is False


def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["endpoints"]["blogs"] == "/api/v1/blogs"

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"


def test_db_health_connected(client):
    response = client.get("/health/db")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


def test_db_health_disconnected(database_factory):
    db = database_factory(ping_error=ValueError("boom"))
    with TestClient(create_app(database=db)) as test_client:
        response = test_client.get("/health/db")

    assert response.status_code == 503
    assert response.json()["database"] == "disconnected"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/v1/nope")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"code": "NOT_FOUND", "message": "Route GET /api/v1/nope not found"},
    }


def test_list_posts_envelope(client, monkeypatch):
    seen = {}

    async def fake_list_posts(executor, **kwargs):
        seen.update(kwargs)
        return [PREVIEW], 11

    monkeypatch.setattr(post_service, "list_posts", fake_list_posts)
    response = client.get("/api/v1/blogs", params={"page": 2, "limit": 5, "tags": "python, web ,", "sort": "popular"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["blogs"] == [PREVIEW]
    assert body["data"]["pagination"] == {"page": 2, "limit": 5, "total": 11, "totalPages": 3}
    assert seen["tags"] == ["python", "web"]
    assert seen["sort"] == "popular"


def test_list_posts_rejects_bad_query(client):
    response = client.get("/api/v1/blogs", params={"limit": 500, "sort": "random"})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert set(error["details"]["fields"]) == {"limit", "sort"}


def test_missing_post_is_404(client, monkeypatch):
    async def fake_get_post(executor, slug, **kwargs):
        return None

    monkeypatch.setattr(post_service, "get_post", fake_get_post)
    response = client.get("/api/v1/blogs/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == {"code": "NOT_FOUND", "message": "Blog not found"}


def test_invalid_slug_path_is_rejected(client):
    response = client.get("/api/v1/blogs/Not_A_Slug")
    assert response.status_code == 422


def test_admin_routes_require_api_key(client):
    missing = client.post("/api/v1/blogs", json={"title": "Hello"})
    assert missing.status_code == 401
    assert missing.json()["error"]["message"] == "API key is required for this operation"

    wrong = client.delete("/api/v1/blogs/hello", headers={"X-API-Key": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == {"code": "UNAUTHORIZED", "message": "Invalid API key"}


def test_create_post_validation_error_lists_fields(client, admin_headers):
    response = client.post(
        "/api/v1/blogs",
        headers=admin_headers,
        json={"title": "", "coverImage": "ftp://example.com/x.png", "layout": {"type": "grid"}},
    )

    assert response.status_code == 422
    fields = response.json()["error"]["details"]["fields"]
    assert {"title", "coverImage", "layout.type"} <= set(fields)


def test_create_post_returns_201(client, admin_headers, monkeypatch):
    captured = {}

    async def fake_create_post(executor, payload):
        captured["payload"] = payload
        return {"slug": "hello-world"}

    monkeypatch.setattr(post_service, "create_post", fake_create_post)
    response = client.post(
        "/api/v1/blogs",
        headers=admin_headers,
        json={"title": "Hello World", "settings": {"enableComments": False}, "tags": ["python"]},
    )

    assert response.status_code == 201
    assert response.json() == {
        "success": True,
        "data": {"blog": {"slug": "hello-world"}},
        "message": "Blog created successfully",
    }
    assert captured["payload"].settings.enable_comments is False


def test_comment_on_disabled_post_is_400(client, monkeypatch):
    async def fake_create_comment(executor, slug, **kwargs):
        raise ValidationFailed("Comments are disabled for this blog")

    monkeypatch.setattr(comment_service, "create_comment", fake_create_comment)
    response = client.post("/api/v1/blogs/hello-world/comments", json={"name": "Ada", "comment": "Nice"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_comment_rate_limit(client, monkeypatch):
    monkeypatch.setenv("COMMENT_RATE_LIMIT", "2")
    get_settings.cache_clear()

    async def fake_create_comment(executor, slug, **kwargs):
        return {"id": "c1", "name": kwargs["name"], "comment": kwargs["comment"], "createdAt": None}

    monkeypatch.setattr(comment_service, "create_comment", fake_create_comment)
    statuses = [
        client.post("/api/v1/blogs/hello-world/comments", json={"name": "Ada", "comment": "Hi"}).status_code
        for _ in range(3)
    ]

    assert statuses == [201, 201, 429]


def test_public_rate_limit(client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "2")
    get_settings.cache_clear()

    async def fake_list_posts(executor, **kwargs):
        return [], 0

    monkeypatch.setattr(post_service, "list_posts", fake_list_posts)
    responses = [client.get("/api/v1/blogs") for _ in range(3)]

    assert [r.status_code for r in responses] == [200, 200, 429]
    assert responses[-1].json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert responses[0].headers["RateLimit-Limit"] == "2"
    assert responses[0].headers["RateLimit-Remaining"] == "1"
    assert responses[-1].headers["RateLimit-Remaining"] == "0"
    assert int(responses[-1].headers["RateLimit-Reset"]) > 0


def test_forwarded_header_does_not_reset_the_limit(client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "2")
    get_settings.cache_clear()

    async def fake_list_posts(executor, **kwargs):
        return [], 0

    monkeypatch.setattr(post_service, "list_posts", fake_list_posts)
    statuses = [
        client.get("/api/v1/blogs", headers={"X-Forwarded-For": f"203.0.113.{n}"}).status_code for n in range(5)
    ]

    assert statuses == [200, 200, 429, 429, 429]


def test_forwarded_header_is_honoured_behind_trusted_proxy(client, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "2")
    monkeypatch.setenv("TRUST_PROXY", "true")
    get_settings.cache_clear()

    async def fake_list_posts(executor, **kwargs):
        return [], 0

    monkeypatch.setattr(post_service, "list_posts", fake_list_posts)
    spread = [
        client.get("/api/v1/blogs", headers={"X-Forwarded-For": f"203.0.113.{n}, 10.0.0.1"}).status_code
        for n in range(5)
    ]
    same = [client.get("/api/v1/blogs", headers={"X-Real-IP": "198.51.100.7"}).status_code for _ in range(3)]

    assert spread == [200] * 5
    assert same == [200, 200, 429]


def test_database_errors_are_reported_as_such(client, monkeypatch):
    async def fake_list_posts(executor, **kwargs):
        raise asyncpg.exceptions.UndefinedTableError('relation "posts" does not exist')

    monkeypatch.setattr(post_service, "list_posts", fake_list_posts)
    response = client.get("/api/v1/blogs")

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "DATABASE_ERROR"


def test_unexpected_errors_are_internal(client, monkeypatch):
    async def fake_list_posts(executor, **kwargs):
        raise KeyError("meta")

    monkeypatch.setattr(post_service, "list_posts", fake_list_posts)
    response = client.get("/api/v1/blogs")

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"
