from datetime import timedelta

from sqlalchemy import select

from app.errors import UpstreamQueryFailure
from app.models import SuggestionInteraction
from app.routers.suggestions import get_scorer
from app.suggestions.scorer import SuggestionScorer
from app.suggestions.store import SuggestionStore

SUGGESTION_FIELDS = {
    "id",
    "user_name",
    "user_handle",
    "avatar_url",
    "bio",
    "location",
    "is_verified",
    "score",
    "mutualConnections",
}


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def test_missing_token_is_unauthorized(client):
    resp = await client.post("/suggestions/", json={"limit": 5})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


async def test_unknown_token_is_unauthorized(client, tokens):
    resp = await client.post("/suggestions/", headers=auth("nope"))

    assert resp.status_code == 401
    assert resp.json() == {"error": "Unauthorized"}


async def test_suggestions_response_shape(client, graph, tokens):
    r = await graph.user("requester")
    a = await graph.user("alice")
    c = await graph.user("carol", location="Haifa", verified=True)
    await graph.follow(r, a)
    await graph.follow(c, a)
    tokens["t-r"] = r

    resp = await client.post("/suggestions/", headers=auth("t-r"), json={"limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert list(body) == ["suggestions"]
    (suggestion,) = body["suggestions"]
    assert set(suggestion) == SUGGESTION_FIELDS
    assert suggestion["id"] == c
    assert suggestion["user_handle"] == "carol"
    assert suggestion["location"] == "Haifa"
    assert suggestion["is_verified"] is True
    assert suggestion["score"] == 10 + 30 + 5
    assert suggestion["mutualConnections"] == 1


async def test_limit_from_body(client, graph, tokens):
    r = await graph.user("requester")
    for i in range(4):
        await graph.user(f"verified{i}", verified=True)
    tokens["t-r"] = r

    resp = await client.post("/suggestions/", headers=auth("t-r"), json={"limit": 2})

    assert resp.status_code == 200
    assert len(resp.json()["suggestions"]) == 2


async def test_missing_or_unparsable_body_uses_default_limit(client, graph, tokens):
    r = await graph.user("requester")
    for i in range(12):
        await graph.user(f"verified{i}", verified=True)
    tokens["t-r"] = r

    no_body = await client.post("/suggestions/", headers=auth("t-r"))
    garbage = await client.post(
        "/suggestions/",
        headers={**auth("t-r"), "Content-Type": "application/json"},
        content=b"{not json",
    )

    assert len(no_body.json()["suggestions"]) == 10
    assert len(garbage.json()["suggestions"]) == 10


async def test_invalid_limit_is_rejected(client, graph, tokens):
    r = await graph.user("requester")
    tokens["t-r"] = r

    for bad in (0, -3, "5", 1.5):
        resp = await client.post("/suggestions/", headers=auth("t-r"), json={"limit": bad})
        assert resp.status_code == 400
        assert "error" in resp.json()


async def test_empty_result_is_not_an_error(client, graph, tokens):
    r = await graph.user("requester")
    await graph.user("nobody")
    tokens["t-r"] = r

    resp = await client.post("/suggestions/", headers=auth("t-r"))

    assert resp.status_code == 200
    assert resp.json() == {"suggestions": []}


class ExplodingStore(SuggestionStore):
    async def candidate_profiles(self, exclude_ids):
        raise RuntimeError("boom")


async def test_unexpected_failure_is_500(client, graph, tokens, session_factory):
    from app.main import app

    r = await graph.user("requester")
    tokens["t-r"] = r
    app.dependency_overrides[get_scorer] = lambda: SuggestionScorer(
        session_factory, store_cls=ExplodingStore
    )

    resp = await client.post("/suggestions/", headers=auth("t-r"))

    assert resp.status_code == 500
    assert resp.json() == {"error": "boom"}


class LeakyFollowingStore(SuggestionStore):
    async def following_ids(self, user_id):
        raise UpstreamQueryFailure(
            "following",
            "following query failed: (sqlite3.OperationalError) no such table: follows\n"
            "[SQL: SELECT follows.following_id FROM follows WHERE follows.follower_id = ?]",
        )


async def test_store_failure_does_not_leak_query_text(client, graph, tokens, session_factory):
    from app.main import app

    r = await graph.user("requester")
    tokens["t-r"] = r
    app.dependency_overrides[get_scorer] = lambda: SuggestionScorer(
        session_factory, store_cls=LeakyFollowingStore
    )

    resp = await client.post("/suggestions/", headers=auth("t-r"))

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to load suggestions"}
    assert "SQL" not in resp.text
    assert "follows" not in resp.text


async def test_any_origin_may_call(client, graph, tokens):
    r = await graph.user("requester")
    tokens["t-r"] = r

    preflight = await client.options(
        "/suggestions/",
        headers={
            "Origin": "https://example.org",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )
    resp = await client.post(
        "/suggestions/", headers={**auth("t-r"), "Origin": "https://example.org"}
    )

    assert preflight.status_code == 200
    assert preflight.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-origin"] == "*"


async def test_record_interaction(client, graph, tokens, session_factory):
    r = await graph.user("requester")
    c = await graph.user("candidate", verified=True)
    tokens["t-r"] = r

    resp = await client.post(
        "/suggestions/interactions",
        headers=auth("t-r"),
        json={"suggested_user_id": c, "interaction_type": "shown"},
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["user_id"] == r
    assert body["suggested_user_id"] == c
    assert body["interaction_type"] == "shown"

    async with session_factory() as session:
        rows = (await session.execute(select(SuggestionInteraction))).scalars().all()
    assert [(i.user_id, i.suggested_user_id) for i in rows] == [(r, c)]


async def test_dismissed_suggestion_disappears(client, graph, tokens):
    r = await graph.user("requester")
    c = await graph.user("candidate", verified=True)
    other = await graph.user("other", verified=True)
    tokens["t-r"] = r

    before = await client.post("/suggestions/", headers=auth("t-r"))
    await client.post(
        "/suggestions/interactions",
        headers=auth("t-r"),
        json={"suggested_user_id": c, "interaction_type": "dismissed"},
    )
    after = await client.post("/suggestions/", headers=auth("t-r"))

    assert [s["id"] for s in before.json()["suggestions"]] == [c, other]
    assert [s["id"] for s in after.json()["suggestions"]] == [other]


async def test_interaction_validation(client, graph, tokens):
    r = await graph.user("requester")
    c = await graph.user("candidate")
    tokens["t-r"] = r

    bad_kind = await client.post(
        "/suggestions/interactions",
        headers=auth("t-r"),
        json={"suggested_user_id": c, "interaction_type": "loved"},
    )
    unknown = await client.post(
        "/suggestions/interactions",
        headers=auth("t-r"),
        json={"suggested_user_id": "missing", "interaction_type": "shown"},
    )
    unauthenticated = await client.post(
        "/suggestions/interactions",
        json={"suggested_user_id": c, "interaction_type": "shown"},
    )

    assert bad_kind.status_code == 422
    assert "error" in bad_kind.json()
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "User not found"}
    assert unauthenticated.status_code == 401


async def test_recent_posts_count_through_api(client, graph, tokens):
    r = await graph.user("requester")
    c = await graph.user("candidate")
    await graph.post(c, age=timedelta(hours=2))
    tokens["t-r"] = r

    resp = await client.post("/suggestions/", headers=auth("t-r"))

    assert [(s["id"], s["score"]) for s in resp.json()["suggestions"]] == [(c, 2)]
