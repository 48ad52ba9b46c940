"""HTTP surface: status codes, envelopes and camelCase keys."""

import pytest
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import httpx
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from dailycheck.api.deps import (
    get_checkin_service,
    get_current_user,
    get_feed_service,
    get_profile_service,
    get_reaction_service,
    get_social_service,
    get_storage_service,
)
from dailycheck.auth.jwt import create_access_token
from dailycheck.config import Settings
from dailycheck.database import get_db
from dailycheck.main import app
from dailycheck.schemas import CurrentUser
from dailycheck.services.checkin import CheckinService
from dailycheck.services.feed import FeedService
from dailycheck.services.profile import ProfileService
from dailycheck.services.reaction import ReactionService
from dailycheck.services.social import SocialService
from dailycheck.services.storage import StorageService
from tests.fakes import FakeResult, FakeSession, row

T1 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def caller(user_id):
    user = CurrentUser(id=user_id, email="ana@example.com")
    app.dependency_overrides[get_current_user] = lambda: user
    return user


def override(provider, service):
    app.dependency_overrides[provider] = lambda: service


def checkin_row(user_id, created_at=T1):
    return row(
        id=uuid4(),
        user_id=user_id,
        photo_url="https://x/1.jpg",
        created_at=created_at,
        location=None,
        device_info=None,
    )


class TestAuth:
    def test_missing_token(self, client):
        response = client.get("/checkins")
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"

    def test_invalid_token(self, client):
        response = client.get("/checkins", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_valid_token(self, client, user_id):
        session = FakeSession(FakeResult())
        override(get_checkin_service, CheckinService(session))
        token = create_access_token(user_id, "ana@example.com")

        response = client.get("/checkins", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == []
        assert session.params(0)["user_id"] == user_id


class TestCheckinEndpoints:
    def test_create(self, client, caller):
        inserted = checkin_row(caller.id)
        session = FakeSession(FakeResult(), FakeResult(), FakeResult(rows=[inserted]))
        override(get_checkin_service, CheckinService(session, clock=lambda: T1))

        response = client.post("/checkins", json={"photoUrl": "https://x/1.jpg", "location": "Berlin"})

        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        assert body["checkin"]["id"] == str(inserted.id)
        assert body["checkin"]["photoUrl"] == "https://x/1.jpg"
        assert body["checkin"]["userId"] == str(caller.id)
        assert "createdAt" in body["checkin"]

    def test_create_within_cooldown(self, client, caller):
        now = T1 + timedelta(minutes=4)
        session = FakeSession(FakeResult(), FakeResult(rows=[row(id=uuid4(), created_at=T1)]))
        override(get_checkin_service, CheckinService(session, clock=lambda: now))

        response = client.post("/checkins", json={"photoUrl": "https://x/2.jpg"})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "360"
        assert response.json()["error"] == "checkin_rate_limited"

    def test_missing_photo_url(self, client, caller):
        override(get_checkin_service, CheckinService(FakeSession()))

        response = client.post("/checkins", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_empty_photo_url(self, client, caller):
        override(get_checkin_service, CheckinService(FakeSession()))

        response = client.post("/checkins", json={"photoUrl": ""})

        assert response.status_code == 400

    def test_history(self, client, caller):
        session = FakeSession(FakeResult(scalar=1), FakeResult(rows=[checkin_row(caller.id)]))
        override(get_checkin_service, CheckinService(session))

        response = client.get("/checkins/history", params={"page": 1})

        assert response.status_code == 200
        pagination = response.json()["pagination"]
        assert pagination["totalPages"] == 1
        assert pagination["hasNext"] is False
        assert len(response.json()["checkins"]) == 1

    def test_get_unknown(self, client, caller):
        override(get_checkin_service, CheckinService(FakeSession(FakeResult())))

        response = client.get(f"/checkins/{uuid4()}")

        assert response.status_code == 404


class TestFeedEndpoint:
    def test_empty_feed(self, client, caller):
        override(get_feed_service, FeedService(FakeSession(FakeResult())))

        response = client.get("/social/feed")

        assert response.status_code == 200
        assert response.json() == {
            "checkins": [],
            "pagination": {
                "page": 1,
                "limit": 20,
                "total": 0,
                "totalPages": 0,
                "hasNext": False,
                "hasPrev": False,
            },
        }

    def test_feed_item_shape(self, client, caller):
        owner = uuid4()
        item = row(
            id=uuid4(),
            user_id=owner,
            photo_url="https://x/v.jpg",
            created_at=T1,
            location=None,
            device_info=None,
            username="vera",
            display_name=None,
        )
        session = FakeSession(
            FakeResult(rows=[row(following_id=owner)]),
            FakeResult(scalar=1),
            FakeResult(rows=[item]),
            FakeResult(rows=[row(checkin_id=item.id, reaction_type="wow", count=2, user_reacted=True)]),
        )
        override(get_feed_service, FeedService(session))

        response = client.get("/social/feed", params={"page": 1, "limit": 5})

        assert response.status_code == 200
        checkin = response.json()["checkins"][0]
        assert checkin["photoUrl"] == "https://x/v.jpg"
        assert checkin["user"] == {
            "id": str(owner),
            "username": "vera",
            "displayName": f"User {str(owner)[:8]}",
        }
        assert checkin["reactions"] == [{"type": "wow", "count": 2, "userReacted": True}]
        assert checkin["userReactions"] == ["wow"]

    def test_limit_above_maximum_is_clamped(self, client, caller):
        override(get_feed_service, FeedService(FakeSession(FakeResult())))

        response = client.get("/social/feed", params={"page": 1, "limit": 100})

        assert response.status_code == 200
        assert response.json()["pagination"]["limit"] == 50

    def test_limit_below_one_is_clamped(self, client, caller):
        override(get_feed_service, FeedService(FakeSession(FakeResult())))

        response = client.get("/social/feed", params={"limit": 0})

        assert response.status_code == 200
        assert response.json()["pagination"]["limit"] == 1


class TestReactionEndpoints:
    def test_add(self, client, caller):
        override(get_reaction_service, ReactionService(FakeSession(FakeResult(rows=[row(id=uuid4())]))))

        response = client.post("/reactions", json={"checkinId": str(uuid4()), "reactionType": "heart"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "created": True}

    def test_add_existing(self, client, caller):
        override(get_reaction_service, ReactionService(FakeSession(FakeResult())))

        response = client.post("/reactions", json={"checkinId": str(uuid4()), "reactionType": "heart"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "created": False}

    def test_invalid_type(self, client, caller):
        session = FakeSession()
        override(get_reaction_service, ReactionService(session))

        response = client.post("/reactions", json={"checkinId": str(uuid4()), "reactionType": "like"})

        assert response.status_code == 400
        assert session.statements == []

    def test_unknown_checkin(self, client, caller):
        error = IntegrityError("INSERT INTO reactions", {}, Exception("fk violation"))
        override(get_reaction_service, ReactionService(FakeSession(error)))

        response = client.post("/reactions", json={"checkinId": str(uuid4()), "reactionType": "wow"})

        assert response.status_code == 404

    def test_remove_missing(self, client, caller):
        override(get_reaction_service, ReactionService(FakeSession(FakeResult(rowcount=0))))

        response = client.delete(
            "/reactions", params={"checkinId": str(uuid4()), "reactionType": "haha"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "removed": 0}

    def test_remove_with_empty_type_clears_all(self, client, caller):
        checkin_id = uuid4()
        session = FakeSession(FakeResult(rowcount=2))
        override(get_reaction_service, ReactionService(session))

        response = client.delete(f"/reactions?checkinId={checkin_id}&reactionType=")

        assert response.status_code == 200
        assert response.json() == {"success": True, "removed": 2}
        assert "reaction_type" not in session.sql(0)
        assert session.params(0) == {"user_id": caller.id, "checkin_id": checkin_id}

    def test_remove_with_unknown_type(self, client, caller):
        session = FakeSession()
        override(get_reaction_service, ReactionService(session))

        response = client.delete("/reactions", params={"checkinId": str(uuid4()), "reactionType": "like"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_reaction_type"
        assert session.statements == []

    def test_remove_without_checkin_id(self, client, caller):
        override(get_reaction_service, ReactionService(FakeSession()))

        response = client.delete("/reactions", params={"reactionType": "haha"})

        assert response.status_code == 400

    def test_get_for_checkin(self, client, caller):
        checkin_id = uuid4()
        session = FakeSession(FakeResult(rows=[
            row(checkin_id=checkin_id, reaction_type="heart", count=1, user_reacted=False),
        ]))
        override(get_reaction_service, ReactionService(session))

        response = client.get("/reactions", params={"checkinId": str(checkin_id)})

        assert response.status_code == 200
        assert response.json() == {
            "reactions": [{"type": "heart", "count": 1, "userReacted": False}],
            "userReactions": [],
        }

    def test_get_requires_a_target(self, client, caller):
        override(get_reaction_service, ReactionService(FakeSession()))

        response = client.get("/reactions")

        assert response.status_code == 400
        assert response.json()["error"] == "missing_parameter"


class TestFollowEndpoints:
    def test_follow(self, client, caller):
        override(get_social_service, SocialService(FakeSession(FakeResult(rows=[row(id=uuid4())]))))

        response = client.post("/follows", json={"followingId": str(uuid4())})

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_follow_self(self, client, caller):
        override(get_social_service, SocialService(FakeSession()))

        response = client.post("/follows", json={"followingId": str(caller.id)})

        assert response.status_code == 400
        assert response.json()["error"] == "self_follow"

    def test_follow_twice(self, client, caller):
        override(get_social_service, SocialService(FakeSession(FakeResult())))

        response = client.post("/follows", json={"followingId": str(uuid4())})

        assert response.status_code == 409

    def test_unfollow_missing(self, client, caller):
        override(get_social_service, SocialService(FakeSession(FakeResult(rowcount=0))))

        response = client.delete("/follows", params={"followingId": str(uuid4())})

        assert response.status_code == 404

    def test_status(self, client, caller):
        session = FakeSession(FakeResult(rows=[
            row(is_following=False, is_followed_by=True, following_count=0, followers_count=2)
        ]))
        override(get_social_service, SocialService(session))

        response = client.get("/follows/status", params={"userId": str(uuid4())})

        assert response.json() == {
            "isFollowing": False,
            "isFollowedBy": True,
            "followingCount": 0,
            "followersCount": 2,
        }


class TestProfileEndpoints:
    def test_username_taken(self, client, caller):
        profile = row(
            id=uuid4(),
            user_id=caller.id,
            username="ana",
            display_name="ana",
            background_url=None,
            updated_at=T1,
        )
        session = FakeSession(
            FakeResult(rows=[profile]),
            IntegrityError("UPDATE profiles", {}, Exception("unique violation")),
        )
        override(get_profile_service, ProfileService(session))

        response = client.put("/profile/username", json={"username": "bob"})

        assert response.status_code == 409
        assert response.json()["error"] == "username_taken"

    def test_invalid_username(self, client, caller):
        override(get_profile_service, ProfileService(FakeSession()))

        response = client.put("/profile/username", json={"username": "no spaces"})

        assert response.status_code == 400

    def test_get_profile_creates(self, client, caller):
        created = row(
            id=uuid4(),
            user_id=caller.id,
            username="ana",
            display_name="ana",
            background_url=None,
            updated_at=T1,
        )
        session = FakeSession(FakeResult(), FakeResult(), FakeResult(rows=[created]))
        override(get_profile_service, ProfileService(session))

        response = client.get("/profile")

        assert response.status_code == 200
        profile = response.json()["profile"]
        assert profile["username"] == "ana"
        assert profile["userId"] == str(caller.id)
        assert profile["backgroundUrl"] is None

    def test_search_too_short(self, client, caller):
        override(get_profile_service, ProfileService(FakeSession()))

        response = client.get("/users/search", params={"username": "a"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_search_query"


class TestHealth:
    def test_health(self, client):
        async def fake_db():
            yield FakeSession(FakeResult())

        app.dependency_overrides[get_db] = fake_db

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_unexpected_error_is_500(self, user_id):
        class BrokenService:
            async def list_checkins(self, user_id):
                raise RuntimeError("boom")

        app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=user_id)
        app.dependency_overrides[get_checkin_service] = lambda: BrokenService()
        try:
            response = TestClient(app, raise_server_exceptions=False).get("/checkins")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"


class TestUploadEndpoint:
    def test_signed_upload_for_background(self, client, caller):
        def handler(request):
            path = request.url.path.split("/checkin-photos/", 1)[1]
            return httpx.Response(200, json={"url": f"/object/upload/sign/checkin-photos/{path}?token=t1"})

        storage = StorageService(
            httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            settings=Settings(supabase_url="https://project.supabase.co", storage_bucket="checkin-photos"),
        )
        override(get_storage_service, storage)

        response = client.post("/upload-url", json={"kind": "background"})

        assert response.status_code == 200
        body = response.json()
        assert body["path"].startswith(f"backgrounds/{caller.id}/")
        assert body["token"] == "t1"
        assert body["publicUrl"].endswith(body["path"])

    def test_store_failure_is_502(self, client, caller):
        storage = StorageService(
            httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503))),
            settings=Settings(supabase_url="https://project.supabase.co"),
        )
        override(get_storage_service, storage)

        response = client.post("/upload-url")

        assert response.status_code == 502
        assert response.json()["error"] == "storage_unavailable"

    def test_unknown_kind(self, client, caller):
        response = client.post("/upload-url", json={"kind": "avatar"})

        assert response.status_code == 400
