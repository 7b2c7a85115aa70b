"""HTTP tests for the API surface.

Exercise the full stack through TestClient: auth middleware, request-id
middleware, the response envelope, rate limiting, and the route table.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from zeal.config import clear_settings_cache
from zeal.db.models import DraftStatus, UploadDraft
from zeal.services import uploads as upload_service
from tests.factories import create_poll, create_post, create_zeal
from tests.helpers import auth_headers, mint_test_token


def _start_body(kind: str, file_name: str, file_size: int, mime_type: str) -> dict:
    return {"kind": kind, "file_name": file_name, "file_size": file_size, "mime_type": mime_type}


class TestAuth:
    def test_health_is_public(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok"}}
        assert "X-Request-ID" in response.headers

    def test_missing_token_rejected(self, client):
        response = client.get("/notifications")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"
        assert "X-Request-ID" in response.headers

    def test_token_with_wrong_secret_rejected(self, client):
        token = mint_test_token(uuid4(), secret="not-the-secret")
        response = client.get("/notifications", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid token signature"

    def test_expired_token_rejected(self, client):
        token = mint_test_token(uuid4(), expires_in=-3600)
        response = client.get("/notifications", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_incoming_request_id_echoed(self, client, make_user):
        user = make_user()
        headers = {**auth_headers(user.id), "X-Request-ID": "trace-123"}

        response = client.get("/notifications", headers=headers)

        assert response.headers["X-Request-ID"] == "trace-123"


class TestUploadRoutes:
    def test_start_simple_upload(self, client, make_user):
        user = make_user()

        response = client.post(
            "/uploads/start",
            json=_start_body("image", "a.png", 100, "image/png"),
            headers=auth_headers(user.id),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["strategy"] == "simple"
        assert data["upload_url"].startswith("https://fake-storage.test/upload/")

    def test_start_rejects_bad_kind(self, client, make_user):
        response = client.post(
            "/uploads/start",
            json=_start_body("audio", "a.mp3", 100, "audio/mp3"),
            headers=auth_headers(make_user().id),
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_server_side_upload(self, client, make_user, storage, db_session):
        user = make_user()

        response = client.post(
            "/uploads/file",
            files={"file": ("pic.png", b"\x89PNG-bytes", "image/png")},
            headers=auth_headers(user.id),
        )

        assert response.status_code == 202
        draft_id = response.json()["data"]["draft_id"]

        status = client.get(f"/uploads/{draft_id}", headers=auth_headers(user.id))
        assert status.json()["data"]["is_uploaded"] is True
        draft = db_session.get(UploadDraft, UUID(draft_id))
        assert storage.get_object(draft.storage_key) == b"\x89PNG-bytes"

    def test_draft_of_other_user_not_found(self, client, make_user):
        owner, other = make_user(), make_user()
        created = client.post(
            "/uploads/start",
            json=_start_body("video", "v.mp4", 10, "video/mp4"),
            headers=auth_headers(owner.id),
        ).json()["data"]

        response = client.get(f"/uploads/{created['draft_id']}", headers=auth_headers(other.id))

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_DRAFT_NOT_FOUND"

    def test_upload_rate_limited(self, client, make_user, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT_UPLOADS_PER_MINUTE", "1")
        clear_settings_cache()
        user = make_user()
        body = _start_body("image", "a.png", 10, "image/png")

        first = client.post("/uploads/start", json=body, headers=auth_headers(user.id))
        second = client.post("/uploads/start", json=body, headers=auth_headers(user.id))

        assert first.status_code == 201
        assert second.status_code == 429
        assert second.json()["error"]["code"] == "E_RATE_LIMITED"
        assert int(second.headers["Retry-After"]) >= 1

    def test_zeal_status_route_wins_over_generic_content(self, client, make_user, db_session):
        user = make_user()
        zeal = create_zeal(db_session, user.id)

        response = client.get(f"/content/{zeal.id}/status", headers=auth_headers(user.id))

        assert response.status_code == 200
        data = response.json()["data"]
        assert (data["zeal_id"], data["status"]) == (str(zeal.id), "ready")

    def test_create_zeal_from_draft(self, client, make_user, db_session, storage, monkeypatch):
        monkeypatch.setattr(upload_service, "_dispatch_processing", lambda *a, **kw: True)
        user = make_user()
        headers = auth_headers(user.id)
        uploaded = client.post(
            "/uploads/file",
            files={"file": ("clip.mp4", b"tiny-video", "video/mp4")},
            headers=headers,
        ).json()["data"]

        response = client.post(
            "/content",
            json={"draft_id": uploaded["draft_id"], "caption": "first zeal"},
            headers=headers,
        )

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "processing"
        db_session.expire_all()
        draft = db_session.get(UploadDraft, UUID(uploaded["draft_id"]))
        assert draft.status == DraftStatus.uploaded


class TestContentRoutes:
    def test_create_and_delete_post(self, client, make_user):
        headers = auth_headers(make_user().id)

        created = client.post(
            "/posts", json={"caption": "hi", "images": ["https://cdn.test/a.jpg"]}, headers=headers
        )
        post_id = created.json()["data"]["id"]

        fetched = client.get(f"/content/post/{post_id}", headers=headers)
        deleted = client.delete(f"/content/post/{post_id}", headers=headers)
        missing = client.get(f"/content/post/{post_id}", headers=headers)

        assert created.status_code == 201
        assert fetched.json()["data"]["like_count"] == 0
        assert deleted.status_code == 204
        assert missing.status_code == 404

    def test_malformed_json_is_invalid_request(self, client, make_user):
        response = client.post(
            "/posts",
            content=b"{not json",
            headers={**auth_headers(make_user().id), "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

    def test_vote_on_poll(self, client, make_user, db_session):
        poll = create_poll(db_session, make_user().id)
        voter = make_user()
        option_id = str(poll.options[1].id)

        voted = client.post(
            f"/polls/{poll.id}/vote", json={"option_id": option_id}, headers=auth_headers(voter.id)
        )
        fetched = client.get(f"/content/poll/{poll.id}", headers=auth_headers(voter.id))

        assert voted.status_code == 200
        assert voted.json()["data"]["user_vote"] == option_id
        assert fetched.json()["data"]["total_votes"] == 1

    def test_vote_on_expired_poll_conflicts(self, client, make_user, db_session):
        poll = create_poll(
            db_session, make_user().id, ends_at=datetime.now(UTC) - timedelta(minutes=5)
        )

        response = client.post(
            f"/polls/{poll.id}/vote",
            json={"option_id": str(poll.options[0].id)},
            headers=auth_headers(make_user().id),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "E_POLL_EXPIRED"

    def test_poll_validation(self, client, make_user):
        response = client.post(
            "/polls",
            json={"caption": "?", "options": ["only one"]},
            headers=auth_headers(make_user().id),
        )
        assert response.status_code == 400


class TestSocialRoutes:
    def test_follow_flow(self, client, make_user):
        alice, bob = make_user("alice"), make_user("bob")

        followed = client.post(f"/users/{bob.id}/follow", headers=auth_headers(alice.id))
        again = client.post(f"/users/{bob.id}/follow", headers=auth_headers(alice.id))
        counts = client.get(f"/users/{bob.id}/follow-counts", headers=auth_headers(alice.id))
        inbox = client.get("/notifications", headers=auth_headers(bob.id))

        assert followed.status_code == 201
        assert again.status_code == 409
        assert counts.json()["data"]["follower_count"] == 1
        assert inbox.json()["data"]["unread_count"] == 1

    def test_like_comment_and_share(self, client, make_user, db_session):
        author, fan, friend = make_user(), make_user(), make_user()
        post = create_post(db_session, author.id)
        headers = auth_headers(fan.id)

        like = client.post(f"/content/post/{post.id}/like", headers=headers)
        comment = client.post(
            f"/content/post/{post.id}/comments", json={"text": "great"}, headers=headers
        )
        share = client.post(
            f"/content/post/{post.id}/shares",
            json={"receiver_ids": [str(friend.id)]},
            headers=headers,
        )
        shares = client.get("/me/shares", headers=auth_headers(friend.id))

        assert like.json()["data"]["action"] == "liked"
        assert comment.status_code == 201
        assert share.status_code == 201
        assert shares.json()["data"]["pagination"]["total"] == 1

        removed = client.delete(
            f"/comments/{comment.json()['data']['id']}", headers=auth_headers(author.id)
        )
        assert removed.status_code == 204

    def test_poll_comment_rejected(self, client, make_user):
        headers = auth_headers(make_user().id)
        poll = client.post(
            "/polls", json={"caption": "?", "options": ["a", "b"]}, headers=headers
        ).json()["data"]

        response = client.post(
            f"/content/poll/{poll['id']}/comments", json={"text": "hi"}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_CONTENT_TYPE"

    @pytest.mark.parametrize("content_type", ["story", "Story"])
    def test_unknown_content_type(self, client, make_user, content_type):
        response = client.post(
            f"/content/{content_type}/{uuid4()}/like", headers=auth_headers(make_user().id)
        )
        assert response.json()["error"]["code"] == "E_INVALID_CONTENT_TYPE"

    def test_mark_all_notifications_read(self, client, make_user):
        alice, bob = make_user(), make_user()
        client.post(f"/users/{bob.id}/follow", headers=auth_headers(alice.id))

        marked = client.post("/notifications/read", json={}, headers=auth_headers(bob.id))
        unread = client.get("/notifications?unread_only=true", headers=auth_headers(bob.id))

        assert marked.json()["data"] == {"updated": 1}
        assert unread.json()["data"]["notifications"] == []
