"""Tests for the social graph service.

Tests cover:
- follow / unfollow edge rules and cached counters
- follower and following listings with search and viewer annotation
- edge-derived counts
- new_follower notifications
"""

import pytest

from zeal.db.models import Notification, NotificationType, User
from zeal.errors import ApiError, ApiErrorCode
from zeal.services import follows as follow_service


class TestFollow:
    def test_follow_creates_edge_and_bumps_counters(self, db_session, make_user):
        alice, bob = make_user("alice"), make_user("bob")

        result = follow_service.follow(db_session, alice.id, bob.id)

        assert result.action == "followed"
        assert result.followed_at is not None
        assert result.target_user.follower_count == 1
        assert result.follower.following_count == 1
        assert follow_service.is_following(db_session, alice.id, bob.id)
        assert not follow_service.is_following(db_session, bob.id, alice.id)

    def test_self_follow_rejected(self, db_session, make_user):
        alice = make_user()
        with pytest.raises(ApiError) as exc_info:
            follow_service.follow(db_session, alice.id, alice.id)
        assert exc_info.value.code == ApiErrorCode.E_SELF_FOLLOW

    def test_follow_twice_conflicts(self, db_session, make_user):
        alice, bob = make_user(), make_user()
        follow_service.follow(db_session, alice.id, bob.id)

        with pytest.raises(ApiError) as exc_info:
            follow_service.follow(db_session, alice.id, bob.id)
        assert exc_info.value.code == ApiErrorCode.E_ALREADY_FOLLOWING

    def test_follow_deleted_user_not_found(self, db_session, make_user):
        alice = make_user()
        ghost = make_user(is_deleted=True)

        with pytest.raises(ApiError) as exc_info:
            follow_service.follow(db_session, alice.id, ghost.id)
        assert exc_info.value.code == ApiErrorCode.E_USER_NOT_FOUND

    def test_follow_notifies_target(self, db_session, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        follow_service.follow(db_session, alice.id, bob.id)

        notification = db_session.query(Notification).one()
        assert notification.receiver_id == bob.id
        assert notification.sender_id == alice.id
        assert notification.type == NotificationType.new_follower
        assert notification.extra == {"follower_username": "alice"}


class TestUnfollow:
    def test_unfollow_removes_edge(self, db_session, make_user):
        alice, bob = make_user(), make_user()
        follow_service.follow(db_session, alice.id, bob.id)

        result = follow_service.unfollow(db_session, alice.id, bob.id)

        assert result.action == "unfollowed"
        assert result.target_user.follower_count == 0
        assert result.follower.following_count == 0
        assert not follow_service.is_following(db_session, alice.id, bob.id)

    def test_unfollow_without_edge_conflicts(self, db_session, make_user):
        alice, bob = make_user(), make_user()
        with pytest.raises(ApiError) as exc_info:
            follow_service.unfollow(db_session, alice.id, bob.id)
        assert exc_info.value.code == ApiErrorCode.E_NOT_FOLLOWING

    def test_counter_never_negative(self, db_session, make_user):
        alice, bob = make_user(), make_user()
        follow_service.follow(db_session, alice.id, bob.id)
        db_session.query(User).filter(User.id == bob.id).update({"follower_count": 0})
        db_session.commit()

        result = follow_service.unfollow(db_session, alice.id, bob.id)
        assert result.target_user.follower_count == 0


class TestListings:
    def test_followers_newest_first_with_viewer_status(self, db_session, make_user):
        target = make_user("target")
        viewer = make_user("viewer")
        first, second = make_user("first"), make_user("second")
        follow_service.follow(db_session, first.id, target.id)
        follow_service.follow(db_session, second.id, target.id)
        follow_service.follow(db_session, viewer.id, target.id)
        follow_service.follow(db_session, viewer.id, second.id)

        result = follow_service.get_followers(db_session, viewer.id, target.id)

        assert [u.username for u in result.users] == ["viewer", "second", "first"]
        statuses = {u.username: u.follow_status for u in result.users}
        assert statuses == {"viewer": "self", "second": "following", "first": "not_following"}
        assert result.pagination.total == 3

    def test_following_list_and_pagination(self, db_session, make_user):
        user = make_user("user")
        for i in range(5):
            other = make_user(f"other{i}")
            follow_service.follow(db_session, user.id, other.id)

        page = follow_service.get_following(db_session, user.id, user.id, page=2, limit=2)

        assert len(page.users) == 2
        assert page.pagination.total == 5
        assert page.pagination.total_pages == 3

    def test_search_filters_and_counts_matches(self, db_session, make_user):
        target = make_user("target")
        for name in ("anna", "annabel", "bob"):
            follow_service.follow(db_session, make_user(name).id, target.id)

        result = follow_service.get_followers(db_session, target.id, target.id, search="ANN")

        assert sorted(u.username for u in result.users) == ["anna", "annabel"]
        assert result.pagination.total == 2

    def test_deleted_followers_hidden(self, db_session, make_user):
        target = make_user()
        gone = make_user()
        follow_service.follow(db_session, gone.id, target.id)
        gone.is_deleted = True
        db_session.commit()

        result = follow_service.get_followers(db_session, target.id, target.id)
        assert result.users == []

    def test_counts_come_from_edges(self, db_session, make_user):
        alice, bob = make_user(), make_user()
        follow_service.follow(db_session, alice.id, bob.id)
        bob.follower_count = 99
        db_session.commit()

        counts = follow_service.get_follow_counts(db_session, bob.id)

        assert counts.follower_count == 1
        assert counts.following_count == 0
