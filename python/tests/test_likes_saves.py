"""Tests for content likes, saves and the content reference resolver."""

from uuid import uuid4

import pytest

from zeal.db.models import (
    ContentLike,
    ContentStatus,
    ContentType,
    Notification,
    NotificationType,
    SavedContent,
)
from zeal.errors import ApiError, ApiErrorCode
from zeal.services import content as content_service
from zeal.services import likes as like_service
from zeal.services import saves as save_service
from zeal.services.content_refs import parse_content_type, require_content, resolve_content
from tests.factories import create_poll, create_post, create_write_post, create_zeal


class TestContentRefs:
    def test_parse_accepts_value_and_model_name(self):
        assert parse_content_type("write_post") == ContentType.write_post
        assert parse_content_type("Zeal Post") == ContentType.zeal
        assert parse_content_type("story") is None

    def test_resolve_missing_returns_none(self, db_session):
        assert resolve_content(db_session, ContentType.post, uuid4()) is None
        assert resolve_content(db_session, "story", uuid4()) is None

    def test_processing_zeal_does_not_resolve(self, db_session, make_user):
        zeal = create_zeal(db_session, make_user().id, status=ContentStatus.processing)
        assert resolve_content(db_session, ContentType.zeal, zeal.id) is None

    def test_poll_not_commentable(self, db_session, make_user):
        from zeal.services.content_refs import COMMENTABLE

        poll = create_poll(db_session, make_user().id)
        with pytest.raises(ApiError) as exc_info:
            require_content(db_session, "poll", poll.id, COMMENTABLE)
        assert exc_info.value.code == ApiErrorCode.E_INVALID_CONTENT_TYPE


class TestLikes:
    def test_like_then_duplicate(self, db_session, make_user):
        author, fan = make_user(), make_user()
        post = create_post(db_session, author.id)

        first = like_service.like_content(db_session, fan.id, "post", post.id)
        second = like_service.like_content(db_session, fan.id, "post", post.id)

        assert (first.action, first.like_count) == ("liked", 1)
        assert (second.action, second.is_liked, second.like_count) == ("already_liked", True, 1)

    def test_like_records_model_name(self, db_session, make_user):
        write_post = create_write_post(db_session, make_user().id)
        like_service.like_content(db_session, make_user().id, "write_post", write_post.id)

        like = db_session.query(ContentLike).one()
        assert like.content_model == "Write Post"

    def test_toggle(self, db_session, make_user):
        fan = make_user()
        zeal = create_zeal(db_session, make_user().id)

        liked = like_service.toggle_like(db_session, fan.id, "zeal", zeal.id)
        unliked = like_service.toggle_like(db_session, fan.id, "zeal", zeal.id)

        assert liked.action == "liked"
        assert (unliked.action, unliked.is_liked, unliked.like_count) == ("unliked", False, 0)

    def test_like_missing_content(self, db_session, make_user):
        with pytest.raises(ApiError) as exc_info:
            like_service.like_content(db_session, make_user().id, "post", uuid4())
        assert exc_info.value.code == ApiErrorCode.E_CONTENT_NOT_FOUND

    def test_like_unknown_type(self, db_session, make_user):
        with pytest.raises(ApiError) as exc_info:
            like_service.like_content(db_session, make_user().id, "story", uuid4())
        assert exc_info.value.code == ApiErrorCode.E_INVALID_CONTENT_TYPE

    def test_like_notifies_author_with_type_specific_kind(self, db_session, make_user):
        author, fan = make_user(), make_user()
        poll = create_poll(db_session, author.id)

        like_service.like_content(db_session, fan.id, "poll", poll.id)

        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.poll_liked
        assert notification.receiver_id == author.id
        assert notification.content_id == poll.id

    def test_liking_own_content_does_not_notify(self, db_session, make_user):
        author = make_user()
        post = create_post(db_session, author.id)

        like_service.like_content(db_session, author.id, "post", post.id)
        assert db_session.query(Notification).count() == 0

    def test_unlike_works_after_content_deleted(self, db_session, make_user):
        author, fan = make_user(), make_user()
        post = create_post(db_session, author.id)
        like_service.like_content(db_session, fan.id, "post", post.id)
        content_service.delete_content(db_session, author.id, "post", post.id)

        result = like_service.unlike_content(db_session, fan.id, "post", post.id)
        assert result.action == "unliked"


class TestSaves:
    def test_save_duplicate_and_toggle(self, db_session, make_user):
        user = make_user()
        post = create_post(db_session, make_user().id)

        assert save_service.save_content(db_session, user.id, "post", post.id).action == "saved"
        again = save_service.save_content(db_session, user.id, "post", post.id)
        assert again.action == "already_saved"

        toggled = save_service.toggle_save(db_session, user.id, "post", post.id)
        assert (toggled.action, toggled.is_saved) == ("unsaved", False)

    def test_list_saved_newest_first_and_filtered(self, db_session, make_user):
        user = make_user()
        author = make_user()
        post = create_post(db_session, author.id)
        poll = create_poll(db_session, author.id)
        save_service.save_content(db_session, user.id, "post", post.id)
        save_service.save_content(db_session, user.id, "poll", poll.id)

        everything = save_service.list_saved_content(db_session, user.id)
        polls_only = save_service.list_saved_content(db_session, user.id, content_type="poll")

        assert [i.content_type for i in everything.items] == [ContentType.poll, ContentType.post]
        assert everything.items[0].content["caption"] == "Which one?"
        assert [i.content_id for i in polls_only.items] == [poll.id]

    def test_list_saved_drops_deleted_content(self, db_session, make_user):
        user, author = make_user(), make_user()
        kept = create_post(db_session, author.id, caption="kept")
        gone = create_post(db_session, author.id, caption="gone")
        save_service.save_content(db_session, user.id, "post", kept.id)
        save_service.save_content(db_session, user.id, "post", gone.id)
        content_service.delete_content(db_session, author.id, "post", gone.id)

        result = save_service.list_saved_content(db_session, user.id)

        assert [i.content_id for i in result.items] == [kept.id]
        assert result.pagination.total == 1
        assert db_session.query(SavedContent).count() == 1

    def test_cleanup_stale_saved_content(self, db_session, make_user):
        user, author = make_user(), make_user()
        post = create_post(db_session, author.id)
        save_service.save_content(db_session, user.id, "post", post.id)
        content_service.delete_content(db_session, author.id, "post", post.id)

        assert save_service.cleanup_stale_saved_content(db_session, user.id) == 1
        assert save_service.cleanup_stale_saved_content(db_session) == 0
