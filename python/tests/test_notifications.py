"""Tests for the notification service."""

from unittest.mock import patch

from zeal.db.models import Notification, NotificationStatus, NotificationType
from zeal.services import notifications as notification_service


def _notify(db, receiver, sender, type=NotificationType.new_follower):
    return notification_service.create_notification(
        db, receiver_id=receiver.id, sender_id=sender.id, type=type, message="hello"
    )


class TestCreateNotification:
    def test_self_notification_skipped(self, db_session, make_user):
        user = make_user()
        assert _notify(db_session, user, user) is None
        assert db_session.query(Notification).count() == 0

    def test_defaults_unread_with_empty_metadata(self, db_session, make_user):
        notification = _notify(db_session, make_user(), make_user())

        assert notification.status == NotificationStatus.unread
        assert notification.extra == {}

    def test_best_effort_swallows_failures(self, db_session, make_user):
        receiver, sender = make_user(), make_user()

        with patch.object(
            notification_service, "create_notification", side_effect=RuntimeError("db down")
        ):
            result = notification_service.notify_best_effort(
                db_session,
                receiver_id=receiver.id,
                sender_id=sender.id,
                type=NotificationType.post_liked,
                message="liked",
            )

        assert result is None


class TestListAndMarkRead:
    def test_list_newest_first_with_unread_count(self, db_session, make_user):
        receiver = make_user()
        _notify(db_session, receiver, make_user(), NotificationType.new_follower)
        _notify(db_session, receiver, make_user(), NotificationType.post_liked)

        result = notification_service.list_notifications(db_session, receiver.id)

        assert [n.type for n in result.notifications] == [
            NotificationType.post_liked,
            NotificationType.new_follower,
        ]
        assert result.unread_count == 2
        assert result.pagination.total == 2

    def test_mark_some_read_then_filter_unread(self, db_session, make_user):
        receiver = make_user()
        first = _notify(db_session, receiver, make_user())
        _notify(db_session, receiver, make_user())

        changed = notification_service.mark_notifications_read(db_session, receiver.id, [first.id])
        unread = notification_service.list_notifications(db_session, receiver.id, unread_only=True)

        assert changed == 1
        assert unread.pagination.total == 1
        assert unread.unread_count == 1
        assert first.id not in {n.id for n in unread.notifications}

    def test_mark_all_read_only_touches_own(self, db_session, make_user):
        receiver, other = make_user(), make_user()
        _notify(db_session, receiver, make_user())
        _notify(db_session, receiver, make_user())
        _notify(db_session, other, receiver)

        assert notification_service.mark_notifications_read(db_session, receiver.id) == 2
        assert notification_service.mark_notifications_read(db_session, receiver.id) == 0
        assert notification_service.list_notifications(db_session, other.id).unread_count == 1
