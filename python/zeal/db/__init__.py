"""Database module for Zeal.

Provides engine creation, session management, and ORM models.
"""

from zeal.db.engine import create_db_engine, get_engine
from zeal.db.models import (
    CONTENT_MODEL_NAMES,
    Base,
    Comment,
    ContentLike,
    ContentReport,
    ContentShare,
    ContentShareReceiver,
    ContentStatus,
    ContentType,
    DraftStatus,
    MediaKind,
    Notification,
    NotificationStatus,
    NotificationType,
    Poll,
    PollOption,
    PollStatus,
    PollVote,
    Post,
    ReportStatus,
    SavedContent,
    UploadDraft,
    User,
    UserFollower,
    WritePost,
    ZealPost,
)
from zeal.db.session import get_db

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    # Base
    "Base",
    # Enums
    "ContentStatus",
    "ContentType",
    "CONTENT_MODEL_NAMES",
    "DraftStatus",
    "MediaKind",
    "NotificationStatus",
    "NotificationType",
    "PollStatus",
    "ReportStatus",
    # Models
    "User",
    "UserFollower",
    "Post",
    "WritePost",
    "ZealPost",
    "Poll",
    "PollOption",
    "PollVote",
    "UploadDraft",
    "ContentLike",
    "SavedContent",
    "Comment",
    "ContentShare",
    "ContentShareReceiver",
    "ContentReport",
    "Notification",
]
