"""SQLAlchemy ORM models for Zeal.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Enums are Python enums stored as constrained strings so the schema runs
unchanged on PostgreSQL and on the SQLite test database.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from zeal.db.types import UTCDateTime, utcnow


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _str_enum(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )


# =============================================================================
# Enums
# =============================================================================


class MediaKind(str, PyEnum):
    """Kinds of media a draft can carry."""

    video = "video"
    image = "image"


class DraftStatus(str, PyEnum):
    """Upload draft lifecycle states.

    States:
        draft: Created, bytes not yet known to be in storage
        uploading: Server-side multipart transfer in flight
        uploaded: Consumed by content creation (terminal)
        failed: Unrecoverable storage error or expiry (terminal)
    """

    draft = "draft"
    uploading = "uploading"
    uploaded = "uploaded"
    failed = "failed"


class ContentStatus(str, PyEnum):
    """Zeal post processing states. processing -> ready | failed."""

    processing = "processing"
    ready = "ready"
    failed = "failed"


class PollStatus(str, PyEnum):
    active = "active"
    expired = "expired"


class ContentType(str, PyEnum):
    """Closed set of content discriminators used by weak references."""

    post = "post"
    write_post = "write_post"
    zeal = "zeal"
    poll = "poll"


# Canonical model names recorded on weak references at write time
CONTENT_MODEL_NAMES: dict[ContentType, str] = {
    ContentType.post: "Post",
    ContentType.write_post: "Write Post",
    ContentType.zeal: "Zeal Post",
    ContentType.poll: "Poll",
}


class NotificationType(str, PyEnum):
    new_follower = "new_follower"
    post_liked = "post_liked"
    write_liked = "write_liked"
    zeal_liked = "zeal_liked"
    poll_liked = "poll_liked"
    post_comment = "post_comment"
    write_comment = "write_comment"
    zeal_comment = "zeal_comment"
    content_shared = "content_shared"


class NotificationStatus(str, PyEnum):
    unread = "unread"
    read = "read"


class ReportStatus(str, PyEnum):
    pending = "pending"
    reviewed = "reviewed"
    resolved = "resolved"


# =============================================================================
# Users and the follow graph
# =============================================================================


class User(Base):
    """User account model.

    follower_count / following_count are an advisory cache; the
    user_followers edges are authoritative.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_verified_badge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    follower_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    following_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("username = lower(username)", name="ck_users_username_lowercase"),
    )


class UserFollower(Base):
    """Directed follow edge: follower_id follows user_id."""

    __tablename__ = "user_followers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    follower_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    follower: Mapped["User"] = relationship("User", foreign_keys=[follower_id])

    __table_args__ = (
        UniqueConstraint("user_id", "follower_id", name="uq_user_followers_edge"),
        CheckConstraint("user_id <> follower_id", name="ck_user_followers_no_self"),
        Index("ix_user_followers_follower", "follower_id"),
    )


# =============================================================================
# Content variants
# =============================================================================


class Post(Base):
    """Image/video post."""

    __tablename__ = "posts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    author_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    videos: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    mentioned_user_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    share_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class WritePost(Base):
    """Long-form text post."""

    __tablename__ = "write_posts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    author_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    mentioned_user_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class ZealPost(Base):
    """Short-video post created from a completed upload draft.

    Status machine: processing -> ready | failed, both terminal.
    """

    __tablename__ = "zeal_posts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    author_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    draft_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("upload_drafts.id", ondelete="SET NULL"), nullable=True
    )
    videos: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    mentioned_user_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    music_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    music_start_time: Mapped[float | None] = mapped_column(nullable=True)
    music_end_time: Mapped[float | None] = mapped_column(nullable=True)
    is_develop_by_ai: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    media_url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ContentStatus] = mapped_column(
        _str_enum(ContentStatus, "content_status"),
        default=ContentStatus.processing,
        nullable=False,
    )
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Poll(Base):
    """Poll with a fixed set of options."""

    __tablename__ = "polls"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    author_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    caption: Mapped[str] = mapped_column(Text, nullable=False)
    total_votes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[PollStatus] = mapped_column(
        _str_enum(PollStatus, "poll_status"), default=PollStatus.active, nullable=False
    )
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    options: Mapped[list["PollOption"]] = relationship(
        "PollOption",
        back_populates="poll",
        cascade="all, delete-orphan",
        order_by="PollOption.position",
    )
    votes: Mapped[list["PollVote"]] = relationship(
        "PollVote", back_populates="poll", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_polls_status_ends_at", "status", "ends_at"),)


class PollOption(Base):
    __tablename__ = "poll_options"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    poll_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    option_text: Mapped[str] = mapped_column(Text, nullable=False)
    vote_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    poll: Mapped["Poll"] = relationship("Poll", back_populates="options")

    __table_args__ = (UniqueConstraint("poll_id", "position", name="uq_poll_options_position"),)


class PollVote(Base):
    """One vote per user per poll. Re-voting moves the vote to another option."""

    __tablename__ = "poll_votes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    poll_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False
    )
    option_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    poll: Mapped["Poll"] = relationship("Poll", back_populates="votes")

    __table_args__ = (UniqueConstraint("poll_id", "user_id", name="uq_poll_votes_voter"),)


# =============================================================================
# Upload drafts
# =============================================================================


class UploadDraft(Base):
    """One record per attempted upload.

    storage_key is unique and never rewritten. For multipart drafts
    total_chunks == ceil(file_size / chunk_size) and uploaded_parts holds
    {part_number, etag, completed_at} entries for parts 1..total_chunks.
    """

    __tablename__ = "upload_drafts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[MediaKind] = mapped_column(_str_enum(MediaKind, "media_kind"), nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(Text, nullable=False)
    storage_key: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    upload_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_multipart: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    upload_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    chunk_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    total_chunks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_parts: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    status: Mapped[DraftStatus] = mapped_column(
        _str_enum(DraftStatus, "draft_status"), default=DraftStatus.draft, nullable=False
    )
    is_uploaded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    uploaded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("file_size > 0", name="ck_upload_drafts_file_size_positive"),
        CheckConstraint(
            "(is_multipart = false) OR (upload_id IS NOT NULL AND chunk_size > 0 "
            "AND total_chunks > 0)",
            name="ck_upload_drafts_multipart_fields",
        ),
        Index("ix_upload_drafts_owner_status", "owner_id", "status"),
    )


# =============================================================================
# Weak content references
# =============================================================================


class ContentRefMixin:
    """Columns shared by every weak reference to a content item.

    content_model is derived from content_type when the row is built through
    for_content(); it is never filled in by a persistence hook.
    """

    content_type: Mapped[ContentType] = mapped_column(
        _str_enum(ContentType, "content_type"), nullable=False
    )
    content_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    content_model: Mapped[str] = mapped_column(Text, nullable=False)

    @classmethod
    def for_content(cls, content_type: ContentType, content_id: UUID, **kwargs: Any):
        return cls(
            content_type=content_type,
            content_id=content_id,
            content_model=CONTENT_MODEL_NAMES[content_type],
            **kwargs,
        )


class ContentLike(ContentRefMixin, Base):
    __tablename__ = "content_likes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("content_type", "content_id", "user_id", name="uq_content_likes_user"),
        Index("ix_content_likes_content", "content_type", "content_id"),
    )


class SavedContent(ContentRefMixin, Base):
    __tablename__ = "saved_contents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("content_type", "content_id", "user_id", name="uq_saved_contents_user"),
        Index("ix_saved_contents_content", "content_type", "content_id"),
        Index("ix_saved_contents_user_created", "user_id", "created_at"),
    )


class Comment(ContentRefMixin, Base):
    """Comment on a content item. Deletion is soft."""

    __tablename__ = "comments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (Index("ix_comments_content", "content_type", "content_id"),)


class ContentShare(ContentRefMixin, Base):
    __tablename__ = "content_shares"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    sender_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    receivers: Mapped[list["ContentShareReceiver"]] = relationship(
        "ContentShareReceiver", back_populates="share", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_content_shares_content", "content_type", "content_id"),)


class ContentShareReceiver(Base):
    __tablename__ = "content_share_receivers"

    share_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("content_shares.id", ondelete="CASCADE"), primary_key=True
    )
    receiver_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )

    share: Mapped["ContentShare"] = relationship("ContentShare", back_populates="receivers")

    __table_args__ = (Index("ix_content_share_receivers_receiver", "receiver_id"),)


class ContentReport(ContentRefMixin, Base):
    __tablename__ = "content_reports"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    reported_by: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ReportStatus] = mapped_column(
        _str_enum(ReportStatus, "report_status"), default=ReportStatus.pending, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "content_type", "content_id", "reported_by", name="uq_content_reports_reporter"
        ),
        Index("ix_content_reports_content", "content_type", "content_id"),
    )


class Notification(Base):
    """User notification with an optional weak content pointer."""

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    receiver_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[NotificationType] = mapped_column(
        _str_enum(NotificationType, "notification_type"), nullable=False
    )
    content_type: Mapped[ContentType | None] = mapped_column(
        _str_enum(ContentType, "notification_content_type"), nullable=True
    )
    content_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[NotificationStatus] = mapped_column(
        _str_enum(NotificationStatus, "notification_status"),
        default=NotificationStatus.unread,
        nullable=False,
    )
    extra: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_notifications_receiver_status", "receiver_id", "status"),)
