"""Initial schema - users, follow graph, content, upload drafts, interactions

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Enums are stored as constrained text so the ORM models run unchanged against
SQLite in tests. Weak content references (likes, saves, comments, shares,
reports, notifications) carry (content_type, content_id) with no foreign key.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

CONTENT_TYPES = "('post', 'write_post', 'zeal', 'poll')"


def _id_column() -> sa.Column:
    return sa.Column(
        "id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=None if nullable else sa.text("now()"),
        nullable=nullable,
    )


def _content_ref_columns(prefix: str) -> list:
    return [
        sa.Column("content_type", sa.String(32), nullable=False),
        sa.Column("content_id", sa.UUID(), nullable=False),
        sa.Column("content_model", sa.Text(), nullable=False),
        sa.CheckConstraint(
            f"content_type IN {CONTENT_TYPES}", name=f"ck_{prefix}_content_type"
        ),
    ]


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        _id_column(),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
        sa.Column("is_verified_badge", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("follower_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("following_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.CheckConstraint("username = lower(username)", name="ck_users_username_lowercase"),
    )

    # ==========================================================================
    # user_followers table
    # ==========================================================================
    op.create_table(
        "user_followers",
        _id_column(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("follower_id", sa.UUID(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["follower_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "follower_id", name="uq_user_followers_edge"),
        sa.CheckConstraint("user_id <> follower_id", name="ck_user_followers_no_self"),
    )
    op.create_index("ix_user_followers_follower", "user_followers", ["follower_id"])

    # ==========================================================================
    # upload_drafts table
    # ==========================================================================
    op.create_table(
        "upload_drafts",
        _id_column(),
        sa.Column("owner_id", sa.UUID(), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.Text(), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("upload_url", sa.Text(), nullable=True),
        sa.Column("is_multipart", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("upload_id", sa.Text(), nullable=True),
        sa.Column("chunk_size", sa.BigInteger(), nullable=True),
        sa.Column("total_chunks", sa.Integer(), nullable=True),
        sa.Column("uploaded_parts", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("status", sa.String(32), server_default="draft", nullable=False),
        sa.Column("is_uploaded", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("content_id", sa.UUID(), nullable=True),
        _timestamp("expires_at", nullable=True),
        _timestamp("uploaded_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("storage_key", name="uq_upload_drafts_storage_key"),
        sa.CheckConstraint("kind IN ('video', 'image')", name="ck_upload_drafts_kind"),
        sa.CheckConstraint(
            "status IN ('draft', 'uploading', 'uploaded', 'failed')",
            name="ck_upload_drafts_status",
        ),
        sa.CheckConstraint("file_size > 0", name="ck_upload_drafts_file_size_positive"),
        sa.CheckConstraint(
            "(is_multipart = false) OR (upload_id IS NOT NULL AND chunk_size > 0 "
            "AND total_chunks > 0)",
            name="ck_upload_drafts_multipart_fields",
        ),
    )
    op.alter_column("upload_drafts", "expires_at", nullable=False)
    op.create_index("ix_upload_drafts_owner_status", "upload_drafts", ["owner_id", "status"])

    # ==========================================================================
    # content tables
    # ==========================================================================
    op.create_table(
        "posts",
        _id_column(),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("images", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("videos", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("mentioned_user_ids", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("share_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "write_posts",
        _id_column(),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("mentioned_user_ids", sa.JSON(), server_default="[]", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "zeal_posts",
        _id_column(),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("draft_id", sa.UUID(), nullable=True),
        sa.Column("videos", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("images", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("mentioned_user_ids", sa.JSON(), server_default="[]", nullable=False),
        sa.Column("music_id", sa.Text(), nullable=True),
        sa.Column("music_start_time", sa.Float(), nullable=True),
        sa.Column("music_end_time", sa.Float(), nullable=True),
        sa.Column("is_develop_by_ai", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("media_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), server_default="processing", nullable=False),
        sa.Column("processing_error", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["draft_id"], ["upload_drafts.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "status IN ('processing', 'ready', 'failed')", name="ck_zeal_posts_status"
        ),
    )

    op.create_table(
        "polls",
        _id_column(),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=False),
        sa.Column("total_votes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", sa.String(32), server_default="active", nullable=False),
        _timestamp("ends_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("status IN ('active', 'expired')", name="ck_polls_status"),
    )
    op.alter_column("polls", "ends_at", nullable=False)
    op.create_index("ix_polls_status_ends_at", "polls", ["status", "ends_at"])

    op.create_table(
        "poll_options",
        _id_column(),
        sa.Column("poll_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("option_text", sa.Text(), nullable=False),
        sa.Column("vote_count", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["poll_id"], ["polls.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("poll_id", "position", name="uq_poll_options_position"),
    )

    op.create_table(
        "poll_votes",
        _id_column(),
        sa.Column("poll_id", sa.UUID(), nullable=False),
        sa.Column("option_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["poll_id"], ["polls.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["option_id"], ["poll_options.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("poll_id", "user_id", name="uq_poll_votes_voter"),
    )

    # ==========================================================================
    # weak content references
    # ==========================================================================
    op.create_table(
        "content_likes",
        _id_column(),
        *_content_ref_columns("content_likes"),
        sa.Column("user_id", sa.UUID(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "content_type", "content_id", "user_id", name="uq_content_likes_user"
        ),
    )
    op.create_index("ix_content_likes_content", "content_likes", ["content_type", "content_id"])

    op.create_table(
        "saved_contents",
        _id_column(),
        *_content_ref_columns("saved_contents"),
        sa.Column("user_id", sa.UUID(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "content_type", "content_id", "user_id", name="uq_saved_contents_user"
        ),
    )
    op.create_index(
        "ix_saved_contents_content", "saved_contents", ["content_type", "content_id"]
    )
    op.create_index(
        "ix_saved_contents_user_created", "saved_contents", ["user_id", "created_at"]
    )

    op.create_table(
        "comments",
        _id_column(),
        *_content_ref_columns("comments"),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default="false", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_comments_content", "comments", ["content_type", "content_id"])

    op.create_table(
        "content_shares",
        _id_column(),
        *_content_ref_columns("content_shares"),
        sa.Column("sender_id", sa.UUID(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_content_shares_content", "content_shares", ["content_type", "content_id"]
    )

    op.create_table(
        "content_share_receivers",
        sa.Column("share_id", sa.UUID(), nullable=False),
        sa.Column("receiver_id", sa.UUID(), nullable=False),
        sa.PrimaryKeyConstraint("share_id", "receiver_id"),
        sa.ForeignKeyConstraint(["share_id"], ["content_shares.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_content_share_receivers_receiver", "content_share_receivers", ["receiver_id"]
    )

    op.create_table(
        "content_reports",
        _id_column(),
        *_content_ref_columns("content_reports"),
        sa.Column("reported_by", sa.UUID(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), server_default="pending", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["reported_by"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "content_type", "content_id", "reported_by", name="uq_content_reports_reporter"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'reviewed', 'resolved')", name="ck_content_reports_status"
        ),
    )
    op.create_index(
        "ix_content_reports_content", "content_reports", ["content_type", "content_id"]
    )

    # ==========================================================================
    # notifications table
    # ==========================================================================
    op.create_table(
        "notifications",
        _id_column(),
        sa.Column("receiver_id", sa.UUID(), nullable=False),
        sa.Column("sender_id", sa.UUID(), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("content_type", sa.String(32), nullable=True),
        sa.Column("content_id", sa.UUID(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(32), server_default="unread", nullable=False),
        sa.Column("metadata", sa.JSON(), server_default="{}", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint("status IN ('unread', 'read')", name="ck_notifications_status"),
    )
    op.create_index(
        "ix_notifications_receiver_status", "notifications", ["receiver_id", "status"]
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("content_reports")
    op.drop_table("content_share_receivers")
    op.drop_table("content_shares")
    op.drop_table("comments")
    op.drop_table("saved_contents")
    op.drop_table("content_likes")
    op.drop_table("poll_votes")
    op.drop_table("poll_options")
    op.drop_table("polls")
    op.drop_table("zeal_posts")
    op.drop_table("posts")
    op.drop_table("write_posts")
    op.drop_table("upload_drafts")
    op.drop_table("user_followers")
    op.drop_table("users")
