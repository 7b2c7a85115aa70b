"""Like, save, comment, share, report and notification schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from zeal.db.models import ContentType, NotificationStatus, NotificationType, ReportStatus
from zeal.schemas.social import Pagination


class LikeResult(BaseModel):
    action: Literal["liked", "unliked", "already_liked", "not_liked"]
    is_liked: bool
    like_count: int


class SaveResult(BaseModel):
    action: Literal["saved", "unsaved", "already_saved", "not_saved"]
    is_saved: bool


class SavedItemOut(BaseModel):
    content_type: ContentType
    content_model: str
    content_id: UUID
    saved_at: datetime
    content: dict


class SavedListOut(BaseModel):
    items: list[SavedItemOut]
    pagination: Pagination


class CreateCommentRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class CommentOut(BaseModel):
    id: UUID
    content_type: ContentType
    content_id: UUID
    user_id: UUID
    text: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommentListOut(BaseModel):
    comments: list[CommentOut]
    pagination: Pagination


class ShareRequest(BaseModel):
    receiver_ids: list[UUID] = Field(min_length=1, max_length=50)


class ShareOut(BaseModel):
    id: UUID
    content_type: ContentType
    content_id: UUID
    sender_id: UUID
    receiver_ids: list[UUID]
    created_at: datetime


class ShareListOut(BaseModel):
    shares: list[ShareOut]
    pagination: Pagination


class ReportRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)


class ReportOut(BaseModel):
    id: UUID
    content_type: ContentType
    content_id: UUID
    reported_by: UUID
    reason: str
    description: str | None = None
    status: ReportStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationOut(BaseModel):
    id: UUID
    sender_id: UUID | None = None
    type: NotificationType
    content_type: ContentType | None = None
    content_id: UUID | None = None
    message: str
    status: NotificationStatus
    metadata: dict
    created_at: datetime


class NotificationListOut(BaseModel):
    notifications: list[NotificationOut]
    unread_count: int
    pagination: Pagination


class MarkReadRequest(BaseModel):
    """Empty notification_ids marks every notification read."""

    notification_ids: list[UUID] = Field(default_factory=list)
