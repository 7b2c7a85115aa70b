"""Upload draft and zeal schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from zeal.db.models import ContentStatus, DraftStatus, MediaKind


class StartUploadRequest(BaseModel):
    """Request schema for POST /uploads/start."""

    kind: Literal["video", "image"]
    file_name: str = Field(min_length=1, max_length=255)
    file_size: int = Field(gt=0)
    mime_type: str = Field(min_length=1, max_length=255)


class StartUploadResponse(BaseModel):
    """Response for upload start and server-side upload.

    Simple uploads carry the presigned URL; multipart uploads carry the
    session's chunk layout instead.
    """

    draft_id: UUID
    strategy: Literal["simple", "multipart"]
    upload_url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    upload_id: str | None = None
    chunk_size: int | None = None
    total_chunks: int | None = None
    status: DraftStatus
    expires_in: int
    expires_at: datetime


class DraftOut(BaseModel):
    """Response schema for an upload draft."""

    id: UUID
    kind: MediaKind
    file_name: str
    file_size: int
    mime_type: str
    status: DraftStatus
    is_multipart: bool
    is_uploaded: bool
    total_chunks: int | None = None
    uploaded_part_count: int
    processing_error: str | None = None
    media_url: str | None = None
    content_id: UUID | None = None
    expires_at: datetime
    uploaded_at: datetime | None = None
    created_at: datetime


class CreateContentRequest(BaseModel):
    """Request schema for POST /content (zeal creation from a draft)."""

    draft_id: UUID
    caption: str = Field(default="", max_length=2200)
    mentioned_user_ids: list[UUID] = Field(default_factory=list, max_length=50)
    music_id: str | None = None
    music_start_time: float | None = Field(default=None, ge=0)
    music_end_time: float | None = Field(default=None, ge=0)
    is_develop_by_ai: bool = False


class ZealOut(BaseModel):
    """Response schema for a zeal post."""

    id: UUID
    author_id: UUID
    draft_id: UUID | None = None
    videos: list[str]
    images: list[str]
    caption: str | None = None
    mentioned_user_ids: list[str]
    music_id: str | None = None
    music_start_time: float | None = None
    music_end_time: float | None = None
    is_develop_by_ai: bool
    media_url: str
    thumbnail_url: str | None = None
    status: ContentStatus
    processing_error: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ContentStatusOut(BaseModel):
    """Response schema for GET /content/{zeal_id}/status."""

    zeal_id: UUID
    status: ContentStatus
    processing_error: str | None = None
    created_at: datetime
    updated_at: datetime


class SignPartsRequest(BaseModel):
    """Request schema for POST /uploads/{draft_id}/parts."""

    part_numbers: list[int] = Field(min_length=1, max_length=100)


class PartUrlOut(BaseModel):
    part_number: int
    url: str


class UploadedPartIn(BaseModel):
    part_number: int = Field(ge=1)
    etag: str = Field(min_length=1)


class CompleteUploadRequest(BaseModel):
    """Request schema for POST /uploads/{draft_id}/complete."""

    parts: list[UploadedPartIn] = Field(min_length=1)
