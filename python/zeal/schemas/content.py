"""Post, write post and poll schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from zeal.db.models import ContentType, PollStatus


class CreatePostRequest(BaseModel):
    """Request schema for POST /posts."""

    caption: str = Field(default="", max_length=2200)
    images: list[str] = Field(default_factory=list, max_length=10)
    videos: list[str] = Field(default_factory=list, max_length=10)
    mentioned_user_ids: list[UUID] = Field(default_factory=list, max_length=50)

    @model_validator(mode="after")
    def require_media(self) -> "CreatePostRequest":
        if not self.images and not self.videos:
            raise ValueError("A post needs at least one image or video")
        return self


class CreateWritePostRequest(BaseModel):
    """Request schema for POST /write-posts."""

    content: str = Field(min_length=1, max_length=10000)
    mentioned_user_ids: list[UUID] = Field(default_factory=list, max_length=50)


class CreatePollRequest(BaseModel):
    """Request schema for POST /polls."""

    caption: str = Field(min_length=1, max_length=500)
    options: list[str] = Field(min_length=2, max_length=4)
    duration_hours: int = Field(default=24, ge=1, le=168)


class PostOut(BaseModel):
    id: UUID
    author_id: UUID
    caption: str | None = None
    images: list[str]
    videos: list[str]
    mentioned_user_ids: list[str]
    share_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WritePostOut(BaseModel):
    id: UUID
    author_id: UUID
    content: str
    mentioned_user_ids: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VotePollRequest(BaseModel):
    """Request schema for POST /polls/{poll_id}/vote."""

    option_id: UUID


class PollOptionOut(BaseModel):
    id: UUID
    position: int
    option_text: str
    vote_count: int
    vote_percentage: int = 0

    model_config = ConfigDict(from_attributes=True)


class PollOut(BaseModel):
    id: UUID
    author_id: UUID
    caption: str
    options: list[PollOptionOut]
    total_votes: int
    status: PollStatus
    ends_at: datetime
    created_at: datetime
    updated_at: datetime
    user_vote: UUID | None = None

    model_config = ConfigDict(from_attributes=True)


class ContentPage(BaseModel):
    """One page of an author's content of a single type."""

    content_type: ContentType
    items: list[dict]
    page: int
    limit: int
    total: int
    total_pages: int
