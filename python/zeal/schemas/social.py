"""Follow graph schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class UserCountsOut(BaseModel):
    """A user with their cached graph counters."""

    id: UUID
    username: str
    name: str | None = None
    profile_image: str | None = None
    follower_count: int
    following_count: int


class FollowResult(BaseModel):
    """Response for follow / unfollow."""

    action: Literal["followed", "unfollowed"]
    followed_at: datetime | None = None
    target_user: UserCountsOut
    follower: UserCountsOut


class FollowListEntry(BaseModel):
    id: UUID
    username: str
    name: str | None = None
    profile_image: str | None = None
    is_verified_badge: bool
    followed_at: datetime
    follow_status: Literal["following", "not_following", "self"]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class FollowListOut(BaseModel):
    users: list[FollowListEntry]
    pagination: Pagination


class FollowCountsOut(BaseModel):
    """Edge-derived counts."""

    user_id: UUID
    follower_count: int
    following_count: int
