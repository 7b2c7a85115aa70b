"""User lookups shared by the graph and interaction services."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeal.db.models import User
from zeal.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from zeal.schemas.social import UserCountsOut


def get_active_user(db: Session, user_id: UUID) -> User | None:
    """Return the user unless missing or soft-deleted."""
    return db.execute(
        select(User).where(User.id == user_id, User.is_deleted == False)  # noqa: E712
    ).scalar_one_or_none()


def require_active_user(db: Session, user_id: UUID) -> User:
    user = get_active_user(db, user_id)
    if user is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")
    return user


def create_user(db: Session, username: str, name: str | None = None, **fields) -> User:
    """Create a user account. Usernames are stored lowercase."""
    normalized = username.strip().lower()
    if not normalized:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Username is required")

    user = User(username=normalized, name=name, **fields)
    db.add(user)
    db.commit()
    return user


def user_counts_out(user: User) -> UserCountsOut:
    return UserCountsOut(
        id=user.id,
        username=user.username,
        name=user.name,
        profile_image=user.profile_image,
        follower_count=user.follower_count,
        following_count=user.following_count,
    )
