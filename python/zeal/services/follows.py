"""Social graph service.

The user_followers edges are the source of truth. users.follower_count and
users.following_count are a cache updated alongside each edge write; they
may drift, and get_follow_counts() always recomputes from edges.
"""

import math
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeal.db.models import NotificationType, User, UserFollower
from zeal.errors import ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from zeal.logging import get_logger
from zeal.schemas.social import (
    FollowCountsOut,
    FollowListEntry,
    FollowListOut,
    FollowResult,
    Pagination,
)
from zeal.services.notifications import notify_best_effort
from zeal.services.users import get_active_user, require_active_user, user_counts_out

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


def _find_edge(db: Session, follower_id: UUID, target_id: UUID) -> UserFollower | None:
    return db.execute(
        select(UserFollower).where(
            UserFollower.user_id == target_id,
            UserFollower.follower_id == follower_id,
        )
    ).scalar_one_or_none()


def _bump_counters(db: Session, follower_id: UUID, target_id: UUID, delta: int) -> None:
    def adjusted(column):
        if delta > 0:
            return column + delta
        return case((column + delta < 0, 0), else_=column + delta)

    db.execute(
        update(User)
        .where(User.id == target_id)
        .values(follower_count=adjusted(User.follower_count))
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(User)
        .where(User.id == follower_id)
        .values(following_count=adjusted(User.following_count))
        .execution_options(synchronize_session=False)
    )


def follow(db: Session, follower_id: UUID, target_id: UUID) -> FollowResult:
    """Create the edge follower -> target.

    Raises:
        InvalidRequestError(E_SELF_FOLLOW): follower and target are the same user.
        NotFoundError(E_USER_NOT_FOUND): Either user is missing or soft-deleted.
        ConflictError(E_ALREADY_FOLLOWING): The edge already exists.
    """
    if follower_id == target_id:
        raise InvalidRequestError(ApiErrorCode.E_SELF_FOLLOW, "You cannot follow yourself")

    target = get_active_user(db, target_id)
    follower = get_active_user(db, follower_id)
    if target is None or follower is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    if _find_edge(db, follower_id, target_id) is not None:
        raise ConflictError(ApiErrorCode.E_ALREADY_FOLLOWING, "You are already following this user")

    edge = UserFollower(user_id=target_id, follower_id=follower_id)
    db.add(edge)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent follow won the race
        db.rollback()
        raise ConflictError(
            ApiErrorCode.E_ALREADY_FOLLOWING, "You are already following this user"
        ) from None

    _bump_counters(db, follower_id, target_id, 1)
    db.commit()
    db.refresh(target)
    db.refresh(follower)

    logger.info("user_followed", follower_id=str(follower_id), target_id=str(target_id))

    notify_best_effort(
        db,
        receiver_id=target_id,
        sender_id=follower_id,
        type=NotificationType.new_follower,
        message=f"{follower.username} started following you",
        metadata={"follower_username": follower.username},
    )

    return FollowResult(
        action="followed",
        followed_at=edge.created_at,
        target_user=user_counts_out(target),
        follower=user_counts_out(follower),
    )


def unfollow(db: Session, follower_id: UUID, target_id: UUID) -> FollowResult:
    """Remove the edge follower -> target. Notifications are left in place.

    Raises:
        InvalidRequestError(E_SELF_FOLLOW): follower and target are the same user.
        NotFoundError(E_USER_NOT_FOUND): Either user row is missing.
        ConflictError(E_NOT_FOLLOWING): No such edge.
    """
    if follower_id == target_id:
        raise InvalidRequestError(ApiErrorCode.E_SELF_FOLLOW, "You cannot unfollow yourself")

    target = db.get(User, target_id)
    follower = db.get(User, follower_id)
    if target is None or follower is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    edge = _find_edge(db, follower_id, target_id)
    if edge is None:
        raise ConflictError(ApiErrorCode.E_NOT_FOLLOWING, "You are not following this user")

    db.delete(edge)
    _bump_counters(db, follower_id, target_id, -1)
    db.commit()
    db.refresh(target)
    db.refresh(follower)

    logger.info("user_unfollowed", follower_id=str(follower_id), target_id=str(target_id))

    return FollowResult(
        action="unfollowed",
        target_user=user_counts_out(target),
        follower=user_counts_out(follower),
    )


def is_following(db: Session, follower_id: UUID, target_id: UUID) -> bool:
    return _find_edge(db, follower_id, target_id) is not None


def _list_edges(
    db: Session,
    viewer_id: UUID,
    user_id: UUID,
    *,
    followers: bool,
    page: int,
    limit: int,
    search: str | None,
) -> FollowListOut:
    require_active_user(db, user_id)
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    search = (search or "").strip().lower()

    # followers: other end is the follower; following: other end is the followed user
    anchor = UserFollower.user_id if followers else UserFollower.follower_id
    other = UserFollower.follower_id if followers else UserFollower.user_id

    base = (
        select(User, UserFollower.created_at)
        .join(UserFollower, User.id == other)
        .where(anchor == user_id, User.is_deleted == False)  # noqa: E712
    )

    if search:
        # Filtered total: re-read the whole unfiltered set and count matches
        usernames = db.execute(base.with_only_columns(User.username)).scalars()
        total = sum(1 for name in usernames if search in name.lower())
        base = base.where(func.lower(User.username).contains(search, autoescape=True))
    else:
        total = db.execute(
            select(func.count()).select_from(base.subquery())
        ).scalar_one()

    rows: list[tuple[User, datetime]] = list(
        db.execute(
            base.order_by(UserFollower.created_at.desc(), User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
    )

    page_ids = [user.id for user, _ in rows]
    viewer_follows: set[UUID] = set()
    if page_ids:
        viewer_follows = set(
            db.execute(
                select(UserFollower.user_id).where(
                    UserFollower.follower_id == viewer_id,
                    UserFollower.user_id.in_(page_ids),
                )
            ).scalars()
        )

    def status(uid: UUID) -> str:
        if uid == viewer_id:
            return "self"
        return "following" if uid in viewer_follows else "not_following"

    return FollowListOut(
        users=[
            FollowListEntry(
                id=user.id,
                username=user.username,
                name=user.name,
                profile_image=user.profile_image,
                is_verified_badge=user.is_verified_badge,
                followed_at=followed_at,
                follow_status=status(user.id),
            )
            for user, followed_at in rows
        ],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


def get_followers(
    db: Session,
    viewer_id: UUID,
    user_id: UUID,
    *,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
) -> FollowListOut:
    """Users following user_id, newest edge first, annotated for the viewer."""
    return _list_edges(
        db, viewer_id, user_id, followers=True, page=page, limit=limit, search=search
    )


def get_following(
    db: Session,
    viewer_id: UUID,
    user_id: UUID,
    *,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
) -> FollowListOut:
    """Users that user_id follows, newest edge first, annotated for the viewer."""
    return _list_edges(
        db, viewer_id, user_id, followers=False, page=page, limit=limit, search=search
    )


def get_follow_counts(db: Session, user_id: UUID) -> FollowCountsOut:
    """Authoritative counts, recomputed from edges rather than the cached counters."""
    if db.get(User, user_id) is None:
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    follower_count = db.execute(
        select(func.count()).select_from(UserFollower).where(UserFollower.user_id == user_id)
    ).scalar_one()
    following_count = db.execute(
        select(func.count())
        .select_from(UserFollower)
        .where(UserFollower.follower_id == user_id)
    ).scalar_one()

    return FollowCountsOut(
        user_id=user_id,
        follower_count=follower_count,
        following_count=following_count,
    )
