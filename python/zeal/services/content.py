"""Content creation and read services.

Posts, write posts and polls are created synchronously. Zeal posts are
created from upload drafts in zeal.services.uploads.

Deleting content is a hard delete. Likes, saves, comments, shares and
reports pointing at it become stale weak references; readers skip them and
the maintenance job removes them.
"""

import math
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from zeal.db.models import (
    Comment,
    ContentLike,
    ContentStatus,
    ContentType,
    Poll,
    PollOption,
    Post,
    SavedContent,
    WritePost,
    ZealPost,
)
from zeal.errors import ApiErrorCode, ForbiddenError, InvalidRequestError, NotFoundError
from zeal.logging import get_logger
from zeal.schemas.content import ContentPage, PollOut, PostOut, WritePostOut
from zeal.schemas.uploads import ZealOut
from zeal.services.content_refs import (
    COMMENTABLE,
    CONTENT_MODELS,
    ContentItem,
    parse_content_type,
    resolve_content,
)
from zeal.services.polls import expire_poll_if_due, get_user_vote, poll_to_out

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


def _id_strings(ids: list[UUID]) -> list[str]:
    return [str(i) for i in dict.fromkeys(ids)]


def serialize_content(content_type: ContentType, item: ContentItem) -> dict:
    """JSON-ready representation of any content variant."""
    if content_type == ContentType.post:
        out = PostOut.model_validate(item)
    elif content_type == ContentType.write_post:
        out = WritePostOut.model_validate(item)
    elif content_type == ContentType.zeal:
        out = ZealOut.model_validate(item)
    else:
        out = poll_to_out(item)
    return {"content_type": content_type.value, **out.model_dump(mode="json")}


def create_post(
    db: Session,
    author_id: UUID,
    *,
    caption: str,
    images: list[str],
    videos: list[str],
    mentioned_user_ids: list[UUID],
) -> PostOut:
    if not images and not videos:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "A post needs at least one image or video"
        )

    post = Post(
        author_id=author_id,
        caption=caption or None,
        images=list(images),
        videos=list(videos),
        mentioned_user_ids=_id_strings(mentioned_user_ids),
    )
    db.add(post)
    db.commit()

    logger.info("post_created", post_id=str(post.id))
    return PostOut.model_validate(post)


def create_write_post(
    db: Session, author_id: UUID, *, content: str, mentioned_user_ids: list[UUID]
) -> WritePostOut:
    if not content.strip():
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Content cannot be empty")

    write_post = WritePost(
        author_id=author_id,
        content=content,
        mentioned_user_ids=_id_strings(mentioned_user_ids),
    )
    db.add(write_post)
    db.commit()

    logger.info("write_post_created", write_post_id=str(write_post.id))
    return WritePostOut.model_validate(write_post)


def create_poll(
    db: Session, author_id: UUID, *, caption: str, options: list[str], duration_hours: int
) -> PollOut:
    cleaned = [o.strip() for o in options]
    if len(cleaned) < 2 or any(not o for o in cleaned):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "A poll needs at least two non-empty options"
        )
    if len({o.lower() for o in cleaned}) != len(cleaned):
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Poll options must be unique")

    now = datetime.now(UTC)
    poll = Poll(
        author_id=author_id,
        caption=caption,
        ends_at=now + timedelta(hours=duration_hours),
        options=[
            PollOption(position=i, option_text=text) for i, text in enumerate(cleaned)
        ],
    )
    db.add(poll)
    db.commit()

    logger.info("poll_created", poll_id=str(poll.id), option_count=len(cleaned))
    return poll_to_out(poll)


def delete_content(db: Session, viewer_id: UUID, raw_content_type: str, content_id: UUID) -> None:
    """Hard-delete the viewer's own content item.

    Raises:
        InvalidRequestError: Unknown content type.
        NotFoundError: Item does not exist (any status).
        ForbiddenError: Viewer is not the author.
    """
    content_type = parse_content_type(raw_content_type)
    if content_type is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE, f"Invalid content type '{raw_content_type}'"
        )

    model = CONTENT_MODELS[content_type]
    item = db.get(model, content_id)
    if item is None:
        raise NotFoundError(ApiErrorCode.E_CONTENT_NOT_FOUND, "Content not found")
    if item.author_id != viewer_id:
        raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Only the author can delete content")

    db.delete(item)
    db.commit()
    logger.info("content_deleted", content_type=content_type.value, content_id=str(content_id))


def get_content_for_viewer(
    db: Session, viewer_id: UUID, raw_content_type: str, content_id: UUID
) -> dict:
    """Return one content item with the viewer's interaction state."""
    content_type = parse_content_type(raw_content_type)
    item = resolve_content(db, content_type, content_id) if content_type else None
    if item is None:
        raise NotFoundError(ApiErrorCode.E_CONTENT_NOT_FOUND, "Content not found")

    def count(model, *extra) -> int:
        return db.execute(
            select(func.count())
            .select_from(model)
            .where(model.content_type == content_type, model.content_id == content_id, *extra)
        ).scalar_one()

    if content_type == ContentType.poll:
        expire_poll_if_due(db, item)
        data = serialize_content(content_type, item)
        vote = get_user_vote(db, item.id, viewer_id)
        data["user_vote"] = str(vote) if vote else None
    else:
        data = serialize_content(content_type, item)
    data["like_count"] = count(ContentLike)
    data["is_liked"] = count(ContentLike, ContentLike.user_id == viewer_id) > 0
    data["is_saved"] = count(SavedContent, SavedContent.user_id == viewer_id) > 0
    if content_type in COMMENTABLE:
        data["comment_count"] = count(Comment, Comment.is_deleted == False)  # noqa: E712
    return data


def list_user_content(
    db: Session,
    viewer_id: UUID,
    author_id: UUID,
    raw_content_type: str,
    page: int = 1,
    limit: int = 20,
) -> ContentPage:
    """Paginated feed of one author's items of one type, newest first.

    Other users only see ready zeals; the author also sees processing and failed ones.
    """
    content_type = parse_content_type(raw_content_type)
    if content_type is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE, f"Invalid content type '{raw_content_type}'"
        )
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    model = CONTENT_MODELS[content_type]
    conditions = [model.author_id == author_id]
    if model is ZealPost and viewer_id != author_id:
        conditions.append(ZealPost.status == ContentStatus.ready)

    total = db.execute(select(func.count()).select_from(model).where(*conditions)).scalar_one()
    items = db.execute(
        select(model)
        .where(*conditions)
        .order_by(model.created_at.desc(), model.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()

    return ContentPage(
        content_type=content_type,
        items=[serialize_content(content_type, item) for item in items],
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
    )
