"""Content reference resolver.

Maps a ContentType discriminator to its concrete ORM model and resolves
(content_type, content_id) pairs. A pair resolves to exactly one entity or
to None; missing items and unknown discriminators are a normal branch, not
an error.

Flow membership is deliberately asymmetric: polls can be liked and saved
but not commented on, shared or reported.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeal.db.models import (
    CONTENT_MODEL_NAMES,
    ContentStatus,
    ContentType,
    Poll,
    Post,
    WritePost,
    ZealPost,
)
from zeal.errors import ApiErrorCode, InvalidRequestError, NotFoundError

ContentItem = Post | WritePost | ZealPost | Poll

CONTENT_MODELS: dict[ContentType, type[ContentItem]] = {
    ContentType.post: Post,
    ContentType.write_post: WritePost,
    ContentType.zeal: ZealPost,
    ContentType.poll: Poll,
}

LIKEABLE = frozenset(ContentType)
SAVEABLE = frozenset(ContentType)
COMMENTABLE = frozenset({ContentType.post, ContentType.write_post, ContentType.zeal})
SHAREABLE = COMMENTABLE
REPORTABLE = COMMENTABLE


def parse_content_type(raw: str | ContentType) -> ContentType | None:
    """Parse a discriminator from its value or its model name. None if unknown."""
    if isinstance(raw, ContentType):
        return raw
    try:
        return ContentType(raw)
    except ValueError:
        pass
    for content_type, model_name in CONTENT_MODEL_NAMES.items():
        if raw == model_name:
            return content_type
    return None


def get_content_model(content_type: str | ContentType) -> type[ContentItem] | None:
    parsed = parse_content_type(content_type)
    if parsed is None:
        return None
    return CONTENT_MODELS[parsed]


def content_model_name(content_type: ContentType) -> str:
    return CONTENT_MODEL_NAMES[content_type]


def _visible(model: type[ContentItem]):
    # Zeals only count as existing once post-processing succeeded
    if model is ZealPost:
        return ZealPost.status == ContentStatus.ready
    return None


def resolve_content(
    db: Session, content_type: str | ContentType, content_id: UUID
) -> ContentItem | None:
    """Return the content entity or None. Never raises for a missing item."""
    model = get_content_model(content_type)
    if model is None:
        return None

    query = select(model).where(model.id == content_id)
    condition = _visible(model)
    if condition is not None:
        query = query.where(condition)
    return db.execute(query).scalar_one_or_none()


def content_exists(db: Session, content_type: str | ContentType, content_id: UUID) -> bool:
    return resolve_content(db, content_type, content_id) is not None


def existing_content_ids(
    db: Session, content_type: ContentType, content_ids: Iterable[UUID]
) -> set[UUID]:
    """Batch existence lookup. Returns the subset of ids that still resolve."""
    ids = set(content_ids)
    if not ids:
        return set()

    model = CONTENT_MODELS[content_type]
    query = select(model.id).where(model.id.in_(ids))
    condition = _visible(model)
    if condition is not None:
        query = query.where(condition)
    return set(db.execute(query).scalars())


def require_content(
    db: Session,
    raw_content_type: str | ContentType,
    content_id: UUID,
    allowed: frozenset[ContentType],
) -> tuple[ContentType, ContentItem]:
    """Resolve a content item for a flow, raising API errors for the route layer.

    Raises:
        InvalidRequestError: If the discriminator is unknown or not allowed in this flow.
        NotFoundError: If the item does not resolve.
    """
    content_type = parse_content_type(raw_content_type)
    if content_type is None or content_type not in allowed:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE,
            f"Invalid content type '{raw_content_type}'",
        )

    item = resolve_content(db, content_type, content_id)
    if item is None:
        raise NotFoundError(ApiErrorCode.E_CONTENT_NOT_FOUND, "Content not found")
    return content_type, item
