"""Upload orchestration service.

Handles upload start (client-direct), server-side uploads, zeal creation
from a completed draft, and zeal post-processing.

Key invariants:
- Multipart iff kind == video and file_size >= MULTIPART_THRESHOLD_BYTES
- Storage signing/initiation happens before any draft row is written
- A draft is consumed at most once: the claim is a conditional update, so a
  second create_content_from_draft call fails with E_DRAFT_NOT_FOUND
- Post-processing only moves zeals out of `processing`; re-runs are no-ops
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from zeal.config import get_settings
from zeal.db.models import ContentStatus, DraftStatus, MediaKind, UploadDraft, ZealPost
from zeal.errors import ApiError, ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from zeal.logging import get_logger
from zeal.schemas.uploads import (
    ContentStatusOut,
    CreateContentRequest,
    DraftOut,
    StartUploadResponse,
    ZealOut,
)
from zeal.services.chunked_upload import remove_temp_file
from zeal.services.drafts import (
    PENDING_STATUSES,
    compute_total_chunks,
    count_pending_drafts,
    get_draft_for_owner,
    mark_draft_failed,
    record_multipart_completion,
    validate_complete_part_set,
)
from zeal.storage import generate_key
from zeal.storage.client import CompletedPart, StorageClientBase, StorageError

logger = get_logger(__name__)

ALLOWED_MIME_TYPES: dict[MediaKind, frozenset[str]] = {
    MediaKind.video: frozenset(
        {"video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo", "video/webm"}
    ),
    MediaKind.image: frozenset(
        {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
    ),
}


@dataclass(frozen=True)
class UploadPlan:
    kind: MediaKind
    multipart: bool
    chunk_size: int | None
    total_chunks: int | None
    expires_in: int


def parse_kind(raw: str | MediaKind) -> MediaKind:
    try:
        return MediaKind(raw)
    except ValueError:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_KIND,
            f"Invalid kind '{raw}'. Expected one of: video, image.",
        ) from None


def kind_from_mime(mime_type: str) -> MediaKind:
    """Infer the media kind of a server-side upload from its MIME type."""
    major = mime_type.split("/", 1)[0].lower()
    if major == "video":
        return MediaKind.video
    if major == "image":
        return MediaKind.image
    raise InvalidRequestError(
        ApiErrorCode.E_INVALID_MEDIA_TYPE, f"Unsupported media type '{mime_type}'"
    )


def validate_upload_request(kind: MediaKind, mime_type: str, file_size: int) -> None:
    """Validate MIME type and size for the kind.

    Raises:
        InvalidRequestError: E_INVALID_MEDIA_TYPE or E_FILE_TOO_LARGE.
    """
    settings = get_settings()

    allowed = ALLOWED_MIME_TYPES[kind]
    if mime_type.lower() not in allowed:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_MEDIA_TYPE,
            f"Invalid {kind.value} type '{mime_type}'. "
            f"Allowed types: {', '.join(sorted(allowed))}",
        )

    if file_size <= 0:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "File is empty")

    max_size = settings.max_video_bytes if kind == MediaKind.video else settings.max_image_bytes
    if file_size > max_size:
        raise InvalidRequestError(
            ApiErrorCode.E_FILE_TOO_LARGE,
            f"File size {file_size} bytes exceeds maximum {max_size} bytes for {kind.value}.",
        )


def check_pending_cap(db: Session, owner_id: UUID) -> None:
    settings = get_settings()
    pending = count_pending_drafts(db, owner_id)
    if pending >= settings.max_pending_uploads:
        raise ConflictError(
            ApiErrorCode.E_TOO_MANY_PENDING_UPLOADS,
            f"You have reached the maximum of {settings.max_pending_uploads} pending uploads. "
            "Please complete or cancel existing uploads.",
        )


def plan_upload(kind: MediaKind, file_size: int) -> UploadPlan:
    """Choose the transfer strategy for a validated upload."""
    settings = get_settings()
    if kind == MediaKind.video and file_size >= settings.multipart_threshold_bytes:
        chunk_size = settings.multipart_chunk_bytes
        return UploadPlan(
            kind=kind,
            multipart=True,
            chunk_size=chunk_size,
            total_chunks=compute_total_chunks(file_size, chunk_size),
            expires_in=settings.multipart_upload_expiry_s,
        )
    return UploadPlan(
        kind=kind,
        multipart=False,
        chunk_size=None,
        total_chunks=None,
        expires_in=settings.simple_upload_expiry_s,
    )


def _start_response(
    draft: UploadDraft, plan: UploadPlan, upload_url: str | None, headers: dict[str, str]
) -> StartUploadResponse:
    return StartUploadResponse(
        draft_id=draft.id,
        strategy="multipart" if plan.multipart else "simple",
        upload_url=upload_url,
        headers=headers,
        upload_id=draft.upload_id,
        chunk_size=draft.chunk_size,
        total_chunks=draft.total_chunks,
        status=draft.status,
        expires_in=plan.expires_in,
        expires_at=draft.expires_at,
    )


def start_upload(
    db: Session,
    owner_id: UUID,
    *,
    kind: str,
    file_name: str,
    file_size: int,
    mime_type: str,
    storage: StorageClientBase,
) -> StartUploadResponse:
    """Begin a client-direct upload.

    Simple uploads return a presigned PUT URL valid for SIMPLE_UPLOAD_EXPIRY_S.
    Multipart uploads open a session and return its chunk layout.

    Raises:
        InvalidRequestError: Invalid kind, MIME type or size.
        ConflictError: Pending-draft cap reached.
        ApiError(E_STORAGE_ERROR): The gateway rejected signing or initiation.
    """
    media_kind = parse_kind(kind)
    validate_upload_request(media_kind, mime_type, file_size)
    check_pending_cap(db, owner_id)

    plan = plan_upload(media_kind, file_size)
    storage_key = generate_key(owner_id, media_kind.value, mime_type)

    upload_url = None
    headers: dict[str, str] = {}
    upload_id = None
    try:
        if plan.multipart:
            upload_id = storage.initiate_multipart(storage_key, content_type=mime_type)
        else:
            signed = storage.sign_upload(
                storage_key, content_type=mime_type, expires_in=plan.expires_in
            )
            upload_url = signed.url
            headers = dict(signed.headers)
    except StorageError as e:
        logger.error("upload_start_storage_failed", storage_key=storage_key, error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to initialize upload") from e

    now = datetime.now(UTC)
    draft = UploadDraft(
        id=uuid4(),
        owner_id=owner_id,
        kind=media_kind,
        file_name=file_name,
        file_size=file_size,
        mime_type=mime_type,
        storage_key=storage_key,
        upload_url=upload_url,
        is_multipart=plan.multipart,
        upload_id=upload_id,
        chunk_size=plan.chunk_size,
        total_chunks=plan.total_chunks,
        uploaded_parts=[],
        status=DraftStatus.draft,
        is_uploaded=False,
        expires_at=now + timedelta(seconds=plan.expires_in),
    )
    db.add(draft)
    db.commit()

    logger.info(
        "upload_started",
        draft_id=str(draft.id),
        strategy="multipart" if plan.multipart else "simple",
        total_chunks=plan.total_chunks,
    )
    return _start_response(draft, plan, upload_url, headers)


def _dispatch_chunk_upload(draft_id: UUID, file_path: str, request_id: str | None) -> None:
    from zeal.tasks import upload_draft_chunks

    upload_draft_chunks.apply_async(
        args=[str(draft_id), file_path],
        kwargs={"request_id": request_id},
        queue="uploads",
    )


def upload_file_with_chunking(
    db: Session,
    owner_id: UUID,
    *,
    file_path: str,
    file_name: str,
    mime_type: str,
    file_size: int,
    storage: StorageClientBase,
    kind: str | None = None,
    request_id: str | None = None,
) -> StartUploadResponse:
    """Upload a file the server already holds on disk.

    Multipart: opens the session, records the draft as `uploading` and hands
    the transfer to the upload_draft_chunks task, returning immediately. The
    task owns the temporary file from then on.

    Simple: writes the object synchronously and marks the draft uploaded.

    The temporary file is removed here on every path that does not hand it
    to the task.
    """
    handed_off = False
    try:
        media_kind = kind_from_mime(mime_type) if kind is None else parse_kind(kind)
        validate_upload_request(media_kind, mime_type, file_size)
        check_pending_cap(db, owner_id)

        plan = plan_upload(media_kind, file_size)
        storage_key = generate_key(owner_id, media_kind.value, mime_type)
        now = datetime.now(UTC)

        if not plan.multipart:
            try:
                with open(file_path, "rb") as fh:
                    storage.put_object(storage_key, fh, content_type=mime_type)
            except StorageError as e:
                logger.error("simple_upload_failed", storage_key=storage_key, error=e.message)
                raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to upload file") from e

            public_url = storage.public_url(storage_key)
            draft = UploadDraft(
                id=uuid4(),
                owner_id=owner_id,
                kind=media_kind,
                file_name=file_name,
                file_size=file_size,
                mime_type=mime_type,
                storage_key=storage_key,
                upload_url=public_url,
                is_multipart=False,
                uploaded_parts=[],
                status=DraftStatus.draft,
                is_uploaded=True,
                uploaded_at=now,
                media_url=public_url,
                expires_at=now + timedelta(seconds=plan.expires_in),
            )
            db.add(draft)
            db.commit()

            logger.info("simple_upload_completed", draft_id=str(draft.id))
            return _start_response(draft, plan, public_url, {})

        try:
            upload_id = storage.initiate_multipart(storage_key, content_type=mime_type)
        except StorageError as e:
            logger.error("multipart_initiate_failed", storage_key=storage_key, error=e.message)
            raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to initialize upload") from e

        draft = UploadDraft(
            id=uuid4(),
            owner_id=owner_id,
            kind=media_kind,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            storage_key=storage_key,
            upload_url=storage.public_url(storage_key),
            is_multipart=True,
            upload_id=upload_id,
            chunk_size=plan.chunk_size,
            total_chunks=plan.total_chunks,
            uploaded_parts=[],
            status=DraftStatus.uploading,
            is_uploaded=False,
            expires_at=now + timedelta(seconds=plan.expires_in),
        )
        db.add(draft)
        db.commit()

        try:
            _dispatch_chunk_upload(draft.id, file_path, request_id)
        except Exception as e:
            logger.error("chunk_upload_dispatch_failed", draft_id=str(draft.id), error=str(e))
            mark_draft_failed(db, draft, "Failed to schedule upload")
            try:
                storage.abort_multipart(storage_key, upload_id=upload_id)
            except StorageError as abort_error:
                logger.warning("multipart_abort_failed", error=abort_error.message)
            raise ApiError(ApiErrorCode.E_INTERNAL, "Failed to schedule upload") from e

        handed_off = True
        logger.info(
            "chunk_upload_enqueued",
            draft_id=str(draft.id),
            total_chunks=plan.total_chunks,
            request_id=request_id,
        )
        return _start_response(draft, plan, draft.upload_url, {})

    finally:
        if not handed_off:
            remove_temp_file(file_path)


def _dispatch_processing(zeal_id: UUID, request_id: str | None) -> bool:
    try:
        from zeal.tasks import process_content

        process_content.apply_async(
            args=[str(zeal_id)],
            kwargs={"request_id": request_id},
            queue="processing",
        )
        return True
    except Exception as e:
        # Zeal stays processing; the task can be re-run for it
        logger.error("process_content_dispatch_failed", zeal_id=str(zeal_id), error=str(e))
        return False


def create_content_from_draft(
    db: Session,
    owner_id: UUID,
    request: CreateContentRequest,
    *,
    storage: StorageClientBase,
    request_id: str | None = None,
) -> ZealOut:
    """Create a zeal from an uploaded draft and queue its post-processing.

    Raises:
        NotFoundError(E_DRAFT_NOT_FOUND): Draft missing, not the owner's, or already consumed.
        ConflictError(E_UPLOAD_INCOMPLETE): Bytes are not fully in storage yet.
        ApiError(E_STORAGE_MISSING): No object at the draft's key; the draft is marked failed.
        ApiError(E_STORAGE_ERROR): Storage could not be checked; the draft is left as is.
    """
    draft = get_draft_for_owner(db, owner_id, request.draft_id)
    if draft is None or draft.status not in PENDING_STATUSES:
        raise NotFoundError(ApiErrorCode.E_DRAFT_NOT_FOUND, "Draft not found or already processed")

    if draft.status == DraftStatus.uploading or (draft.is_multipart and not draft.is_uploaded):
        raise ConflictError(
            ApiErrorCode.E_UPLOAD_INCOMPLETE,
            "Multipart upload not completed. Please complete the upload first.",
        )

    try:
        stored = storage.exists(draft.storage_key)
    except StorageError as e:
        logger.error("draft_storage_check_failed", draft_id=str(draft.id), error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Storage is unavailable, retry later") from e

    if not stored:
        mark_draft_failed(db, draft, "File not found in storage")
        raise ApiError(
            ApiErrorCode.E_STORAGE_MISSING,
            "File not found in storage. Please upload the file first.",
        )

    media_url = storage.public_url(draft.storage_key)
    now = datetime.now(UTC)
    zeal_id = uuid4()

    claimed = db.execute(
        update(UploadDraft)
        .where(UploadDraft.id == draft.id, UploadDraft.status == DraftStatus.draft)
        .values(
            status=DraftStatus.uploaded,
            is_uploaded=True,
            uploaded_at=draft.uploaded_at or now,
            media_url=media_url,
            content_id=zeal_id,
            updated_at=now,
        )
    )
    if claimed.rowcount != 1:
        db.rollback()
        raise NotFoundError(ApiErrorCode.E_DRAFT_NOT_FOUND, "Draft not found or already processed")

    zeal = ZealPost(
        id=zeal_id,
        author_id=owner_id,
        draft_id=draft.id,
        videos=[media_url] if draft.kind == MediaKind.video else [],
        images=[media_url] if draft.kind == MediaKind.image else [],
        caption=request.caption or None,
        mentioned_user_ids=[str(u) for u in dict.fromkeys(request.mentioned_user_ids)],
        music_id=request.music_id,
        music_start_time=request.music_start_time,
        music_end_time=request.music_end_time,
        is_develop_by_ai=request.is_develop_by_ai,
        media_url=media_url,
        status=ContentStatus.processing,
    )
    db.add(zeal)
    db.commit()

    logger.info("zeal_created", zeal_id=str(zeal.id), draft_id=str(draft.id))
    _dispatch_processing(zeal.id, request_id)
    return ZealOut.model_validate(zeal)


def _check_media(
    storage: StorageClientBase, draft: UploadDraft | None, zeal_id: UUID
) -> str | None:
    """Return a processing error for the zeal's media, or None if it is usable."""
    if draft is None:
        return "Media file missing from storage"
    try:
        metadata = storage.head_object(draft.storage_key)
    except StorageError as e:
        logger.warning("process_content_head_failed", zeal_id=str(zeal_id), error=e.message)
        return "Media file could not be checked in storage"

    if metadata is None:
        return "Media file missing from storage"
    if metadata.size_bytes == 0:
        return "Media file is empty"
    return None


def process_content(db: Session, zeal_id: UUID, *, storage: StorageClientBase) -> dict:
    """Post-process a zeal: processing -> ready | failed.

    Verifies the media object is present and non-empty. Real transcoding is
    out of scope; images use their media URL as thumbnail.
    """
    zeal = db.get(ZealPost, zeal_id)
    if zeal is None:
        logger.warning("process_content_skipped", zeal_id=str(zeal_id), reason="not_found")
        return {"status": "skipped", "reason": "not_found"}
    if zeal.status != ContentStatus.processing:
        return {"status": "skipped", "reason": "not_processing"}

    draft = db.get(UploadDraft, zeal.draft_id) if zeal.draft_id else None
    error = _check_media(storage, draft, zeal_id)

    now = datetime.now(UTC)
    values = {"updated_at": now}
    if error is None:
        values.update(
            status=ContentStatus.ready,
            processing_error=None,
            thumbnail_url=zeal.media_url if zeal.images else zeal.thumbnail_url,
        )
    else:
        values.update(status=ContentStatus.failed, processing_error=error)

    result = db.execute(
        update(ZealPost)
        .where(ZealPost.id == zeal_id, ZealPost.status == ContentStatus.processing)
        .values(**values)
    )
    db.commit()

    if result.rowcount != 1:
        return {"status": "skipped", "reason": "state_changed"}

    if error is None:
        logger.info("zeal_ready", zeal_id=str(zeal_id))
        return {"status": "ready"}

    logger.warning("zeal_processing_failed", zeal_id=str(zeal_id), error=error)
    return {"status": "failed", "error": error}


def get_content_status(db: Session, owner_id: UUID, zeal_id: UUID) -> ContentStatusOut:
    zeal = db.get(ZealPost, zeal_id)
    if zeal is None or zeal.author_id != owner_id:
        raise NotFoundError(ApiErrorCode.E_CONTENT_NOT_FOUND, "Zeal not found")

    return ContentStatusOut(
        zeal_id=zeal.id,
        status=zeal.status,
        processing_error=zeal.processing_error,
        created_at=zeal.created_at,
        updated_at=zeal.updated_at,
    )


def get_draft_status(db: Session, owner_id: UUID, draft_id: UUID) -> DraftOut:
    draft = get_draft_for_owner(db, owner_id, draft_id)
    if draft is None:
        raise NotFoundError(ApiErrorCode.E_DRAFT_NOT_FOUND, "Draft not found")

    return DraftOut(
        id=draft.id,
        kind=draft.kind,
        file_name=draft.file_name,
        file_size=draft.file_size,
        mime_type=draft.mime_type,
        status=draft.status,
        is_multipart=draft.is_multipart,
        is_uploaded=draft.is_uploaded,
        total_chunks=draft.total_chunks,
        uploaded_part_count=len(draft.uploaded_parts or []),
        processing_error=draft.processing_error,
        media_url=draft.media_url,
        content_id=draft.content_id,
        expires_at=draft.expires_at,
        uploaded_at=draft.uploaded_at,
        created_at=draft.created_at,
    )


def _get_open_multipart_draft(db: Session, owner_id: UUID, draft_id: UUID) -> UploadDraft:
    draft = get_draft_for_owner(db, owner_id, draft_id)
    if draft is None or draft.status != DraftStatus.draft:
        raise NotFoundError(ApiErrorCode.E_DRAFT_NOT_FOUND, "Draft not found or already processed")
    if not draft.is_multipart:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Draft is not a multipart upload")
    if draft.is_uploaded:
        raise ConflictError(ApiErrorCode.E_UPLOAD_INCOMPLETE, "Upload already completed")
    if draft.expires_at <= datetime.now(UTC):
        raise NotFoundError(ApiErrorCode.E_DRAFT_NOT_FOUND, "Draft has expired")
    return draft


def sign_draft_parts(
    db: Session,
    owner_id: UUID,
    draft_id: UUID,
    part_numbers: list[int],
    *,
    storage: StorageClientBase,
) -> dict[int, str]:
    """Presign part URLs for a client-direct multipart draft."""
    draft = _get_open_multipart_draft(db, owner_id, draft_id)

    invalid = [n for n in part_numbers if n < 1 or n > draft.total_chunks]
    if invalid:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST,
            f"Part numbers out of range 1..{draft.total_chunks}: {invalid}",
        )

    remaining = max(int((draft.expires_at - datetime.now(UTC)).total_seconds()), 1)
    try:
        return {
            n: storage.sign_part_upload(
                draft.storage_key,
                upload_id=draft.upload_id,
                part_number=n,
                expires_in=remaining,
            )
            for n in sorted(set(part_numbers))
        }
    except StorageError as e:
        logger.error("part_sign_failed", draft_id=str(draft_id), error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to sign upload parts") from e


def complete_draft_upload(
    db: Session,
    owner_id: UUID,
    draft_id: UUID,
    parts: list[CompletedPart],
    *,
    storage: StorageClientBase,
) -> DraftOut:
    """Finalize a client-direct multipart draft from the client's part list.

    Raises:
        InvalidRequestError: The part set is not exactly 1..total_chunks.
        NotFoundError(E_DRAFT_NOT_FOUND): The draft expired while completing.
        ApiError(E_STORAGE_ERROR): The gateway rejected completion; the draft
            is marked failed and the session aborted.
    """
    draft = _get_open_multipart_draft(db, owner_id, draft_id)

    try:
        validate_complete_part_set(draft.total_chunks, [p.part_number for p in parts])
    except ValueError as e:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, str(e)) from e

    ordered = sorted(parts, key=lambda p: p.part_number)
    try:
        storage.complete_multipart(draft.storage_key, upload_id=draft.upload_id, parts=ordered)
    except StorageError as e:
        logger.error("multipart_complete_failed", draft_id=str(draft_id), error=e.message)
        mark_draft_failed(db, draft, e.message)
        try:
            storage.abort_multipart(draft.storage_key, upload_id=draft.upload_id)
        except StorageError as abort_error:
            logger.warning("multipart_abort_failed", error=abort_error.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to complete upload") from e

    recorded = record_multipart_completion(
        db, draft, ordered, {}, storage.public_url(draft.storage_key)
    )
    db.commit()
    if not recorded:
        raise NotFoundError(ApiErrorCode.E_DRAFT_NOT_FOUND, "Draft has expired")

    logger.info("client_multipart_completed", draft_id=str(draft_id), parts=len(ordered))
    return get_draft_status(db, owner_id, draft_id)
