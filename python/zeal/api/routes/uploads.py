"""Upload and zeal routes.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError

POST /uploads/file spools the request body to UPLOAD_TMP_DIR first; the
service owns the temporary file from then on.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session

from zeal.api.deps import get_db, get_storage, limit_uploads
from zeal.auth.middleware import Viewer, get_viewer
from zeal.config import get_settings
from zeal.middleware.request_id import get_request_id_from_request
from zeal.responses import success_response
from zeal.schemas.uploads import (
    CompleteUploadRequest,
    CreateContentRequest,
    PartUrlOut,
    SignPartsRequest,
    StartUploadRequest,
)
from zeal.services import uploads as upload_service
from zeal.services.chunked_upload import spool_to_temp_file
from zeal.storage import CompletedPart, StorageClientBase

router = APIRouter()


@router.post("/uploads/start", status_code=201, dependencies=[Depends(limit_uploads)])
def start_upload(
    body: StartUploadRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    """Begin a client-direct upload.

    Returns a presigned PUT URL (simple) or the multipart session layout.
    """
    result = upload_service.start_upload(
        db,
        viewer.user_id,
        kind=body.kind,
        file_name=body.file_name,
        file_size=body.file_size,
        mime_type=body.mime_type,
        storage=storage,
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/uploads/file", status_code=202, dependencies=[Depends(limit_uploads)])
def upload_file(
    request: Request,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
    file: Annotated[UploadFile, File()],
    kind: Annotated[str | None, Form()] = None,
) -> dict:
    """Upload a file through the server.

    Large videos return immediately with the draft in `uploading`; poll
    GET /uploads/{draft_id} for completion.
    """
    settings = get_settings()
    file_path, file_size = spool_to_temp_file(
        file.file,
        settings.upload_tmp_dir,
        max(settings.max_video_bytes, settings.max_image_bytes),
    )
    result = upload_service.upload_file_with_chunking(
        db,
        viewer.user_id,
        file_path=file_path,
        file_name=file.filename or "upload",
        mime_type=file.content_type or "application/octet-stream",
        file_size=file_size,
        storage=storage,
        kind=kind,
        request_id=get_request_id_from_request(request),
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/uploads/{draft_id}")
def get_draft(
    draft_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = upload_service.get_draft_status(db, viewer.user_id, draft_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/uploads/{draft_id}/parts")
def sign_parts(
    draft_id: UUID,
    body: SignPartsRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    """Presign part URLs for a client-direct multipart upload."""
    urls = upload_service.sign_draft_parts(
        db, viewer.user_id, draft_id, body.part_numbers, storage=storage
    )
    return success_response(
        [PartUrlOut(part_number=n, url=url).model_dump(mode="json") for n, url in urls.items()]
    )


@router.post("/uploads/{draft_id}/complete")
def complete_upload(
    draft_id: UUID,
    body: CompleteUploadRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    """Finish a client-direct multipart upload with the client's part ETags."""
    result = upload_service.complete_draft_upload(
        db,
        viewer.user_id,
        draft_id,
        [CompletedPart(part_number=p.part_number, etag=p.etag) for p in body.parts],
        storage=storage,
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/content", status_code=201)
def create_content(
    body: CreateContentRequest,
    request: Request,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    """Create a zeal from an uploaded draft. The zeal starts in `processing`."""
    result = upload_service.create_content_from_draft(
        db,
        viewer.user_id,
        body,
        storage=storage,
        request_id=get_request_id_from_request(request),
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/content/{zeal_id}/status")
def get_content_status(
    zeal_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = upload_service.get_content_status(db, viewer.user_id, zeal_id)
    return success_response(result.model_dump(mode="json"))
