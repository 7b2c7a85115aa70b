"""Background multipart transfer of a server-held file.

Runs inside the upload_draft_chunks task. Parts are transferred concurrently
from one open file handle; each PUT retries transient failures with
exponential backoff. Parts are sorted before completion, so the gateway sees
an ordered list regardless of transfer completion order.

Failure path: draft -> failed, multipart session aborted (best-effort).
The file handle is closed and the temporary file removed on every path.
"""

import os
import tempfile
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime
from typing import BinaryIO
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from zeal.config import Settings, get_settings
from zeal.db.models import DraftStatus, UploadDraft
from zeal.logging import get_logger
from zeal.services.drafts import mark_draft_failed, part_byte_range, record_multipart_completion
from zeal.services.retry import TransferError, retry_with_backoff
from zeal.storage.client import CompletedPart, StorageClientBase, StorageError

logger = get_logger(__name__)


def remove_temp_file(file_path: str) -> None:
    """Delete a temporary upload file (best-effort)."""
    try:
        os.unlink(file_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("temp_file_delete_failed", file_path=file_path, error=str(e))


SPOOL_BUFFER_BYTES = 1024 * 1024


def spool_to_temp_file(source: BinaryIO, tmp_dir: str, max_bytes: int) -> tuple[str, int]:
    """Copy an incoming upload stream into a new file under tmp_dir.

    Copying stops one byte past max_bytes; the caller's size validation then
    rejects the file without the whole stream having been written.

    Returns:
        (path, bytes_written)
    """
    os.makedirs(tmp_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(dir=tmp_dir, prefix="upload-")
    written = 0
    try:
        with os.fdopen(fd, "wb") as out:
            while written <= max_bytes:
                chunk = source.read(min(SPOOL_BUFFER_BYTES, max_bytes + 1 - written))
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
    except OSError:
        remove_temp_file(path)
        raise
    return path, written


def put_part(
    client: httpx.Client, url: str, data: bytes, part_number: int, timeout: float
) -> str:
    """PUT one part to its presigned URL and return the ETag.

    Raises:
        TransferError: On a non-2xx status or a missing ETag header.
        httpx.HTTPError: On transport failures.
    """
    response = client.put(
        url,
        content=data,
        headers={"Content-Type": "application/octet-stream"},
        timeout=timeout,
    )
    if response.status_code >= 400:
        raise TransferError(
            f"Failed to upload part {part_number}: {response.status_code}",
            status_code=response.status_code,
        )
    etag = response.headers.get("ETag")
    if not etag:
        raise TransferError(f"No ETag received for part {part_number}")
    return etag


class _PartReader:
    """Reads byte ranges from a shared file handle."""

    def __init__(self, fh: BinaryIO, chunk_size: int, file_size: int):
        self._fh = fh
        self._chunk_size = chunk_size
        self._file_size = file_size
        self._lock = threading.Lock()

    def read(self, part_number: int) -> bytes:
        offset, length = part_byte_range(part_number, self._chunk_size, self._file_size)
        with self._lock:
            self._fh.seek(offset)
            data = self._fh.read(length)
        if len(data) != length:
            raise TransferError(f"Short read for part {part_number}: {len(data)}/{length} bytes")
        return data


def transfer_parts(
    storage: StorageClientBase,
    client: httpx.Client,
    reader: _PartReader,
    *,
    storage_key: str,
    upload_id: str,
    total_chunks: int,
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[list[CompletedPart], dict[int, datetime]]:
    """Upload parts 1..total_chunks concurrently.

    Returns:
        Parts sorted by part number, and each part's completion time.

    Raises:
        The first part failure. Parts not yet started are cancelled.
    """
    completed_at: dict[int, datetime] = {}

    def upload_one(part_number: int) -> CompletedPart:
        url = storage.sign_part_upload(
            storage_key,
            upload_id=upload_id,
            part_number=part_number,
            expires_in=settings.multipart_upload_expiry_s,
        )
        data = reader.read(part_number)
        etag = retry_with_backoff(
            lambda: put_part(client, url, data, part_number, settings.part_upload_timeout_s),
            attempts=settings.part_upload_max_attempts,
            base_delay=settings.part_upload_base_delay_s,
            sleep=sleep,
            operation=f"upload_part_{part_number}",
        )
        completed_at[part_number] = datetime.now(UTC)
        logger.info(
            "upload_part_completed",
            part_number=part_number,
            total_chunks=total_chunks,
        )
        return CompletedPart(part_number=part_number, etag=etag)

    parts: list[CompletedPart] = []
    pool = ThreadPoolExecutor(max_workers=max(1, settings.part_upload_concurrency))
    try:
        futures = [pool.submit(upload_one, n) for n in range(1, total_chunks + 1)]
        for future in as_completed(futures):
            parts.append(future.result())
    finally:
        pool.shutdown(wait=True, cancel_futures=True)

    parts.sort(key=lambda p: p.part_number)
    return parts, completed_at


def run_chunked_upload(
    db: Session,
    draft_id: UUID,
    file_path: str,
    *,
    storage: StorageClientBase,
    http_client: httpx.Client | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Transfer a server-held file through the draft's multipart session.

    Only drafts in `uploading` status are processed; anything else is skipped
    (the temporary file is still removed).

    Returns:
        Result dict with "status" of "success", "failed" or "skipped".
    """
    settings = get_settings()
    draft = db.get(UploadDraft, draft_id)

    if draft is None or not draft.is_multipart or draft.status != DraftStatus.uploading:
        logger.info("chunked_upload_skipped", draft_id=str(draft_id), reason="not_uploading")
        remove_temp_file(file_path)
        return {"status": "skipped", "reason": "not_uploading"}

    storage_key = draft.storage_key
    upload_id = draft.upload_id
    own_client = http_client is None
    client = http_client or httpx.Client()

    try:
        with open(file_path, "rb") as fh:
            reader = _PartReader(fh, draft.chunk_size, draft.file_size)
            parts, completed_at = transfer_parts(
                storage,
                client,
                reader,
                storage_key=storage_key,
                upload_id=upload_id,
                total_chunks=draft.total_chunks,
                settings=settings,
                sleep=sleep,
            )

        location = storage.complete_multipart(storage_key, upload_id=upload_id, parts=parts)
        recorded = record_multipart_completion(
            db, draft, parts, completed_at, storage.public_url(storage_key)
        )
        db.commit()
        if not recorded:
            logger.warning("chunked_upload_outlived_draft", draft_id=str(draft_id))
            return {"status": "skipped", "reason": "state_changed"}

        logger.info(
            "chunked_upload_completed",
            draft_id=str(draft_id),
            total_chunks=draft.total_chunks,
            location=location,
        )
        return {"status": "success", "parts": len(parts)}

    except Exception as e:
        db.rollback()
        logger.error("chunked_upload_failed", draft_id=str(draft_id), error=str(e))

        draft = db.get(UploadDraft, draft_id)
        if draft is not None:
            mark_draft_failed(db, draft, str(e))

        try:
            storage.abort_multipart(storage_key, upload_id=upload_id)
        except StorageError as abort_error:
            logger.warning(
                "multipart_abort_failed",
                draft_id=str(draft_id),
                error=abort_error.message,
            )

        return {"status": "failed", "error": str(e)}

    finally:
        if own_client:
            client.close()
        remove_temp_file(file_path)
