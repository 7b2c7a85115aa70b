"""Tests for server-side uploads and the background multipart transfer.

Tests cover:
- upload_file_with_chunking: simple path, multipart hand-off, temp file cleanup
- run_chunked_upload: concurrent parts, retry of transient failures,
  failure path (draft failed + session aborted), skip on re-delivery
- spool_to_temp_file size cutoff
"""

import io
import os
import threading
from collections import Counter
from datetime import timedelta

import httpx
import pytest

from zeal.db.models import DraftStatus, UploadDraft
from zeal.errors import ApiError, ApiErrorCode
from zeal.services import uploads as upload_service
from zeal.services.chunked_upload import run_chunked_upload, spool_to_temp_file
from zeal.tasks import upload_draft_chunks
from zeal.tasks.sweep_drafts import sweep_expired_drafts

# 1000 bytes: three parts of 400 / 400 / 200 with the test multipart settings
VIDEO_BYTES = bytes(range(250)) * 4


@pytest.fixture
def enqueued(monkeypatch):
    """Record upload_draft_chunks enqueues instead of sending them to a broker."""
    calls = []

    def fake_apply_async(args=None, kwargs=None, **options):
        calls.append({"args": args, "kwargs": kwargs, **options})

    monkeypatch.setattr(upload_draft_chunks, "apply_async", fake_apply_async)
    return calls


@pytest.fixture
def temp_file(tmp_path):
    def _write(data: bytes, name: str = "upload-test") -> str:
        directory = tmp_path / "uploads"
        directory.mkdir(exist_ok=True)
        path = directory / name
        path.write_bytes(data)
        return str(path)

    return _write


def _no_sleep(_delay: float) -> None:
    return None


def _upload(db_session, storage, user_id, path, *, mime_type="video/mp4", size=None):
    return upload_service.upload_file_with_chunking(
        db_session,
        user_id,
        file_path=path,
        file_name="clip.mp4",
        mime_type=mime_type,
        file_size=size if size is not None else os.path.getsize(path),
        storage=storage,
    )


class TestUploadFileWithChunking:
    """Tests for the server-side upload entry point."""

    def test_small_file_uploaded_synchronously(self, db_session, storage, make_user, temp_file):
        user = make_user()
        path = temp_file(b"small-image", "upload-img")

        result = _upload(db_session, storage, user.id, path, mime_type="image/png")

        assert result.strategy == "simple"
        draft = db_session.get(UploadDraft, result.draft_id)
        assert draft.is_uploaded is True
        assert draft.status == DraftStatus.draft
        assert storage.get_object(draft.storage_key) == b"small-image"
        assert not os.path.exists(path)

    def test_large_video_handed_to_task(self, db_session, storage, make_user, temp_file, enqueued):
        user = make_user()
        path = temp_file(VIDEO_BYTES)

        result = _upload(db_session, storage, user.id, path)

        assert result.strategy == "multipart"
        assert result.status == DraftStatus.uploading
        assert result.total_chunks == 3
        assert enqueued == [
            {
                "args": [str(result.draft_id), path],
                "kwargs": {"request_id": None},
                "queue": "uploads",
            }
        ]
        assert os.path.exists(path)

    def test_validation_failure_removes_temp_file(self, db_session, storage, make_user, temp_file):
        user = make_user()
        path = temp_file(b"%PDF-1.4", "upload-pdf")

        with pytest.raises(ApiError) as exc_info:
            _upload(db_session, storage, user.id, path, mime_type="application/pdf")

        assert exc_info.value.code == ApiErrorCode.E_INVALID_MEDIA_TYPE
        assert not os.path.exists(path)

    def test_dispatch_failure_fails_draft(
        self, db_session, storage, make_user, temp_file, monkeypatch
    ):
        user = make_user()
        path = temp_file(VIDEO_BYTES)

        def broker_down(*args, **kwargs):
            raise ConnectionError("broker unreachable")

        monkeypatch.setattr(upload_draft_chunks, "apply_async", broker_down)

        with pytest.raises(ApiError) as exc_info:
            _upload(db_session, storage, user.id, path)

        assert exc_info.value.code == ApiErrorCode.E_INTERNAL
        draft = db_session.query(UploadDraft).one()
        assert draft.status == DraftStatus.failed
        assert draft.upload_id in storage.aborted_uploads
        assert not os.path.exists(path)


class TestRunChunkedUpload:
    """Tests for the multipart transfer the worker runs."""

    def _start(self, db_session, storage, make_user, temp_file, enqueued):
        user = make_user()
        path = temp_file(VIDEO_BYTES)
        result = _upload(db_session, storage, user.id, path)
        return result.draft_id, path

    def test_transfers_all_parts(self, db_session, storage, make_user, temp_file, enqueued):
        draft_id, path = self._start(db_session, storage, make_user, temp_file, enqueued)

        with httpx.Client(transport=storage.transport()) as http:
            result = run_chunked_upload(
                db_session, draft_id, path, storage=storage, http_client=http, sleep=_no_sleep
            )

        assert result == {"status": "success", "parts": 3}
        draft = db_session.get(UploadDraft, draft_id)
        assert draft.is_uploaded is True
        assert draft.status == DraftStatus.draft
        assert [p["part_number"] for p in draft.uploaded_parts] == [1, 2, 3]
        assert storage.get_object(draft.storage_key) == VIDEO_BYTES
        assert not os.path.exists(path)

    def test_transient_part_failure_retried(
        self, db_session, storage, make_user, temp_file, enqueued
    ):
        draft_id, path = self._start(db_session, storage, make_user, temp_file, enqueued)
        attempts: Counter = Counter()
        lock = threading.Lock()

        def flaky(request: httpx.Request) -> httpx.Response:
            number = request.url.params.get("partNumber")
            with lock:
                attempts[number] += 1
                first_try = attempts[number] == 1
            if number == "2" and first_try:
                return httpx.Response(503)
            return storage.handle_request(request)

        with httpx.Client(transport=httpx.MockTransport(flaky)) as http:
            result = run_chunked_upload(
                db_session, draft_id, path, storage=storage, http_client=http, sleep=_no_sleep
            )

        assert result["status"] == "success"
        assert attempts["2"] == 2
        assert storage.get_object(db_session.get(UploadDraft, draft_id).storage_key) == VIDEO_BYTES

    def test_permanent_failure_fails_draft_and_aborts(
        self, db_session, storage, make_user, temp_file, enqueued
    ):
        draft_id, path = self._start(db_session, storage, make_user, temp_file, enqueued)

        def forbidden_part_three(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("partNumber") == "3":
                return httpx.Response(403)
            return storage.handle_request(request)

        with httpx.Client(transport=httpx.MockTransport(forbidden_part_three)) as http:
            result = run_chunked_upload(
                db_session, draft_id, path, storage=storage, http_client=http, sleep=_no_sleep
            )

        assert result["status"] == "failed"
        draft = db_session.get(UploadDraft, draft_id)
        assert draft.status == DraftStatus.failed
        assert "403" in draft.processing_error
        assert draft.upload_id in storage.aborted_uploads
        assert not os.path.exists(path)

    def test_unexpected_error_fails_draft_and_aborts(
        self, db_session, storage, make_user, temp_file, enqueued, monkeypatch
    ):
        draft_id, path = self._start(db_session, storage, make_user, temp_file, enqueued)

        def broken_sign(*args, **kwargs):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(storage, "sign_part_upload", broken_sign)
        with httpx.Client(transport=storage.transport()) as http:
            result = run_chunked_upload(
                db_session, draft_id, path, storage=storage, http_client=http, sleep=_no_sleep
            )

        assert result == {"status": "failed", "error": "unexpected"}
        draft = db_session.get(UploadDraft, draft_id)
        assert draft.status == DraftStatus.failed
        assert draft.upload_id in storage.aborted_uploads
        assert not os.path.exists(path)

    def test_completion_after_expiry_keeps_draft_failed(
        self, db_session, storage, make_user, temp_file, enqueued, monkeypatch
    ):
        draft_id, path = self._start(db_session, storage, make_user, temp_file, enqueued)
        complete = storage.complete_multipart

        def complete_then_sweep(key, *, upload_id, parts):
            location = complete(key, upload_id=upload_id, parts=parts)
            expires_at = db_session.get(UploadDraft, draft_id).expires_at
            sweep_expired_drafts(db_session, storage, now=expires_at + timedelta(seconds=1))
            return location

        monkeypatch.setattr(storage, "complete_multipart", complete_then_sweep)
        with httpx.Client(transport=storage.transport()) as http:
            result = run_chunked_upload(
                db_session, draft_id, path, storage=storage, http_client=http, sleep=_no_sleep
            )

        assert result == {"status": "skipped", "reason": "state_changed"}
        db_session.expire_all()
        draft = db_session.get(UploadDraft, draft_id)
        assert draft.status == DraftStatus.failed
        assert draft.is_uploaded is False
        assert draft.processing_error == "Upload expired"

    def test_redelivery_is_skipped(self, db_session, storage, make_user, temp_file, enqueued):
        draft_id, path = self._start(db_session, storage, make_user, temp_file, enqueued)
        with httpx.Client(transport=storage.transport()) as http:
            run_chunked_upload(
                db_session, draft_id, path, storage=storage, http_client=http, sleep=_no_sleep
            )

        second_path = temp_file(VIDEO_BYTES, "upload-again")
        result = run_chunked_upload(db_session, draft_id, second_path, storage=storage)

        assert result["status"] == "skipped"
        assert not os.path.exists(second_path)


class TestSpoolToTempFile:
    def test_copies_stream(self, tmp_path):
        path, written = spool_to_temp_file(io.BytesIO(b"abc" * 10), str(tmp_path / "spool"), 1000)

        assert written == 30
        with open(path, "rb") as fh:
            assert fh.read() == b"abc" * 10

    def test_stops_one_byte_past_limit(self, tmp_path):
        path, written = spool_to_temp_file(io.BytesIO(b"x" * 5000), str(tmp_path / "spool"), 1000)

        assert written == 1001
        assert os.path.getsize(path) == 1001
