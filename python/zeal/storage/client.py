"""Object storage gateway client abstraction.

Provides a clean interface for the storage operations the upload pipeline needs:
- Presigned single-part upload URLs (client-direct uploads)
- Multipart sessions: initiate, presign parts, complete, abort
- Server-side object writes, existence checks and deletion
- Public URL derivation

All methods receive the full storage key directly - no prefix manipulation.
"""

import hashlib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, BinaryIO
from urllib.parse import parse_qs, quote, urlsplit
from uuid import uuid4

import httpx

from zeal.config import get_settings
from zeal.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignedUpload:
    """Presigned single-part upload.

    The caller PUTs the bytes to url with the given headers before expiry.
    """

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    expires_in: int = 300


@dataclass(frozen=True)
class CompletedPart:
    """A transferred part of a multipart session."""

    part_number: int
    etag: str


@dataclass(frozen=True)
class ObjectMetadata:
    """Storage object metadata.

    Advisory only. The reliable signal is existence (None vs not-None from head_object).
    """

    content_type: str
    size_bytes: int


class StorageError(Exception):
    """Storage operation error.

    Attributes:
        code: Stable error code (E_STORAGE_ERROR, E_STORAGE_MISSING, ...).
        status_code: HTTP status returned by the gateway, if any.
    """

    def __init__(self, message: str, code: str = "E_STORAGE_ERROR", status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class StorageClientBase(ABC):
    """Abstract base class for storage client implementations."""

    @abstractmethod
    def sign_upload(self, key: str, *, content_type: str, expires_in: int = 300) -> SignedUpload:
        """Create a presigned URL for a single-part upload.

        Raises:
            StorageError: If signing fails.
        """
        ...

    @abstractmethod
    def initiate_multipart(self, key: str, *, content_type: str) -> str:
        """Open a multipart session and return its upload id.

        Raises:
            StorageError: If the gateway rejects the request.
        """
        ...

    @abstractmethod
    def sign_part_upload(
        self, key: str, *, upload_id: str, part_number: int, expires_in: int = 3600
    ) -> str:
        """Create a presigned URL for one part of a multipart session.

        The response to a PUT on this URL carries the part's ETag header.
        """
        ...

    @abstractmethod
    def complete_multipart(self, key: str, *, upload_id: str, parts: list[CompletedPart]) -> str:
        """Finalize a multipart session. Parts must be sorted by part number.

        Returns:
            The object's location.
        """
        ...

    @abstractmethod
    def abort_multipart(self, key: str, *, upload_id: str) -> None:
        """Abort a multipart session and discard its parts."""
        ...

    @abstractmethod
    def put_object(self, key: str, data: bytes | BinaryIO, *, content_type: str) -> None:
        """Write an object in a single request (server-side uploads)."""
        ...

    @abstractmethod
    def head_object(self, key: str) -> ObjectMetadata | None:
        """Return metadata if the object exists, None if it does not.

        Raises:
            StorageError: The gateway could not answer (timeout, 5xx, ...).
        """
        ...

    @abstractmethod
    def delete_object(self, key: str) -> None:
        """Delete an object. Best-effort: logs errors but doesn't raise."""
        ...

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Derive the public URL for a key."""
        ...

    def exists(self, key: str) -> bool:
        return self.head_object(key) is not None


class StorageClient(StorageClientBase):
    """Production storage gateway client.

    Uses httpx for HTTP operations against the gateway REST API.
    """

    def __init__(
        self,
        storage_url: str,
        service_key: str,
        bucket: str = "media",
        public_base_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the storage client.

        Args:
            storage_url: Gateway base URL (e.g., https://storage.example.com).
            service_key: Service role key sent as a bearer token.
            bucket: Storage bucket name.
            public_base_url: Base for public object URLs. Defaults to the
                gateway's public object endpoint for the bucket.
            timeout: Per-request timeout in seconds.
        """
        self._base_url = storage_url.rstrip("/")
        self._bucket = bucket
        self._api_url = f"{self._base_url}/storage/v1"
        self._public_base_url = (
            public_base_url.rstrip("/")
            if public_base_url
            else f"{self._api_url}/object/public/{bucket}"
        )
        self._timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        failure: str,
        expected: tuple[int, ...] = (200,),
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            with httpx.Client() as client:
                response = client.request(
                    method,
                    f"{self._api_url}{path}",
                    headers=headers,
                    timeout=self._timeout,
                    **kwargs,
                )
        except httpx.HTTPError as e:
            raise StorageError(f"{failure}: {e}") from e

        if response.status_code not in expected:
            raise StorageError(
                f"{failure}: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response

    def _absolute(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        if url.startswith("/storage/"):
            return f"{self._base_url}{url}"
        return f"{self._api_url}/{url.lstrip('/')}"

    def _object_path(self, key: str) -> str:
        return f"{self._bucket}/{quote(key)}"

    def sign_upload(self, key: str, *, content_type: str, expires_in: int = 300) -> SignedUpload:
        response = self._request(
            "POST",
            f"/object/upload/sign/{self._object_path(key)}",
            failure="Failed to sign upload",
            json={"expiresIn": expires_in, "contentType": content_type},
        )
        data = response.json()
        url = data.get("url") or ""
        if not url:
            raise StorageError("Failed to sign upload: missing url")
        headers = data.get("headers") or {"Content-Type": content_type}
        return SignedUpload(url=self._absolute(url), headers=headers, expires_in=expires_in)

    def initiate_multipart(self, key: str, *, content_type: str) -> str:
        response = self._request(
            "POST",
            f"/multipart/{self._object_path(key)}",
            failure="Failed to initiate multipart upload",
            json={"contentType": content_type},
        )
        upload_id = response.json().get("uploadId")
        if not upload_id:
            raise StorageError("Failed to initiate multipart upload: missing uploadId")
        return upload_id

    def sign_part_upload(
        self, key: str, *, upload_id: str, part_number: int, expires_in: int = 3600
    ) -> str:
        response = self._request(
            "POST",
            f"/multipart/{self._object_path(key)}/parts/{part_number}/sign",
            failure=f"Failed to sign part {part_number}",
            json={"uploadId": upload_id, "expiresIn": expires_in},
        )
        url = response.json().get("url")
        if not url:
            raise StorageError(f"Failed to sign part {part_number}: missing url")
        return self._absolute(url)

    def complete_multipart(self, key: str, *, upload_id: str, parts: list[CompletedPart]) -> str:
        response = self._request(
            "POST",
            f"/multipart/{self._object_path(key)}/complete",
            failure="Failed to complete multipart upload",
            json={
                "uploadId": upload_id,
                "parts": [{"partNumber": p.part_number, "etag": p.etag} for p in parts],
            },
        )
        return response.json().get("location") or self.public_url(key)

    def abort_multipart(self, key: str, *, upload_id: str) -> None:
        self._request(
            "DELETE",
            f"/multipart/{self._object_path(key)}",
            failure="Failed to abort multipart upload",
            expected=(200, 204, 404),
            params={"uploadId": upload_id},
        )

    def put_object(self, key: str, data: bytes | BinaryIO, *, content_type: str) -> None:
        body = data if isinstance(data, bytes) else data.read()
        self._request(
            "PUT",
            f"/object/{self._object_path(key)}",
            failure="Failed to upload object",
            expected=(200, 201),
            content=body,
            headers={"Content-Type": content_type},
        )

    def head_object(self, key: str) -> ObjectMetadata | None:
        response = self._request(
            "HEAD",
            f"/object/{self._object_path(key)}",
            failure="Failed to stat object",
            expected=(200, 404),
        )
        if response.status_code == 404:
            return None

        return ObjectMetadata(
            content_type=response.headers.get("content-type", "application/octet-stream"),
            size_bytes=int(response.headers.get("content-length", "0")),
        )

    def delete_object(self, key: str) -> None:
        try:
            self._request(
                "DELETE",
                f"/object/{self._object_path(key)}",
                failure="Failed to delete object",
                expected=(200, 204, 404),
            )
        except StorageError as e:
            logger.warning("storage_delete_failed", storage_key=key, error=e.message)

    def public_url(self, key: str) -> str:
        return f"{self._public_base_url}/{quote(key)}"


@dataclass
class _FakeSession:
    key: str
    content_type: str
    parts: dict[int, tuple[bytes, str]] = field(default_factory=dict)


class FakeStorageClient(StorageClientBase):
    """Fake storage client for testing without a real gateway.

    Stores objects in memory. Presigned URLs point at fake-storage.test and can
    be served by transport(), an httpx.MockTransport that stores PUT bodies and
    answers with an ETag, so the real part-transfer code runs unchanged.
    """

    BASE_URL = "https://fake-storage.test"

    def __init__(self):
        self._objects: dict[str, tuple[bytes, str]] = {}  # key -> (content, content_type)
        self._sessions: dict[str, _FakeSession] = {}
        self._lock = threading.Lock()
        self.aborted_uploads: list[str] = []
        self.completed_uploads: list[str] = []

    def sign_upload(self, key: str, *, content_type: str, expires_in: int = 300) -> SignedUpload:
        return SignedUpload(
            url=f"{self.BASE_URL}/upload/{quote(key)}?token=fake-{uuid4()}",
            headers={"Content-Type": content_type},
            expires_in=expires_in,
        )

    def initiate_multipart(self, key: str, *, content_type: str) -> str:
        upload_id = f"fake-upload-{uuid4()}"
        with self._lock:
            self._sessions[upload_id] = _FakeSession(key=key, content_type=content_type)
        return upload_id

    def sign_part_upload(
        self, key: str, *, upload_id: str, part_number: int, expires_in: int = 3600
    ) -> str:
        with self._lock:
            if upload_id not in self._sessions:
                raise StorageError(f"Unknown upload session: {upload_id}", status_code=404)
        return (
            f"{self.BASE_URL}/parts/{quote(key)}?uploadId={upload_id}&partNumber={part_number}"
        )

    def complete_multipart(self, key: str, *, upload_id: str, parts: list[CompletedPart]) -> str:
        with self._lock:
            session = self._sessions.get(upload_id)
            if session is None or session.key != key:
                raise StorageError(f"Unknown upload session: {upload_id}", status_code=404)

            numbers = [p.part_number for p in parts]
            if numbers != sorted(numbers) or len(set(numbers)) != len(numbers):
                raise StorageError("Parts must be sorted and unique", status_code=400)

            chunks = []
            for part in parts:
                stored = session.parts.get(part.part_number)
                if stored is None or stored[1] != part.etag:
                    raise StorageError(
                        f"Part {part.part_number} does not match an uploaded part",
                        status_code=400,
                    )
                chunks.append(stored[0])

            self._objects[key] = (b"".join(chunks), session.content_type)
            del self._sessions[upload_id]
            self.completed_uploads.append(upload_id)
        return self.public_url(key)

    def abort_multipart(self, key: str, *, upload_id: str) -> None:
        with self._lock:
            self._sessions.pop(upload_id, None)
            self.aborted_uploads.append(upload_id)

    def put_object(self, key: str, data: bytes | BinaryIO, *, content_type: str) -> None:
        body = data if isinstance(data, bytes) else data.read()
        with self._lock:
            self._objects[key] = (body, content_type)

    def head_object(self, key: str) -> ObjectMetadata | None:
        with self._lock:
            if key not in self._objects:
                return None
            content, content_type = self._objects[key]
        return ObjectMetadata(content_type=content_type, size_bytes=len(content))

    def delete_object(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"{self.BASE_URL}/public/{quote(key)}"

    # Transport for presigned URLs

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Serve a PUT against a presigned URL issued by this client."""
        url = urlsplit(str(request.url))
        if request.method != "PUT":
            return httpx.Response(405)

        body = request.read()
        etag = f'"{hashlib.md5(body).hexdigest()}"'

        if url.path.startswith("/parts/"):
            query = parse_qs(url.query)
            upload_id = query.get("uploadId", [""])[0]
            part_number = int(query.get("partNumber", ["0"])[0])
            with self._lock:
                session = self._sessions.get(upload_id)
                if session is None:
                    return httpx.Response(404)
                session.parts[part_number] = (body, etag)
            return httpx.Response(200, headers={"ETag": etag})

        if url.path.startswith("/upload/"):
            key = url.path[len("/upload/") :]
            content_type = request.headers.get("content-type", "application/octet-stream")
            with self._lock:
                self._objects[key] = (body, content_type)
            return httpx.Response(200, headers={"ETag": etag})

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_request)

    # Test helper methods

    def get_object(self, key: str) -> bytes | None:
        """Get object content directly (test helper)."""
        with self._lock:
            if key not in self._objects:
                return None
            return self._objects[key][0]

    def has_session(self, upload_id: str) -> bool:
        """Whether a multipart session is still open (test helper)."""
        with self._lock:
            return upload_id in self._sessions

    def clear(self) -> None:
        """Clear all stored objects and sessions (test helper)."""
        with self._lock:
            self._objects.clear()
            self._sessions.clear()
            self.aborted_uploads.clear()
            self.completed_uploads.clear()


@lru_cache
def get_storage_client() -> StorageClientBase:
    """Get the process-wide storage client.

    Returns:
        StorageClient if STORAGE_URL and STORAGE_SERVICE_KEY are set,
        FakeStorageClient otherwise.
    """
    settings = get_settings()

    if settings.storage_configured:
        return StorageClient(
            storage_url=settings.storage_url,
            service_key=settings.storage_service_key,
            bucket=settings.storage_bucket,
            public_base_url=settings.storage_public_base_url,
        )

    # Fake client for local dev / tests without a gateway
    return FakeStorageClient()
