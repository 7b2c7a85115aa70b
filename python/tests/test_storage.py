"""Tests for the storage gateway client and key utilities.

Tests cover:
- Key building with test prefix isolation
- StorageClient requests against a mocked gateway (respx)
- FakeStorageClient multipart behavior through its httpx transport
"""

import re
from uuid import uuid4

import httpx
import pytest
import respx

from zeal.storage.client import CompletedPart, FakeStorageClient, StorageClient, StorageError
from zeal.storage.keys import generate_key, get_file_extension

GATEWAY = "https://storage.example.test"
API = f"{GATEWAY}/storage/v1"


class TestKeyBuilding:
    """Tests for storage key building."""

    def test_video_extension_is_always_mp4(self):
        assert get_file_extension("video", "video/quicktime") == "mp4"

    def test_image_extension_from_mime_subtype(self):
        assert get_file_extension("image", "image/PNG") == "png"
        assert get_file_extension("image", "image/jpeg; charset=binary") == "jpeg"

    def test_key_layout(self):
        """Key is {dirname}/{owner}/{kind}/{epoch_ms}-{16 hex}.{ext}."""
        owner = uuid4()
        key = generate_key(owner, "video", "video/mp4", now_ms=1700000000000)

        assert re.fullmatch(rf"zeals/{owner}/video/1700000000000-[0-9a-f]{{16}}\.mp4", key)
        assert not key.startswith("/")

    def test_keys_are_unique(self):
        owner = uuid4()
        keys = {generate_key(owner, "image", "image/png", now_ms=1) for _ in range(50)}
        assert len(keys) == 50

    def test_test_prefix_applied_once(self, monkeypatch):
        monkeypatch.setenv("STORAGE_TEST_PREFIX", "test_runs/run-1")
        key = generate_key(uuid4(), "image", "image/png", dirname="media")

        assert key.startswith("test_runs/run-1/media/")
        assert key.count("test_runs/") == 1


class TestStorageClient:
    """Tests for the production client against a mocked gateway."""

    @pytest.fixture
    def client(self) -> StorageClient:
        return StorageClient(storage_url=GATEWAY, service_key="service-key", bucket="media")

    @respx.mock
    def test_sign_upload_returns_absolute_url(self, client):
        route = respx.post(f"{API}/object/upload/sign/media/zeals/a.mp4").mock(
            return_value=httpx.Response(200, json={"url": "/object/upload/sign/media/a?t=1"})
        )

        signed = client.sign_upload("zeals/a.mp4", content_type="video/mp4", expires_in=300)

        assert signed.url == f"{API}/object/upload/sign/media/a?t=1"
        assert signed.headers == {"Content-Type": "video/mp4"}
        assert route.calls.last.request.headers["Authorization"] == "Bearer service-key"

    @respx.mock
    def test_initiate_multipart_returns_upload_id(self, client):
        respx.post(f"{API}/multipart/media/zeals/a.mp4").mock(
            return_value=httpx.Response(200, json={"uploadId": "up-1"})
        )
        assert client.initiate_multipart("zeals/a.mp4", content_type="video/mp4") == "up-1"

    @respx.mock
    def test_gateway_error_raises_storage_error(self, client):
        respx.post(f"{API}/multipart/media/zeals/a.mp4").mock(
            return_value=httpx.Response(500, text="boom")
        )
        with pytest.raises(StorageError) as exc_info:
            client.initiate_multipart("zeals/a.mp4", content_type="video/mp4")
        assert exc_info.value.status_code == 500

    @respx.mock
    def test_complete_multipart_sends_parts_in_order(self, client):
        route = respx.post(f"{API}/multipart/media/zeals/a.mp4/complete").mock(
            return_value=httpx.Response(200, json={"location": "https://cdn/a.mp4"})
        )
        parts = [CompletedPart(1, '"e1"'), CompletedPart(2, '"e2"')]

        location = client.complete_multipart("zeals/a.mp4", upload_id="up-1", parts=parts)

        assert location == "https://cdn/a.mp4"
        body = route.calls.last.request.read()
        assert b'"partNumber":1' in body.replace(b" ", b"")

    @respx.mock
    def test_head_object_missing_returns_none(self, client):
        respx.head(f"{API}/object/media/zeals/a.mp4").mock(return_value=httpx.Response(404))
        assert client.head_object("zeals/a.mp4") is None
        assert client.exists("zeals/a.mp4") is False

    @respx.mock
    @pytest.mark.parametrize(
        "side_effect",
        [httpx.Response(503), httpx.ConnectTimeout("timed out")],
    )
    def test_head_object_gateway_failure_raises(self, client, side_effect):
        """Only a 404 means missing; other failures surface as StorageError."""
        respx.head(f"{API}/object/media/zeals/a.mp4").mock(side_effect=[side_effect])

        with pytest.raises(StorageError):
            client.head_object("zeals/a.mp4")

    @respx.mock
    def test_head_object_reports_size(self, client):
        respx.head(f"{API}/object/media/zeals/a.mp4").mock(
            return_value=httpx.Response(
                200, headers={"content-type": "video/mp4", "content-length": "42"}
            )
        )
        metadata = client.head_object("zeals/a.mp4")
        assert metadata is not None
        assert metadata.size_bytes == 42

    @respx.mock
    def test_delete_object_is_best_effort(self, client):
        respx.delete(f"{API}/object/media/zeals/a.mp4").mock(
            side_effect=httpx.ConnectError("down")
        )
        client.delete_object("zeals/a.mp4")

    def test_public_url(self, client):
        assert client.public_url("zeals/a.mp4") == f"{API}/object/public/media/zeals/a.mp4"


class TestFakeStorageClient:
    """Tests for the in-memory client used by the rest of the suite."""

    def test_multipart_round_trip_through_transport(self):
        storage = FakeStorageClient()
        upload_id = storage.initiate_multipart("k.mp4", content_type="video/mp4")

        parts = []
        with httpx.Client(transport=storage.transport()) as http:
            for number, body in ((1, b"abc"), (2, b"def")):
                url = storage.sign_part_upload("k.mp4", upload_id=upload_id, part_number=number)
                response = http.put(url, content=body)
                parts.append(CompletedPart(number, response.headers["ETag"]))

        storage.complete_multipart("k.mp4", upload_id=upload_id, parts=parts)

        assert storage.get_object("k.mp4") == b"abcdef"
        assert not storage.has_session(upload_id)

    def test_complete_rejects_unsorted_parts(self):
        storage = FakeStorageClient()
        upload_id = storage.initiate_multipart("k.mp4", content_type="video/mp4")

        with pytest.raises(StorageError):
            storage.complete_multipart(
                "k.mp4",
                upload_id=upload_id,
                parts=[CompletedPart(2, "b"), CompletedPart(1, "a")],
            )

    def test_simple_upload_through_signed_url(self):
        storage = FakeStorageClient()
        signed = storage.sign_upload("img/a.png", content_type="image/png")

        with httpx.Client(transport=storage.transport()) as http:
            http.put(signed.url, content=b"png-bytes", headers=signed.headers)

        metadata = storage.head_object("img/a.png")
        assert metadata is not None
        assert metadata.size_bytes == len(b"png-bytes")
