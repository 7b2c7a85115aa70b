"""Storage key building utilities.

This module is the single point of logic for building storage keys.

Key Invariant:
    - Production: {dirname}/{owner_id}/{kind}/{epoch_ms}-{16 hex}.{ext}
    - Test: test_runs/{run_id}/{dirname}/{owner_id}/{kind}/{epoch_ms}-{16 hex}.{ext}

Rules:
    - No leading slash
    - Prefix applied exactly once in generate_key()
    - 64 bits of randomness per key; collisions are not handled
"""

import os
import secrets
import time
from uuid import UUID

from zeal.config import get_settings

# Environment variable for test run prefix
TEST_PREFIX_ENV_VAR = "STORAGE_TEST_PREFIX"


def _get_test_prefix() -> str:
    """Empty string in production, "test_runs/{run_id}/" in test."""
    prefix = os.environ.get(TEST_PREFIX_ENV_VAR, "")
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return prefix


def get_file_extension(kind: str, mime_type: str) -> str:
    """Videos are always stored as mp4; other media use their MIME subtype.

    >>> get_file_extension("image", "image/png")
    'png'
    """
    if kind == "video":
        return "mp4"
    subtype = mime_type.split("/", 1)[-1].split(";", 1)[0].strip().lower()
    if not subtype:
        raise ValueError(f"Cannot derive extension from MIME type '{mime_type}'")
    return subtype


def generate_key(
    owner_id: UUID | str,
    kind: str,
    mime_type: str,
    *,
    dirname: str | None = None,
    now_ms: int | None = None,
) -> str:
    """Build a fresh storage key for an upload.

    Args:
        owner_id: The uploading user's id.
        kind: Media kind ("video" or "image").
        mime_type: Declared MIME type.
        dirname: Top-level directory. Defaults to STORAGE_DIRNAME.
        now_ms: Epoch milliseconds. Defaults to the current time.
    """
    if dirname is None:
        dirname = get_settings().storage_dirname
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    ext = get_file_extension(kind, mime_type)
    return f"{_get_test_prefix()}{dirname}/{owner_id}/{kind}/{now_ms}-{secrets.token_hex(8)}.{ext}"
