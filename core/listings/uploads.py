"""
Media Uploads - Validation, Storage Keys and Resilient Transfer

Listing media (images, videos, PDF brochures, documents and QR codes)
goes through three steps:
1. validate_upload() checks MIME type and size against the kind's policy
2. build_storage_key() derives a collision-resistant object key
3. MediaUploader transfers the bytes to a BlobStore, retrying transient
   failures with bounded exponential backoff plus jitter

Files in a batch succeed or fail independently. Validation failures are
never retried.
"""

from __future__ import annotations

import hashlib
import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Final, Iterable, Optional

import requests

from core.listings.errors import (
    AuthorizationError,
    ListingError,
    TransientError,
    ValidationError,
)
from core.listings.schema import utcnow


logger = logging.getLogger(__name__)

MB: Final[int] = 1024 * 1024


# =============================================================================
# Upload Policies
# =============================================================================


class MediaKind(Enum):
    IMAGE = "image"
    VIDEO = "video"
    PDF = "pdf"
    DOCUMENT = "document"
    QR_CODE = "qr_code"


@dataclass(frozen=True)
class UploadPolicy:
    """Accepted MIME types and size limits for one kind of media."""

    kind: MediaKind
    mime_types: frozenset[str]
    max_bytes: int
    warn_bytes: Optional[int] = None

    @property
    def max_mb(self) -> int:
        return self.max_bytes // MB


_IMAGE_TYPES: Final = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})

POLICIES: Final[dict[MediaKind, UploadPolicy]] = {
    MediaKind.IMAGE: UploadPolicy(MediaKind.IMAGE, _IMAGE_TYPES, 10 * MB),
    MediaKind.VIDEO: UploadPolicy(
        MediaKind.VIDEO,
        frozenset({"video/mp4", "video/quicktime", "video/webm", "video/x-msvideo"}),
        100 * MB,
        warn_bytes=50 * MB,
    ),
    MediaKind.PDF: UploadPolicy(MediaKind.PDF, frozenset({"application/pdf"}), 10 * MB),
    MediaKind.DOCUMENT: UploadPolicy(
        MediaKind.DOCUMENT,
        frozenset({
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        }),
        25 * MB,
    ),
    MediaKind.QR_CODE: UploadPolicy(MediaKind.QR_CODE, _IMAGE_TYPES, 2 * MB),
}


def validate_upload(kind: MediaKind, content_type: str, size: int) -> list[str]:
    """
    Check a file against the policy for its kind.

    Returns:
        Non-blocking warnings (e.g. a large video)

    Raises:
        ValidationError: If the type is not accepted or the size is out of range
    """
    policy = POLICIES[kind]
    content_type = (content_type or "").split(";")[0].strip().lower()

    if content_type not in policy.mime_types:
        raise ValidationError(
            f"Unsupported file type '{content_type or 'unknown'}' for {kind.value}",
            [f"Allowed types: {', '.join(sorted(policy.mime_types))}"],
        )
    if size <= 0:
        raise ValidationError("File is empty")
    if size > policy.max_bytes:
        raise ValidationError(f"File too large. Maximum size for {kind.value}: {policy.max_mb}MB")

    warnings = []
    if policy.warn_bytes is not None and size > policy.warn_bytes:
        warnings.append(
            f"Large {kind.value} ({size // MB}MB); uploads above "
            f"{policy.warn_bytes // MB}MB may be slow"
        )
    return warnings


def build_storage_key(
    user_id: str,
    filename: str,
    now_ms: Optional[int] = None,
    rand: Optional[str] = None,
) -> str:
    """
    Derive the object key {user_id}/{timestamp}-{random}.{ext}.

    The extension falls back to "file" when the name has none.
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    ext = "".join(c for c in ext if c.isalnum()) or "file"
    if now_ms is None:
        now_ms = int(utcnow().timestamp() * 1000)
    if rand is None:
        rand = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=11))
    return f"{user_id}/{now_ms}-{rand}.{ext}"


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff with proportional jitter."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.25

    def delay_for(self, attempt: int, rng: Optional[random.Random] = None) -> float:
        """Delay before retry number `attempt` (1-based)."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        spread = delay * self.jitter
        return max(0.0, delay + (rng or random).uniform(-spread, spread))


# =============================================================================
# Blob Stores
# =============================================================================


class BlobStore(ABC):
    """Destination for uploaded media bytes."""

    @abstractmethod
    def put(self, key: str, content: bytes, content_type: str) -> str:
        """
        Store the object and return its public URL.

        Raises:
            TransientError: On failures worth retrying
            ListingError: On permanent failures
        """


class LocalBlobStore(BlobStore):
    """
    Filesystem blob store for development.

    Objects live under {root}/{key}; a SHA-256 of each object is logged
    for integrity checks.
    """

    def __init__(self, root: str = "data/uploads", base_url: str = "/media"):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise ValidationError(f"Invalid storage key: {key}")
        return path

    def put(self, key: str, content: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise TransientError(f"Could not write {key}: {e}") from e
        logger.debug("Stored %s (%d bytes, sha256=%s)", key, len(content), hashlib.sha256(content).hexdigest())
        return f"{self._base_url}/{key}"


class SupabaseBlobStore(BlobStore):
    """Uploads to a Supabase Storage bucket over its REST API."""

    def __init__(
        self,
        url: str,
        api_key: str,
        bucket: str,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 60,
    ):
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._bucket = bucket
        self._access_token = access_token or api_key
        self._session = session or requests.Session()
        self._timeout = timeout

    def object_url(self, key: str) -> str:
        return f"{self._url}/storage/v1/object/{self._bucket}/{key}"

    def public_url(self, key: str) -> str:
        return f"{self._url}/storage/v1/object/public/{self._bucket}/{key}"

    def put(self, key: str, content: bytes, content_type: str) -> str:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "apikey": self._api_key,
            "Content-Type": content_type,
            "x-upsert": "false",
        }
        try:
            response = self._session.post(
                self.object_url(key), data=content, headers=headers, timeout=self._timeout
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientError(f"Network error uploading {key}: {e}") from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise TransientError(f"Storage unavailable (HTTP {status}) uploading {key}")
        if status in (401, 403):
            raise AuthorizationError(f"Storage refused upload of {key} (HTTP {status})")
        if status >= 400:
            raise ValidationError(f"Storage rejected {key} (HTTP {status}): {response.text[:200]}")
        return self.public_url(key)


# =============================================================================
# Uploader
# =============================================================================


@dataclass
class UploadItem:
    """One file queued for upload."""

    filename: str
    content: bytes
    content_type: str
    kind: MediaKind = MediaKind.IMAGE


@dataclass
class UploadOutcome:
    filename: str
    url: Optional[str] = None
    key: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.url is not None

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "url": self.url,
            "key": self.key,
            "error": self.error,
            "attempts": self.attempts,
            "warnings": list(self.warnings),
        }


@dataclass
class BatchResult:
    succeeded: list[UploadOutcome] = field(default_factory=list)
    failed: list[UploadOutcome] = field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        return [o.url for o in self.succeeded]

    def to_dict(self) -> dict:
        return {
            "succeeded": [o.to_dict() for o in self.succeeded],
            "failed": [o.to_dict() for o in self.failed],
        }


ProgressCallback = Callable[[int, int, UploadOutcome], None]


class MediaUploader:
    """Validates and transfers media with retry on transient failures."""

    def __init__(
        self,
        store: BlobStore,
        retry: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self._store = store
        self._retry = retry or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def upload(self, user_id: str, item: UploadItem) -> UploadOutcome:
        """
        Upload one file.

        Raises:
            ValidationError: If the file fails validation (never retried)
            TransientError: If every attempt failed transiently
            ListingError: On a permanent storage failure
        """
        warnings = validate_upload(item.kind, item.content_type, len(item.content))
        key = build_storage_key(user_id, item.filename)

        attempt = 0
        while True:
            attempt += 1
            try:
                url = self._store.put(key, item.content, item.content_type)
            except TransientError as e:
                if attempt >= self._retry.max_attempts:
                    raise TransientError(
                        f"Upload of {item.filename} failed after {attempt} attempts: {e.message}",
                        attempts=attempt,
                    ) from e
                delay = self._retry.delay_for(attempt, self._rng)
                logger.warning(
                    "Upload of %s failed (attempt %d/%d), retrying in %.2fs: %s",
                    item.filename, attempt, self._retry.max_attempts, delay, e.message,
                )
                self._sleep(delay)
                continue

            return UploadOutcome(
                filename=item.filename, url=url, key=key, attempts=attempt, warnings=warnings
            )

    def upload_batch(
        self,
        user_id: str,
        items: Iterable[UploadItem],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Upload several files; each succeeds or fails on its own.

        Args:
            on_progress: Called as (completed, total, outcome) after each file
        """
        items = list(items)
        result = BatchResult()

        for index, item in enumerate(items, start=1):
            try:
                outcome = self.upload(user_id, item)
                result.succeeded.append(outcome)
            except ListingError as e:
                attempts = getattr(e, "attempts", 0)
                outcome = UploadOutcome(filename=item.filename, error=e.message, attempts=attempts)
                result.failed.append(outcome)
                logger.error("Upload of %s failed: %s", item.filename, e.message)

            if on_progress is not None:
                on_progress(index, len(items), outcome)

        return result
