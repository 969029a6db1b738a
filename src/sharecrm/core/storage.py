"""Local object storage with signed download URLs.

Files live under ``{storage.root_dir}/{bucket}/{path}``. Download links
carry an expiry and an HMAC-SHA256 signature over bucket, path and
expiry, so they can be handed to browsers without a bearer token.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlencode

import structlog
from werkzeug.utils import secure_filename

from sharecrm.config.app_config import load_app_config
from sharecrm.core.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

BUCKETS = ("paq-documents", "medical-certificates", "class-rolls", "reports")

# Medical certificates and PAQ clearance documents
DOCUMENT_CONTENT_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/heic",
)


@dataclass
class UploadedFile:
    """File received from a multipart form."""

    filename: str
    content_type: str | None
    data: bytes


class LocalStorage:
    """Bucketed file store rooted at a local directory."""

    def __init__(self, root_dir: Path, secret: str, max_upload_bytes: int, default_ttl: int):
        self.root_dir = Path(root_dir)
        self.secret = secret.encode("utf-8")
        self.max_upload_bytes = max_upload_bytes
        self.default_ttl = default_ttl

    def upload(
        self,
        bucket: str,
        name: str,
        data: bytes,
        content_type: str | None = None,
        allowed_types: tuple[str, ...] | None = None,
        folder: str | None = None,
    ) -> str:
        """Store bytes and return their path inside the bucket.

        Args:
            bucket: Target bucket
            name: Original filename (sanitized, prefixed with a random token)
            data: File contents
            content_type: Declared MIME type
            allowed_types: If given, content_type must be one of these
            folder: Optional subfolder (e.g. customer id)

        Raises:
            ValidationError: If empty, too large or of a disallowed type
        """
        self._check_bucket(bucket)
        if not data:
            raise ValidationError("Uploaded file is empty")
        if len(data) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / (1024 * 1024)
            raise ValidationError(f"File too large (max {limit_mb:g} MB)")
        if allowed_types is not None and (content_type or "").lower() not in allowed_types:
            raise ValidationError(
                f"Unsupported file type '{content_type}'. Upload an image or PDF"
            )

        safe = secure_filename(name or "") or "upload"
        relative = f"{secrets.token_hex(8)}_{safe}"
        if folder:
            relative = f"{secure_filename(folder) or 'upload'}/{relative}"

        target = self._resolve(bucket, relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("storage.uploaded", bucket=bucket, path=relative, size=len(data))
        return relative

    def open(self, bucket: str, path: str) -> bytes:
        """Read a stored file.

        Raises:
            NotFoundError: If the file does not exist
            ValidationError: If the path escapes the bucket
        """
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise NotFoundError("File", f"{bucket}/{path}")
        return target.read_bytes()

    def delete(self, bucket: str, path: str) -> bool:
        """Remove a stored file; returns False if it was already gone."""
        target = self._resolve(bucket, path)
        if not target.is_file():
            return False
        target.unlink()
        logger.info("storage.deleted", bucket=bucket, path=path)
        return True

    def exists(self, bucket: str, path: str) -> bool:
        return self._resolve(bucket, path).is_file()

    def signed_url(self, bucket: str, path: str, ttl: int | None = None, now: float | None = None) -> str:
        """Build a time-limited download URL for a stored file."""
        self._check_bucket(bucket)
        expires = int((now if now is not None else time.time()) + (ttl or self.default_ttl))
        query = urlencode({"expires": expires, "signature": self._sign(bucket, path, expires)})
        return f"/files/{bucket}/{quote(path)}?{query}"

    def verify(self, bucket: str, path: str, expires: int, signature: str, now: float | None = None) -> bool:
        """Check a signed URL's signature and expiry."""
        current = now if now is not None else time.time()
        if expires < current:
            return False
        expected = self._sign(bucket, path, expires)
        return hmac.compare_digest(expected, signature or "")

    def _sign(self, bucket: str, path: str, expires: int) -> str:
        message = f"{bucket}/{path}:{expires}".encode("utf-8")
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()

    def _check_bucket(self, bucket: str) -> None:
        if bucket not in BUCKETS:
            raise ValidationError(f"Unknown bucket '{bucket}'")

    def _resolve(self, bucket: str, path: str) -> Path:
        self._check_bucket(bucket)
        base = (self.root_dir / bucket).resolve()
        target = (base / path).resolve()
        if target == base or not target.is_relative_to(base):
            raise ValidationError("Invalid file path")
        return target


def get_storage() -> LocalStorage:
    """Storage configured from the application config."""
    config = load_app_config()
    return LocalStorage(
        root_dir=Path(config.storage.root_dir),
        secret=config.auth.get_secret_key(),
        max_upload_bytes=config.storage.max_upload_bytes,
        default_ttl=config.storage.signed_url_ttl_seconds,
    )
