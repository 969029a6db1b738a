"""Signed-URL file downloads."""

import mimetypes

from fastapi import APIRouter, Response

from sharecrm.core.errors import PermissionDeniedError
from sharecrm.core.storage import get_storage

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{bucket}/{path:path}")
async def download(bucket: str, path: str, expires: int, signature: str) -> Response:
    """Serve a stored file when the URL signature is valid and unexpired."""
    storage = get_storage()
    if not storage.verify(bucket, path, expires, signature):
        raise PermissionDeniedError("Link is invalid or has expired")
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=storage.open(bucket, path), media_type=media_type)
