"""
Direct upload endpoints.

Browsers and mobile apps upload straight to the bucket with a presigned
POST form, and fetch files through a redirect to a (signed or CDN) URL.
File bytes never pass through this service.
"""

import logging
from pathlib import PurePosixPath
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from ...core.content_disposition import content_disposition
from ..dependencies import SettingsDep, StorageDep

logger = logging.getLogger(__name__)

router = APIRouter()


class PresignResponse(BaseModel):
    """Everything a client needs to POST a file to the bucket."""
    key: str
    url: str
    fields: dict[str, str]


def generate_key(filename: Optional[str]) -> str:
    """Random key that keeps the original file extension."""
    extension = PurePosixPath(filename).suffix.lower() if filename else ""
    return f"{uuid4().hex}{extension}"


@router.get(
    "/presign",
    response_model=PresignResponse,
    summary="Presign a direct upload",
    description="Returns a presigned POST form for uploading one file to a fresh key.",
)
def presign_upload(
    settings: SettingsDep,
    storage: StorageDep,
    filename: Optional[str] = Query(default=None, max_length=255),
    content_type: Optional[str] = Query(default=None, max_length=255),
) -> PresignResponse:
    if not hasattr(storage, "presign"):
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Configured storage does not support direct uploads",
        )

    key = generate_key(filename)

    options = {"expires_in": settings.presign_expires_in}
    if content_type is not None:
        options["content_type"] = content_type
    if filename:
        options["content_disposition"] = content_disposition("inline", PurePosixPath(filename).name)
    if settings.presign_max_size_mb:
        options["content_length_range"] = (0, settings.presign_max_size_mb * 1024 * 1024)

    presigned = storage.presign(key, **options)

    logger.info("Presigned direct upload", extra={"key": key, "content_type": content_type})

    return PresignResponse(
        key=key,
        url=presigned.url,
        fields={name: str(value) for name, value in presigned.fields.items()},
    )


@router.get(
    "/{key:path}",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Redirect to a file",
    description="Redirects to a URL the client can download the file from.",
    response_class=RedirectResponse,
)
def file_redirect(
    key: str,
    storage: StorageDep,
    download: bool = Query(default=False, description="Force an attachment download"),
) -> RedirectResponse:
    url = storage.url(key, download=download)
    if url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File has no URL")
    return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
