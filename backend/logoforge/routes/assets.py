"""
LogoForge Backend — Asset, Font & Media Route Handlers
========================================================

What:  /api/assets (records, multipart upload, signed direct upload, download
       links), /api/fonts (catalogue) and GET /media/{path}, which serves
       files stored by the local media backend.
Why:   Icon, image and background layers reference assets; text layers
       reference fonts.

Upload Request Flow:
    1. Client sends multipart/form-data with a 'file' field
    2. Content is read into memory (bounded by MAX_FILE_SIZE)
    3. AssetService: media host upload → asset row
    4. 201 Created with the asset record

Security Checks (this module):
    - File type and size: validated by the media backend
    - /media paths: resolved under STORAGE_ROOT, traversal rejected
"""

import logging
from pathlib import Path
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.database import get_db_session
from logoforge.exceptions import NotFoundError
from logoforge.models.enums import AssetKind
from logoforge.schemas.asset import (
    AssetCreate,
    AssetListResponse,
    AssetOut,
    AssetUpdate,
    DownloadResponse,
    FontCreate,
    FontOut,
    SignedUploadResponse,
    SignUploadRequest,
)
from logoforge.schemas.common import ErrorResponse
from logoforge.services.asset_service import asset_service
from logoforge.services.local_media_service import EXTENSION_MIME, LocalMediaService
from logoforge.services import media

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assets", tags=["Assets"])
fonts_router = APIRouter(prefix="/api/fonts", tags=["Fonts"])
media_router = APIRouter(tags=["Media"])


@router.get("", response_model=AssetListResponse, summary="List assets with pagination")
async def list_assets(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100),
    cursor: str | None = Query(default=None),
    kind: AssetKind | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200, description="Matches the asset name"),
    db: AsyncSession = Depends(get_db_session),
) -> AssetListResponse:
    result = await asset_service.list_assets(db, limit=limit, cursor=cursor, kind=kind, search=search)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "",
    response_model=AssetOut,
    status_code=status.HTTP_201_CREATED,
    summary="Register an already stored asset",
)
async def create_asset(data: AssetCreate, db: AsyncSession = Depends(get_db_session)) -> AssetOut:
    return await asset_service.create_asset(db, data)


@router.post(
    "/upload",
    response_model=AssetOut,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid file type or size", "model": ErrorResponse},
        502: {"description": "Media host failed", "model": ErrorResponse},
        503: {"description": "Media host unavailable", "model": ErrorResponse},
    },
    summary="Upload a file and record it as an asset",
)
async def upload_asset(
    file: UploadFile = File(..., description="PNG, JPEG, WebP, GIF, SVG or font file"),
    name: str | None = Form(default=None, max_length=500),
    created_by: UUID | None = Form(default=None),
    folder: str | None = Form(default=None, max_length=200),
    db: AsyncSession = Depends(get_db_session),
) -> AssetOut:
    content = await file.read()
    logger.info("Received upload: filename=%s, size=%d bytes", file.filename or "unknown", len(content))
    try:
        return await asset_service.upload_asset(
            db,
            content=content,
            filename=file.filename or "upload.bin",
            name=name,
            created_by=created_by,
            folder=folder,
        )
    finally:
        await file.close()


@router.post(
    "/sign-upload",
    response_model=SignedUploadResponse,
    summary="Parameters for a direct browser upload to the media host",
)
async def sign_upload(data: SignUploadRequest | None = None) -> SignedUploadResponse:
    return asset_service.sign_upload(data or SignUploadRequest())


@router.get(
    "/{asset_id}",
    response_model=AssetOut,
    responses={404: {"description": "Asset not found", "model": ErrorResponse}},
)
async def get_asset(asset_id: UUID, db: AsyncSession = Depends(get_db_session)) -> AssetOut:
    return await asset_service.get_asset(db, asset_id)


@router.patch("/{asset_id}", response_model=AssetOut, summary="Update asset metadata")
async def update_asset(asset_id: UUID, data: AssetUpdate, db: AsyncSession = Depends(get_db_session)) -> AssetOut:
    return await asset_service.update_asset(db, asset_id, data)


@router.delete(
    "/{asset_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={409: {"description": "Asset still used by layers", "model": ErrorResponse}},
    summary="Delete an asset record and its stored object",
)
async def delete_asset(asset_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await asset_service.delete_asset(db, asset_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{asset_id}/download", response_model=DownloadResponse, summary="Expiring download link")
async def download_asset(asset_id: UUID, db: AsyncSession = Depends(get_db_session)) -> DownloadResponse:
    return await asset_service.download_url(db, asset_id)


# ── Fonts ─────────────────────────────────────────────────────────────────


@fonts_router.get("", response_model=List[FontOut], summary="List fonts")
async def list_fonts(
    family: str | None = Query(default=None, max_length=200),
    db: AsyncSession = Depends(get_db_session),
) -> List[FontOut]:
    return await asset_service.list_fonts(db, family=family)


@fonts_router.post(
    "",
    response_model=FontOut,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Font face already exists", "model": ErrorResponse}},
)
async def create_font(data: FontCreate, db: AsyncSession = Depends(get_db_session)) -> FontOut:
    return await asset_service.create_font(db, data)


@fonts_router.get(
    "/{font_id}",
    response_model=FontOut,
    responses={404: {"description": "Font not found", "model": ErrorResponse}},
)
async def get_font(font_id: UUID, db: AsyncSession = Depends(get_db_session)) -> FontOut:
    return await asset_service.get_font(db, font_id)


# ── Local media files ─────────────────────────────────────────────────────


@media_router.get(
    "/media/{file_path:path}",
    summary="Serve a file stored by the local media backend",
    responses={404: {"description": "File not found"}},
)
async def serve_media(file_path: str) -> FileResponse:
    """
    Security:
        - the path is resolved under STORAGE_ROOT; ../ escapes are rejected
        - only available when MEDIA_BACKEND=local
    """
    service = media.media_service
    if not isinstance(service, LocalMediaService):
        raise NotFoundError(resource="file", resource_id=file_path)

    full_path = service.resolve(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    return FileResponse(
        path=str(full_path),
        media_type=EXTENSION_MIME.get(Path(file_path).suffix.lower(), "application/octet-stream"),
        headers={"Cache-Control": "public, max-age=86400"},
    )
