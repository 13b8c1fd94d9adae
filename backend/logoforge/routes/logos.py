"""
LogoForge Backend — Logo & Version Route Handlers
===================================================

What:  /api/logos CRUD and /api/logos/{id}/versions history endpoints.
How:   Extracts path/query/body values, delegates to LogoService, returns JSON.
Who:   Called by the editor (canvas load/save) and the dashboard (logo list).

Caching Strategy:
    - GET /api/logos: X-Total-Count header, no caching (list changes often)
    - GET /api/logos/{id}/versions/{vid}: long cache, versions are immutable
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.database import get_db_session
from logoforge.schemas.common import ErrorResponse
from logoforge.schemas.logo import (
    LogoCreate,
    LogoDetail,
    LogoListResponse,
    LogoOut,
    LogoUpdate,
    VersionCreate,
    VersionDetail,
    VersionListResponse,
    VersionOut,
)
from logoforge.services.logo_service import logo_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/logos", tags=["Logos"])


@router.get(
    "",
    response_model=LogoListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List logos with pagination",
)
async def list_logos(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    cursor: str | None = Query(
        default=None,
        description="created_at (ISO 8601) of the last item of the previous page; omit for the first page",
    ),
    owner_id: UUID | None = Query(default=None),
    is_template: bool | None = Query(default=None),
    category_id: UUID | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> LogoListResponse:
    """
    Example client usage:
        Page 1: GET /api/logos?owner_id=...&limit=20
        Page 2: GET /api/logos?owner_id=...&limit=20&cursor=2026-10-17T12:00:00+00:00
    """
    result = await logo_service.list_logos(
        db=db,
        limit=limit,
        cursor=cursor,
        owner_id=owner_id,
        is_template=is_template,
        category_id=category_id,
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "",
    response_model=LogoDetail,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Invalid layers", "model": ErrorResponse}},
    summary="Create a logo, optionally with its initial layers",
)
async def create_logo(data: LogoCreate, db: AsyncSession = Depends(get_db_session)) -> LogoDetail:
    return await logo_service.create_logo(db, data)


@router.get(
    "/{logo_id}",
    response_model=LogoDetail,
    responses={404: {"description": "Logo not found", "model": ErrorResponse}},
    summary="Get a logo with its full layer stack",
)
async def get_logo(logo_id: UUID, db: AsyncSession = Depends(get_db_session)) -> LogoDetail:
    return await logo_service.get_logo(db, logo_id)


@router.patch(
    "/{logo_id}",
    response_model=LogoOut,
    responses={404: {"description": "Logo not found", "model": ErrorResponse}},
    summary="Update logo fields (title, canvas, flags)",
)
async def update_logo(logo_id: UUID, data: LogoUpdate, db: AsyncSession = Depends(get_db_session)) -> LogoOut:
    return await logo_service.update_logo(db, logo_id, data)


@router.delete(
    "/{logo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Logo not found", "model": ErrorResponse}},
    summary="Delete a logo with its layers and versions",
)
async def delete_logo(logo_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await logo_service.delete_logo(db, logo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Versions ──────────────────────────────────────────────────────────────


@router.post(
    "/{logo_id}/versions",
    response_model=VersionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Save the logo's current state as a version",
)
async def save_version(
    logo_id: UUID,
    data: VersionCreate | None = None,
    db: AsyncSession = Depends(get_db_session),
) -> VersionOut:
    return await logo_service.save_version(db, logo_id, data or VersionCreate())


@router.get(
    "/{logo_id}/versions",
    response_model=VersionListResponse,
    summary="List saved versions, newest first",
)
async def list_versions(
    logo_id: UUID,
    response: Response,
    limit: int = Query(default=20, ge=1, le=100),
    cursor: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> VersionListResponse:
    result = await logo_service.list_versions(db, logo_id, limit=limit, cursor=cursor)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.get(
    "/{logo_id}/versions/{version_id}",
    response_model=VersionDetail,
    responses={404: {"description": "Version not found", "model": ErrorResponse}},
    summary="Get a saved version with its snapshot",
)
async def get_version(
    logo_id: UUID,
    version_id: UUID,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> VersionDetail:
    result = await logo_service.get_version(db, logo_id, version_id)
    # Versions are append-only
    response.headers["Cache-Control"] = "private, max-age=3600"
    return result


@router.post(
    "/{logo_id}/versions/{version_id}/restore",
    response_model=LogoDetail,
    responses={404: {"description": "Logo or version not found", "model": ErrorResponse}},
    summary="Replace the logo's layers and canvas with a saved version",
)
async def restore_version(
    logo_id: UUID,
    version_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> LogoDetail:
    return await logo_service.restore_version(db, logo_id, version_id)
