"""
LogoForge Backend — Export Route Handlers
===========================================

What:  GET /api/logos/{id}/export.svg, GET /api/logos/{id}/export.png and
       POST /api/logos/{id}/thumbnail.
How:   SVG is rendered and returned as an attachment. PNG and thumbnails
       are rasterized by the media host; the response carries its URL.

Caching Strategy:
    Exports are never cached: a logo can change between two requests.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.database import get_db_session
from logoforge.schemas.common import ErrorResponse
from logoforge.schemas.export import ExportResponse, ThumbnailResponse
from logoforge.services.export_service import export_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/logos", tags=["Export"])


@router.get(
    "/{logo_id}/export.svg",
    response_class=Response,
    responses={
        200: {"content": {"image/svg+xml": {}}, "description": "SVG document"},
        404: {"description": "Logo not found", "model": ErrorResponse},
        504: {"description": "Rendering timed out", "model": ErrorResponse},
    },
    summary="Export a logo as SVG",
)
async def export_svg(
    logo_id: UUID,
    width: int | None = Query(default=None, ge=1, le=10000),
    height: int | None = Query(default=None, ge=1, le=10000),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    document = await export_service.export_svg(db, logo_id, width, height)
    return Response(
        content=document,
        media_type="image/svg+xml",
        headers={
            "Content-Disposition": f'attachment; filename="logo-{logo_id}.svg"',
            "Cache-Control": "no-store",
        },
    )


@router.get(
    "/{logo_id}/export.png",
    response_model=ExportResponse,
    responses={
        502: {"description": "Media host failed", "model": ErrorResponse},
        503: {"description": "Media host unavailable", "model": ErrorResponse},
    },
    summary="Export a logo as PNG via the media host",
)
async def export_png(
    logo_id: UUID,
    width: int | None = Query(default=None, ge=1, le=10000),
    height: int | None = Query(default=None, ge=1, le=10000),
    dpi: int | None = Query(default=None, ge=1, le=2400),
    quality: int | None = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_db_session),
) -> ExportResponse:
    return await export_service.export_png(db, logo_id, width=width, height=height, dpi=dpi, quality=quality)


@router.post(
    "/{logo_id}/thumbnail",
    response_model=ThumbnailResponse,
    summary="Generate and store the logo's thumbnail",
)
async def create_thumbnail(
    logo_id: UUID,
    size: int | None = Query(default=None, ge=32, le=2048),
    db: AsyncSession = Depends(get_db_session),
) -> ThumbnailResponse:
    return await export_service.thumbnail(db, logo_id, size)
