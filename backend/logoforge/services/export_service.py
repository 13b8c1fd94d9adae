"""
LogoForge Backend — Export Service
====================================

What:  SVG export, PNG export and thumbnail generation for a logo.
Why:   The renderer is pure; this service gathers its inputs (layers, the
       assets and fonts they reference) and hands raster conversion to the
       media host.
How:   SVG export returns the rendered document directly. PNG export and
       thumbnails upload the SVG to the media host and return a transformed
       URL (c_fit, png, quality) of it; nothing is rasterized in-process.

Export flow:
    ┌──────────────┐   ┌──────────────┐   ┌─────────────┐   ┌──────────────────┐
    │ logo, layers │──▶│ render (SVG, │──▶│ upload SVG  │──▶│ transformed URL  │
    │ assets, fonts│   │ deadline)    │   │ to media    │   │ (png, w×h, q)    │
    └──────────────┘   └──────────────┘   └─────────────┘   └──────────────────┘
"""

import logging
import time
import uuid
from typing import Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.config import settings
from logoforge.models.asset import Asset, Font
from logoforge.models.logo import Logo
from logoforge.schemas.asset import AssetOut, FontOut
from logoforge.schemas.export import ExportResponse, ThumbnailResponse
from logoforge.services import renderer
from logoforge.services.conversion import layers_to_schema
from logoforge.services.logo_service import logo_service
from logoforge.services.media import media_service
from logoforge.services.references import referenced_ids

logger = logging.getLogger(__name__)

THUMBNAIL_QUALITY = 80
EXPORT_FOLDER = "exports"


def _deadline() -> Optional[float]:
    if settings.render_timeout_seconds <= 0:
        return None
    return time.monotonic() + settings.render_timeout_seconds


class ExportService:

    async def _load(
        self, db: AsyncSession, logo_id: uuid.UUID
    ) -> Tuple[Logo, list, Dict[uuid.UUID, AssetOut], Dict[uuid.UUID, FontOut]]:
        logo = await logo_service.get_row(db, logo_id)
        layers = layers_to_schema(logo.layers)
        asset_ids, font_ids = referenced_ids(layer.payload for layer in layers)

        assets: Dict[uuid.UUID, AssetOut] = {}
        if asset_ids:
            result = await db.execute(select(Asset).where(Asset.id.in_(asset_ids)))
            assets = {asset.id: AssetOut.model_validate(asset) for asset in result.scalars().all()}
        fonts: Dict[uuid.UUID, FontOut] = {}
        if font_ids:
            result = await db.execute(select(Font).where(Font.id.in_(font_ids)))
            fonts = {font.id: FontOut.model_validate(font) for font in result.scalars().all()}

        missing = asset_ids - assets.keys()
        if missing:
            logger.warning("Logo %s references %d missing asset(s)", logo_id, len(missing))
        return logo, layers, assets, fonts

    async def export_svg(
        self,
        db: AsyncSession,
        logo_id: uuid.UUID,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> str:
        """
        Raises:
            NotFoundError:      the logo does not exist
            RenderTimeoutError: rendering passed RENDER_TIMEOUT_SECONDS
        """
        logo, layers, assets, fonts = await self._load(db, logo_id)
        started = time.perf_counter()
        document = renderer.render(
            logo,
            layers,
            width=width,
            height=height,
            assets=assets,
            fonts=fonts,
            default_font=settings.default_font_family,
            deadline=_deadline(),
        )
        logger.info(
            "Rendered logo %s (%d layers) in %.1fms",
            logo_id, len(layers), (time.perf_counter() - started) * 1000,
        )
        return document

    async def _upload_svg(self, logo_id: uuid.UUID, document: str):
        return await media_service.upload(
            document.encode("utf-8"),
            f"logo-{logo_id}.svg",
            folder=f"{settings.cloudinary_folder}/{EXPORT_FOLDER}",
        )

    async def export_png(
        self,
        db: AsyncSession,
        logo_id: uuid.UUID,
        width: Optional[int] = None,
        height: Optional[int] = None,
        dpi: Optional[int] = None,
        quality: Optional[int] = None,
    ) -> ExportResponse:
        """
        PNG rendition of the logo at width×height (default: canvas size).

        Raises:
            UpstreamMediaError / CircuitBreakerOpenError: the media host failed
        """
        logo = await logo_service.get_row(db, logo_id)
        width = width or logo.canvas_w
        height = height or logo.canvas_h
        quality = quality or settings.export_quality

        document = await self.export_svg(db, logo_id, width, height)
        uploaded = await self._upload_svg(logo_id, document)
        url = media_service.transformed_url(uploaded.provider_id, width, height, "png", quality)
        logger.info("Exported logo %s as PNG %dx%d", logo_id, width, height)
        return ExportResponse(
            logo_id=logo_id,
            download_url=url,
            format="png",
            width=width,
            height=height,
            dpi=dpi or logo.dpi or 72,
            quality=quality,
            file_size=uploaded.bytes,
        )

    async def thumbnail(self, db: AsyncSession, logo_id: uuid.UUID, size: Optional[int] = None) -> ThumbnailResponse:
        """Square-bounded PNG preview; its URL is stored on the logo."""
        size = size or settings.thumbnail_size
        logo = await logo_service.get_row(db, logo_id)
        document = await self.export_svg(db, logo_id)
        uploaded = await self._upload_svg(logo_id, document)
        url = media_service.transformed_url(uploaded.provider_id, size, size, "png", THUMBNAIL_QUALITY)
        logo.thumbnail_url = url
        await db.flush()
        logger.info("Thumbnail for logo %s updated", logo_id)
        return ThumbnailResponse(logo_id=logo_id, thumbnail_url=url, width=size, height=size)


# ── Singleton Instance ────────────────────────────────────────────────────
export_service = ExportService()
