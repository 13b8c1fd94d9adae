"""
LogoForge Backend — Asset & Font Service
==========================================

What:  Media asset records (list, get, register, upload, update, delete,
       signed direct upload, download links) and the font catalogue.
Why:   Layers reference assets and fonts by id; this service owns their
       lifecycle and the coordination with the media host.
How:   Uploads go to the configured MediaService first; the asset row is only
       added once the host accepted the bytes, so a failed upload leaves no
       record behind. Deletes remove the row even when the host could not
       delete the stored object (logged, not raised).

Upload flow:
    ┌────────────┐   ┌────────────────┐   ┌─────────────────┐   ┌───────────┐
    │ bytes +    │──▶│ media host     │──▶│ kind, checksum, │──▶│ asset row │──▶ COMMIT
    │ filename   │   │ upload (retry) │   │ palette         │   │ (flush)   │
    └────────────┘   └────────────────┘   └─────────────────┘   └───────────┘
                            │ fails
                            ▼
                     UpstreamMediaError, nothing written
"""

import hashlib
import logging
import time
import uuid
from pathlib import Path
from typing import List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.exceptions import ConflictError, DatabaseError, LogoForgeError, NotFoundError, ValidationError
from logoforge.models.asset import Asset, Font
from logoforge.models.enums import AssetKind
from logoforge.models.layer import LayerBackground, LayerIcon, LayerImage
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
from logoforge.services.local_media_service import detect_mime_type
from logoforge.services.logo_service import parse_cursor
from logoforge.services.media import media_service

logger = logging.getLogger(__name__)

# What: Lifetime of a signed download link, in seconds
DOWNLOAD_LINK_TTL = 3600

FONT_FORMATS = {"ttf", "otf", "woff", "woff2"}


def classify_upload(filename: str, mime_type: str, format: Optional[str]) -> AssetKind:
    """Asset kind from what the host and libmagic report about the bytes."""
    fmt = (format or Path(filename).suffix.lstrip(".")).lower()
    if mime_type == "image/svg+xml" or fmt == "svg":
        return AssetKind.VECTOR
    if mime_type.startswith("font/") or fmt in FONT_FORMATS:
        return AssetKind.FONT
    return AssetKind.RASTER


class AssetService:

    # ── Assets ────────────────────────────────────────────────────────────

    async def list_assets(
        self,
        db: AsyncSession,
        limit: int = 20,
        cursor: Optional[str] = None,
        kind: Optional[AssetKind] = None,
        search: Optional[str] = None,
    ) -> AssetListResponse:
        try:
            filters = []
            if kind is not None:
                filters.append(Asset.kind == kind)
            if search:
                filters.append(Asset.name.ilike(f"%{search}%"))

            query = select(Asset).where(*filters)
            cursor_dt = parse_cursor(cursor)
            if cursor_dt:
                query = query.where(Asset.created_at < cursor_dt)
            query = query.order_by(desc(Asset.created_at)).limit(limit + 1)

            assets = list((await db.execute(query)).scalars().all())
            total_count = (await db.execute(select(func.count(Asset.id)).where(*filters))).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing assets: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve assets. Please try again.",
                context={"error_type": type(e).__name__},
            )

        has_more = len(assets) > limit
        assets = assets[:limit]
        return AssetListResponse(
            items=[AssetOut.model_validate(asset) for asset in assets],
            total_count=total_count,
            next_cursor=assets[-1].created_at.isoformat() if has_more and assets else None,
            has_more=has_more,
        )

    async def get_row(self, db: AsyncSession, asset_id: uuid.UUID) -> Asset:
        asset = await db.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError(resource="asset", resource_id=str(asset_id))
        return asset

    async def get_asset(self, db: AsyncSession, asset_id: uuid.UUID) -> AssetOut:
        return AssetOut.model_validate(await self.get_row(db, asset_id))

    async def create_asset(self, db: AsyncSession, data: AssetCreate) -> AssetOut:
        """Registers an object that is already stored (e.g. a direct browser upload)."""
        asset = Asset(id=uuid.uuid4(), **data.model_dump())
        db.add(asset)
        await db.flush()
        logger.info("Asset registered: %s (%s, %s)", asset.id, asset.kind.value, asset.storage)
        return AssetOut.model_validate(asset)

    async def upload_asset(
        self,
        db: AsyncSession,
        content: bytes,
        filename: str,
        name: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
        folder: Optional[str] = None,
    ) -> AssetOut:
        """
        Store bytes on the media host and record them as an asset.

        Raises:
            ValidationError:         empty file
            UpstreamMediaError:      the host failed (no row is written)
            CircuitBreakerOpenError: the host is considered down
        """
        if not content:
            raise ValidationError(message="Uploaded file is empty", field="file")

        mime_type = detect_mime_type(content, filename)
        result = await media_service.upload(content, filename, folder)
        kind = classify_upload(filename, mime_type, result.format)

        vector_svg = None
        if kind is AssetKind.VECTOR:
            vector_svg = content.decode("utf-8", errors="replace")

        asset = Asset(
            id=uuid.uuid4(),
            kind=kind,
            name=name or filename,
            storage=media_service.backend_name,
            url=result.url,
            provider_id=result.provider_id,
            mime_type=mime_type,
            bytes_size=result.bytes or len(content),
            width=result.width,
            height=result.height,
            has_alpha=result.has_alpha,
            dominant_hex=result.colors[0] if result.colors else None,
            palette=result.colors or None,
            vector_svg=vector_svg,
            checksum_sha256=hashlib.sha256(content).hexdigest(),
            created_by=created_by,
        )
        db.add(asset)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error recording uploaded asset %s: %s", result.provider_id, str(e))
            raise DatabaseError(
                message="Could not save the uploaded asset. Please try again.",
                context={"provider_id": result.provider_id},
            )
        logger.info(
            "Asset uploaded: %s (%s, %d bytes, %s)",
            asset.id, kind.value, asset.bytes_size, media_service.backend_name,
        )
        return AssetOut.model_validate(asset)

    async def update_asset(self, db: AsyncSession, asset_id: uuid.UUID, data: AssetUpdate) -> AssetOut:
        asset = await self.get_row(db, asset_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise ValidationError(message="name may be omitted but not set to null", field="name")
        for field, value in changes.items():
            setattr(asset, field, value)
        await db.flush()
        return AssetOut.model_validate(asset)

    async def _count_references(self, db: AsyncSession, asset_id: uuid.UUID) -> int:
        total = 0
        for table in (LayerIcon, LayerImage, LayerBackground):
            count = await db.execute(select(func.count()).select_from(table).where(table.asset_id == asset_id))
            total += count.scalar() or 0
        return total

    async def delete_asset(self, db: AsyncSession, asset_id: uuid.UUID) -> None:
        """
        Delete an asset record and, best effort, the stored object.

        Raises:
            ConflictError: layers still reference the asset
        """
        asset = await self.get_row(db, asset_id)
        references = await self._count_references(db, asset_id)
        if references:
            raise ConflictError(
                message=f"Asset is used by {references} layer(s); remove them first",
                context={"asset_id": str(asset_id), "layers": references},
            )

        if asset.provider_id and asset.storage == media_service.backend_name:
            resource_type = "image" if asset.mime_type.startswith("image/") else "raw"
            try:
                await media_service.delete(asset.provider_id, resource_type)
            except LogoForgeError as e:
                logger.warning(
                    "Could not delete stored object %s of asset %s: %s",
                    asset.provider_id, asset_id, e.message,
                )

        await db.delete(asset)
        await db.flush()
        logger.info("Asset %s deleted", asset_id)

    def sign_upload(self, data: SignUploadRequest) -> SignedUploadResponse:
        signed = media_service.sign_upload(data.folder, data.public_id, data.resource_type)
        return SignedUploadResponse(**signed.model_dump())

    async def download_url(self, db: AsyncSession, asset_id: uuid.UUID) -> DownloadResponse:
        """Expiring link for hosted objects; other assets return their stored URL."""
        asset = await self.get_row(db, asset_id)
        expires_at = int(time.time()) + DOWNLOAD_LINK_TTL
        if asset.provider_id and asset.storage == media_service.backend_name:
            resource_type = "image" if asset.mime_type.startswith("image/") else "raw"
            url = media_service.download_url(asset.provider_id, resource_type, expires_at)
        else:
            url = asset.url
        return DownloadResponse(url=url, expires_at=expires_at)

    # ── Fonts ─────────────────────────────────────────────────────────────

    async def list_fonts(self, db: AsyncSession, family: Optional[str] = None) -> List[FontOut]:
        query = select(Font).order_by(Font.family, Font.weight, Font.style)
        if family:
            query = query.where(Font.family.ilike(f"%{family}%"))
        result = await db.execute(query)
        return [FontOut.model_validate(font) for font in result.scalars().all()]

    async def get_font(self, db: AsyncSession, font_id: uuid.UUID) -> FontOut:
        font = await db.get(Font, font_id)
        if font is None:
            raise NotFoundError(resource="font", resource_id=str(font_id))
        return FontOut.model_validate(font)

    async def create_font(self, db: AsyncSession, data: FontCreate) -> FontOut:
        """
        Raises:
            ValidationError: a face with the same family, weight and style exists
        """
        existing = await db.execute(
            select(Font.id).where(
                Font.family == data.family,
                Font.weight == data.weight,
                Font.style == data.style,
            )
        )
        if existing.first() is not None:
            raise ValidationError(
                message=f"Font '{data.family}' {data.weight} {data.style} already exists",
                field="family",
            )
        font = Font(id=uuid.uuid4(), **data.model_dump())
        db.add(font)
        await db.flush()
        logger.info("Font created: %s %d %s", font.family, font.weight, font.style)
        return FontOut.model_validate(font)


# ── Singleton Instance ────────────────────────────────────────────────────
asset_service = AssetService()
