"""
LogoForge Backend — Logo Service (Business Logic Orchestrator)
================================================================

What:  Logo CRUD and version history (save, list, get, restore).
Why:   Keeps the multi-step writes (logo + N layers, restore) in one place
       where they are all-or-nothing.
How:   Works on the request's AsyncSession. Writes are flushed here and
       committed by `get_db_session`, so any error rolls back everything the
       request did. Version restore replaces the layer set inside the
       z-order exclusivity scope.
Who:   Called by routes/logos.py; TemplateService reuses `create_from`.

Version restore flow:
    ┌──────────────┐   ┌───────────────┐   ┌────────────────┐   ┌──────────────┐
    │ load version │──▶│ decode layers │──▶│ lock logo, drop │──▶│ insert layers │──▶ COMMIT
    │ (snapshot)   │   │ (validated)   │   │ current layers  │   │ + canvas     │
    └──────────────┘   └───────────────┘   └────────────────┘   └──────────────┘
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.exceptions import DatabaseError, LogoForgeError, NotFoundError
from logoforge.models.logo import Logo, LogoVersion
from logoforge.schemas.layer import validate_layer_set
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
from logoforge.services import snapshot
from logoforge.services.conversion import build_layer_row, layers_to_schema, logo_to_detail, logo_to_schema
from logoforge.services.references import ensure_references
from logoforge.services.zorder import zorder_service

logger = logging.getLogger(__name__)


def parse_cursor(cursor: Optional[str]) -> Optional[datetime]:
    """ISO datetime cursor from a previous page; an unreadable cursor starts over."""
    if not cursor:
        return None
    try:
        return datetime.fromisoformat(cursor)
    except ValueError:
        logger.debug("Ignoring invalid cursor %r", cursor)
        return None


class LogoService:
    """
    Business logic layer for logos and their versions.

    Error Handling Strategy:
        Domain errors (NotFoundError, ValidationError, ConflictError) propagate
        untouched. SQLAlchemy errors are wrapped in DatabaseError, which hides
        internal details from the client.
    """

    # ── Logos ─────────────────────────────────────────────────────────────

    async def get_row(self, db: AsyncSession, logo_id: uuid.UUID) -> Logo:
        """
        Raises:
            NotFoundError: no logo with this id
        """
        result = await db.execute(select(Logo).where(Logo.id == logo_id))
        logo = result.scalar_one_or_none()
        if logo is None:
            raise NotFoundError(resource="logo", resource_id=str(logo_id))
        return logo

    async def list_logos(
        self,
        db: AsyncSession,
        limit: int = 20,
        cursor: Optional[str] = None,
        owner_id: Optional[uuid.UUID] = None,
        is_template: Optional[bool] = None,
        category_id: Optional[uuid.UUID] = None,
    ) -> LogoListResponse:
        """
        Newest first, cursor-paginated.

        Query plan (owner filter):
            SELECT * FROM logos WHERE owner_id = :owner AND created_at < :cursor
            ORDER BY created_at DESC LIMIT :limit + 1
            → idx_logos_owner_id, then idx_logos_created_at
        """
        try:
            filters = []
            if owner_id is not None:
                filters.append(Logo.owner_id == owner_id)
            if is_template is not None:
                filters.append(Logo.is_template == is_template)
            if category_id is not None:
                filters.append(Logo.category_id == category_id)

            query = select(Logo).where(*filters)
            cursor_dt = parse_cursor(cursor)
            if cursor_dt:
                query = query.where(Logo.created_at < cursor_dt)
            # Fetch one extra to determine if there are more pages
            query = query.order_by(desc(Logo.created_at)).limit(limit + 1)

            logos = list((await db.execute(query)).scalars().all())
            total_count = (await db.execute(select(func.count(Logo.id)).where(*filters))).scalar() or 0

            has_more = len(logos) > limit
            logos = logos[:limit]
            next_cursor = logos[-1].created_at.isoformat() if has_more and logos else None

            return LogoListResponse(
                items=[logo_to_schema(logo) for logo in logos],
                total_count=total_count,
                next_cursor=next_cursor,
                has_more=has_more,
            )
        except SQLAlchemyError as e:
            logger.error("Database error listing logos: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve logos. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def create_from(self, db: AsyncSession, data: LogoCreate) -> Logo:
        """
        Insert a logo and all of its layers, flushed but not committed.

        The layer list is validated as a whole first (z_index collisions,
        partial indices, asset and font references), so nothing is written
        for an invalid list.
        """
        layers = validate_layer_set(data.layers)
        await ensure_references(db, (layer.payload for layer in layers))
        logo = Logo(
            id=uuid.uuid4(),
            owner_id=data.owner_id,
            title=data.title,
            canvas_w=data.canvas_w,
            canvas_h=data.canvas_h,
            dpi=data.dpi,
            is_template=data.is_template,
            category_id=data.category_id,
            layers=[],
        )
        for layer in layers:
            logo.layers.append(build_layer_row(logo.id, layer, layer.z_index))
        db.add(logo)
        await db.flush()
        logger.info("Logo %s created with %d layers", logo.id, len(layers))
        return logo

    async def create_logo(self, db: AsyncSession, data: LogoCreate) -> LogoDetail:
        try:
            logo = await self.create_from(db, data)
            return logo_to_detail(logo)
        except LogoForgeError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error creating logo: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the logo. Please try again.",
                context={"error_type": type(e).__name__},
            )

    async def get_logo(self, db: AsyncSession, logo_id: uuid.UUID) -> LogoDetail:
        try:
            return logo_to_detail(await self.get_row(db, logo_id))
        except LogoForgeError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching logo %s: %s", logo_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the logo. Please try again.",
                context={"logo_id": str(logo_id)},
            )

    async def update_logo(self, db: AsyncSession, logo_id: uuid.UUID, data: LogoUpdate) -> LogoOut:
        """Writes only the fields the client sent."""
        logo = await self.get_row(db, logo_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(logo, field, value)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating logo %s: %s", logo_id, str(e))
            raise DatabaseError(
                message="Could not update the logo. Please try again.",
                context={"logo_id": str(logo_id)},
            )
        logger.info("Logo %s updated: %s", logo_id, ", ".join(sorted(changes)) or "no changes")
        return logo_to_schema(logo)

    async def delete_logo(self, db: AsyncSession, logo_id: uuid.UUID) -> None:
        """Deletes the logo with its layers, payloads and versions."""
        logo = await self.get_row(db, logo_id)
        try:
            await db.delete(logo)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting logo %s: %s", logo_id, str(e))
            raise DatabaseError(
                message="Could not delete the logo. Please try again.",
                context={"logo_id": str(logo_id)},
            )
        logger.info("Logo %s deleted", logo_id)

    # ── Versions ──────────────────────────────────────────────────────────

    async def save_version(self, db: AsyncSession, logo_id: uuid.UUID, data: VersionCreate) -> VersionOut:
        """Append the logo's current state to its history."""
        logo = await self.get_row(db, logo_id)
        document = snapshot.encode(logo, layers_to_schema(logo.layers))
        version = LogoVersion(id=uuid.uuid4(), logo_id=logo.id, snapshot=document, note=data.note)
        db.add(version)
        await db.flush()
        logger.info("Saved version %s of logo %s (%d layers)", version.id, logo_id, len(document["layers"]))
        return VersionOut.model_validate(version)

    async def list_versions(
        self,
        db: AsyncSession,
        logo_id: uuid.UUID,
        limit: int = 20,
        cursor: Optional[str] = None,
    ) -> VersionListResponse:
        await self.get_row(db, logo_id)
        query = select(LogoVersion).where(LogoVersion.logo_id == logo_id)
        cursor_dt = parse_cursor(cursor)
        if cursor_dt:
            query = query.where(LogoVersion.created_at < cursor_dt)
        query = query.order_by(desc(LogoVersion.created_at)).limit(limit + 1)

        versions = list((await db.execute(query)).scalars().all())
        total_count = (await db.execute(
            select(func.count(LogoVersion.id)).where(LogoVersion.logo_id == logo_id)
        )).scalar() or 0

        has_more = len(versions) > limit
        versions = versions[:limit]
        return VersionListResponse(
            items=[VersionOut.model_validate(version) for version in versions],
            total_count=total_count,
            next_cursor=versions[-1].created_at.isoformat() if has_more and versions else None,
            has_more=has_more,
        )

    async def _get_version_row(self, db: AsyncSession, logo_id: uuid.UUID, version_id: uuid.UUID) -> LogoVersion:
        result = await db.execute(
            select(LogoVersion).where(LogoVersion.id == version_id, LogoVersion.logo_id == logo_id)
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise NotFoundError(resource="version", resource_id=str(version_id))
        return version

    async def get_version(self, db: AsyncSession, logo_id: uuid.UUID, version_id: uuid.UUID) -> VersionDetail:
        version = await self._get_version_row(db, logo_id, version_id)
        return VersionDetail(
            id=version.id,
            logo_id=version.logo_id,
            note=version.note,
            created_at=version.created_at,
            snapshot=version.snapshot,
        )

    async def restore_version(self, db: AsyncSession, logo_id: uuid.UUID, version_id: uuid.UUID) -> LogoDetail:
        """
        Replace the logo's layers and canvas with those of a saved version.

        Identity, title, owner, template flag and category are kept. The
        snapshot is fully decoded and validated before anything is deleted.

        Raises:
            NotFoundError: the version, or an asset or font it references,
                           no longer exists
        """
        version = await self._get_version_row(db, logo_id, version_id)
        restored = snapshot.decode(version.snapshot, owner_id=None)
        await ensure_references(db, (layer.payload for layer in restored.layers))

        async with zorder_service.exclusive(db, logo_id) as logo:
            for row in list(logo.layers):
                logo.layers.remove(row)
            # Old rows must be gone before the new ones claim their z_index
            await db.flush()
            for layer in restored.layers:
                logo.layers.append(build_layer_row(logo.id, layer, layer.z_index))
            logo.canvas_w = restored.canvas_w
            logo.canvas_h = restored.canvas_h
            logo.dpi = restored.dpi
            await db.flush()

        logger.info("Logo %s restored to version %s (%d layers)", logo_id, version_id, len(restored.layers))
        return logo_to_detail(logo)


# ── Singleton Instance ────────────────────────────────────────────────────
logo_service = LogoService()
