"""
LogoForge Backend — Asset & Font Reference Checks
===================================================

What:  Collects the asset and font ids a set of layer payloads points at and
       verifies that they exist.
Why:   Icon, image and background payloads reference assets, text payloads
       reference fonts. A dangling id must surface as NotFoundError before
       anything is written, not as a foreign-key failure at flush time.
Who:   LayerService (add, payload update), LogoService (create, restore) and
       TemplateService through LogoService.create_from. ExportService uses
       `referenced_ids` to load what the renderer needs.
"""

import logging
import uuid
from typing import Iterable, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.exceptions import NotFoundError
from logoforge.models.asset import Asset, Font
from logoforge.schemas.layer import TextPayload

logger = logging.getLogger(__name__)


def referenced_ids(payloads: Iterable) -> Tuple[Set[uuid.UUID], Set[uuid.UUID]]:
    """(asset ids, font ids) referenced by layer payloads."""
    asset_ids, font_ids = set(), set()
    for payload in payloads:
        if isinstance(payload, TextPayload):
            if payload.font_id:
                font_ids.add(payload.font_id)
        elif getattr(payload, "asset_id", None):
            asset_ids.add(payload.asset_id)
    return asset_ids, font_ids


async def ensure_references(db: AsyncSession, payloads: Iterable) -> None:
    """
    Raises:
        NotFoundError: a payload references an asset or font that does not
                       exist (resource "asset" or "font", first missing id)
    """
    asset_ids, font_ids = referenced_ids(payloads)
    for model, resource, ids in ((Asset, "asset", asset_ids), (Font, "font", font_ids)):
        if not ids:
            continue
        result = await db.execute(select(model.id).where(model.id.in_(ids)))
        missing = ids - set(result.scalars().all())
        if missing:
            first = sorted(str(item) for item in missing)[0]
            logger.info("Layer payload references missing %s %s", resource, first)
            raise NotFoundError(resource=resource, resource_id=first)
