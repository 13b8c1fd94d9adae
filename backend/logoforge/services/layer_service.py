"""
LogoForge Backend — Layer Service
===================================

What:  Single-layer operations: add, read, update common fields, update the
       kind-specific payload, delete and reorder.
Why:   Routes stay thin; every operation that moves z_index goes through the
       z-order maintainer so the stack stays dense.
How:   Add/delete/reorder delegate to ZOrderService (locked, committed).
       Field and payload updates never touch z_index and run on the request
       session like any other write.
"""

import logging
import uuid

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.exceptions import DatabaseError, NotFoundError, ValidationError
from logoforge.models.enums import LayerKind
from logoforge.models.layer import Layer
from logoforge.schemas.layer import (
    PAYLOAD_MODEL,
    LayerCreate,
    LayerOrderResponse,
    LayerOut,
    LayerUpdate,
    PayloadUpdate,
)
from logoforge.services.conversion import build_layer_row, layer_to_schema, layers_to_schema
from logoforge.services.references import ensure_references
from logoforge.services.zorder import zorder_service

logger = logging.getLogger(__name__)


class LayerService:

    async def get_row(self, db: AsyncSession, layer_id: uuid.UUID) -> Layer:
        result = await db.execute(select(Layer).where(Layer.id == layer_id))
        layer = result.scalar_one_or_none()
        if layer is None:
            raise NotFoundError(resource="layer", resource_id=str(layer_id))
        return layer

    async def get_layer(self, db: AsyncSession, layer_id: uuid.UUID) -> LayerOut:
        return layer_to_schema(await self.get_row(db, layer_id))

    async def add_layer(self, db: AsyncSession, logo_id: uuid.UUID, data: LayerCreate) -> LayerOut:
        """
        Insert a layer into a logo's stack.

        data.z_index None puts the layer on top; an index in [0, N] inserts
        there and shifts the layers at or above it.

        Raises:
            NotFoundError:   the logo, or an asset or font the payload
                             references, does not exist
            OutOfRangeError: z_index outside [0, N]
        """
        await ensure_references(db, [data.payload])
        row = build_layer_row(logo_id, data, z_index=0)
        await zorder_service.insert(db, logo_id, row, data.z_index)
        return layer_to_schema(row)

    async def update_layer(self, db: AsyncSession, layer_id: uuid.UUID, data: LayerUpdate) -> LayerOut:
        """Writes only the common fields the client sent."""
        layer = await self.get_row(db, layer_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(layer, field, value)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating layer %s: %s", layer_id, str(e))
            raise DatabaseError(
                message="Could not update the layer. Please try again.",
                context={"layer_id": str(layer_id)},
            )
        logger.info("Layer %s updated: %s", layer_id, ", ".join(sorted(changes)) or "no changes")
        return layer_to_schema(layer)

    async def update_payload(self, db: AsyncSession, layer_id: uuid.UUID, data: PayloadUpdate) -> LayerOut:
        """
        Merge a partial payload into the layer's current payload.

        The merged payload is validated as a whole (e.g. a new gradient must
        still have ascending stops) before any column is written.

        Raises:
            ValidationError: kind differs from the layer's kind, or the merged
                             payload is invalid
            NotFoundError:   the merged payload references a missing asset
                             or font
        """
        layer = await self.get_row(db, layer_id)
        if LayerKind(data.kind) != layer.kind:
            raise ValidationError(
                message=f"Payload kind '{data.kind}' does not match layer kind '{layer.kind.value}'",
                field="kind",
            )

        model = PAYLOAD_MODEL[layer.kind]
        current = model.model_validate(layer.payload_row, from_attributes=True)
        merged = {**current.model_dump(), **data.model_dump(exclude_unset=True)}
        try:
            payload = model.model_validate(merged)
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValidationError(
                message=f"Invalid payload: {first['msg']}",
                field=".".join(["payload", *(str(part) for part in first["loc"])]),
            )
        await ensure_references(db, [payload])

        row = layer.payload_row
        for field, value in payload.model_dump(exclude={"kind"}).items():
            setattr(row, field, value)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating payload of layer %s: %s", layer_id, str(e))
            raise DatabaseError(
                message="Could not update the layer. Please try again.",
                context={"layer_id": str(layer_id)},
            )
        logger.info("Layer %s payload updated", layer_id)
        return layer_to_schema(layer)

    async def delete_layer(self, db: AsyncSession, layer_id: uuid.UUID) -> None:
        layer = await self.get_row(db, layer_id)
        await zorder_service.remove(db, layer.logo_id, layer_id)

    async def reorder_layer(self, db: AsyncSession, layer_id: uuid.UUID, new_index: int) -> LayerOrderResponse:
        """
        Raises:
            OutOfRangeError: new_index outside [0, N)
            ConflictError:   the stack was not dense or changed concurrently
        """
        layer = await self.get_row(db, layer_id)
        rows = await zorder_service.reorder(db, layer.logo_id, layer_id, new_index)
        return LayerOrderResponse(logo_id=layer.logo_id, layers=layers_to_schema(rows))


# ── Singleton Instance ────────────────────────────────────────────────────
layer_service = LayerService()
