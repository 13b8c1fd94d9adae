"""
LogoForge Backend — Layer Route Handlers
==========================================

What:  Adds layers to a logo and edits, deletes and reorders single layers.
How:   Thin handlers over LayerService. Reorders answer with the logo's whole
       stack so the editor can redraw without a second request.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.database import get_db_session
from logoforge.schemas.common import ErrorResponse
from logoforge.schemas.layer import (
    LayerCreate,
    LayerOrderResponse,
    LayerOut,
    LayerUpdate,
    PayloadPatch,
    ReorderRequest,
)
from logoforge.services.layer_service import layer_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Layers"])


@router.post(
    "/logos/{logo_id}/layers",
    response_model=LayerOut,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid layer or z_index outside [0, N]", "model": ErrorResponse},
        404: {"description": "Logo not found", "model": ErrorResponse},
        409: {"description": "Layer order changed concurrently", "model": ErrorResponse},
    },
    summary="Add a layer to a logo",
)
async def add_layer(logo_id: UUID, data: LayerCreate, db: AsyncSession = Depends(get_db_session)) -> LayerOut:
    """Without z_index the layer goes on top of the stack."""
    return await layer_service.add_layer(db, logo_id, data)


@router.get(
    "/layers/{layer_id}",
    response_model=LayerOut,
    responses={404: {"description": "Layer not found", "model": ErrorResponse}},
    summary="Get a layer with its payload",
)
async def get_layer(layer_id: UUID, db: AsyncSession = Depends(get_db_session)) -> LayerOut:
    return await layer_service.get_layer(db, layer_id)


@router.patch(
    "/layers/{layer_id}",
    response_model=LayerOut,
    summary="Update a layer's transform and compositing fields",
)
async def update_layer(layer_id: UUID, data: LayerUpdate, db: AsyncSession = Depends(get_db_session)) -> LayerOut:
    return await layer_service.update_layer(db, layer_id, data)


@router.patch(
    "/layers/{layer_id}/payload",
    response_model=LayerOut,
    responses={400: {"description": "Kind mismatch or invalid payload", "model": ErrorResponse}},
    summary="Update a layer's kind-specific payload",
)
async def update_payload(
    layer_id: UUID,
    data: PayloadPatch,
    db: AsyncSession = Depends(get_db_session),
) -> LayerOut:
    return await layer_service.update_payload(db, layer_id, data.root)


@router.delete(
    "/layers/{layer_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"description": "Layer not found", "model": ErrorResponse}},
    summary="Delete a layer; the layers above it move down",
)
async def delete_layer(layer_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await layer_service.delete_layer(db, layer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/layers/{layer_id}/reorder",
    response_model=LayerOrderResponse,
    responses={
        400: {"description": "new_index outside [0, N)", "model": ErrorResponse},
        409: {"description": "Layer order changed concurrently", "model": ErrorResponse},
    },
    summary="Move a layer to a new position in its logo's stack",
)
async def reorder_layer(
    layer_id: UUID,
    data: ReorderRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LayerOrderResponse:
    return await layer_service.reorder_layer(db, layer_id, data.new_index)
