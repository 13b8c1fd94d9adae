"""
LogoForge Backend — Template & Category Route Handlers
========================================================

What:  Category CRUD, template CRUD and POST /api/templates/{id}/use, which
       creates a new logo from a template for the given owner.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.database import get_db_session
from logoforge.schemas.common import ErrorResponse, Page
from logoforge.schemas.logo import LogoDetail
from logoforge.schemas.template import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    TemplateCreate,
    TemplateOut,
    TemplateUpdate,
    TemplateUseRequest,
)
from logoforge.services.template_service import template_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/templates", tags=["Templates"])


# ── Categories ────────────────────────────────────────────────────────────
# Registered before /{template_id} so "categories" is never parsed as an id


@router.get("/categories", response_model=List[CategoryOut], summary="List categories by name")
async def list_categories(response: Response, db: AsyncSession = Depends(get_db_session)) -> List[CategoryOut]:
    response.headers["Cache-Control"] = "public, max-age=60"
    return await template_service.list_categories(db)


@router.post(
    "/categories",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Name already in use", "model": ErrorResponse}},
    summary="Create a category",
)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db_session)) -> CategoryOut:
    return await template_service.create_category(db, data)


@router.get(
    "/categories/{category_id}",
    response_model=CategoryOut,
    responses={404: {"description": "Category not found", "model": ErrorResponse}},
)
async def get_category(category_id: UUID, db: AsyncSession = Depends(get_db_session)) -> CategoryOut:
    return await template_service.get_category(db, category_id)


@router.patch("/categories/{category_id}", response_model=CategoryOut, summary="Update a category")
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> CategoryOut:
    return await template_service.update_category(db, category_id, data)


@router.delete(
    "/categories/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a category; its logos and templates become uncategorized",
)
async def delete_category(category_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await template_service.delete_category(db, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Templates ─────────────────────────────────────────────────────────────


@router.get("", response_model=Page[TemplateOut], summary="List templates with pagination")
async def list_templates(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100),
    cursor: str | None = Query(default=None),
    category_id: UUID | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200, description="Matches title or description"),
    db: AsyncSession = Depends(get_db_session),
) -> Page[TemplateOut]:
    result = await template_service.list_templates(
        db, limit=limit, cursor=cursor, category_id=category_id, search=search
    )
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "",
    response_model=TemplateOut,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Base logo or category not found", "model": ErrorResponse}},
    summary="Publish a logo as a template",
)
async def create_template(data: TemplateCreate, db: AsyncSession = Depends(get_db_session)) -> TemplateOut:
    return await template_service.create_template(db, data)


@router.get(
    "/{template_id}",
    response_model=TemplateOut,
    responses={404: {"description": "Template not found", "model": ErrorResponse}},
)
async def get_template(template_id: UUID, db: AsyncSession = Depends(get_db_session)) -> TemplateOut:
    return await template_service.get_template(db, template_id)


@router.patch("/{template_id}", response_model=TemplateOut, summary="Update template metadata")
async def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> TemplateOut:
    return await template_service.update_template(db, template_id, data)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a template")
async def delete_template(template_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Response:
    await template_service.delete_template(db, template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{template_id}/use",
    response_model=LogoDetail,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Template not found", "model": ErrorResponse}},
    summary="Create a new logo from a template",
)
async def use_template(
    template_id: UUID,
    data: TemplateUseRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LogoDetail:
    """The new logo is a deep copy; edits never affect the template."""
    return await template_service.use_template(db, template_id, data)
