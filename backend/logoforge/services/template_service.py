"""
LogoForge Backend — Template & Category Service
=================================================

What:  Category CRUD, template CRUD, and instantiating a template into a new,
       independent logo.
Why:   A template is a published logo; using it must produce a deep copy so
       later edits on either side never leak into the other.
How:   Template use encodes the base logo into a snapshot document and
       decodes it back with a new owner and title. The copy gets fresh layer
       and payload rows; assets and fonts are shared by reference.

Template use flow:
    ┌──────────────┐   ┌────────────────┐   ┌──────────────────┐
    │ base logo +  │──▶│ encode → decode │──▶│ create_from()     │──▶ COMMIT
    │ its layers   │   │ (new identity)  │   │ (all-or-nothing)  │
    └──────────────┘   └────────────────┘   └──────────────────┘
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.exceptions import DatabaseError, NotFoundError, ValidationError
from logoforge.models.template import Category, Template
from logoforge.schemas.common import Page
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
from logoforge.services import snapshot
from logoforge.services.conversion import layers_to_schema, logo_to_detail
from logoforge.services.logo_service import logo_service, parse_cursor

logger = logging.getLogger(__name__)


class TemplateService:

    # ── Categories ────────────────────────────────────────────────────────

    async def list_categories(self, db: AsyncSession) -> List[CategoryOut]:
        result = await db.execute(select(Category).order_by(Category.name))
        return [CategoryOut.model_validate(category) for category in result.scalars().all()]

    async def _get_category_row(self, db: AsyncSession, category_id: uuid.UUID) -> Category:
        category = await db.get(Category, category_id)
        if category is None:
            raise NotFoundError(resource="category", resource_id=str(category_id))
        return category

    async def get_category(self, db: AsyncSession, category_id: uuid.UUID) -> CategoryOut:
        return CategoryOut.model_validate(await self._get_category_row(db, category_id))

    async def _ensure_name_free(self, db: AsyncSession, name: str, exclude: Optional[uuid.UUID] = None) -> None:
        query = select(Category.id).where(Category.name == name)
        if exclude is not None:
            query = query.where(Category.id != exclude)
        if (await db.execute(query)).first() is not None:
            raise ValidationError(message=f"Category '{name}' already exists", field="name")

    async def create_category(self, db: AsyncSession, data: CategoryCreate) -> CategoryOut:
        await self._ensure_name_free(db, data.name)
        category = Category(id=uuid.uuid4(), **data.model_dump())
        db.add(category)
        await db.flush()
        logger.info("Category created: %s (%s)", category.id, category.name)
        return CategoryOut.model_validate(category)

    async def update_category(self, db: AsyncSession, category_id: uuid.UUID, data: CategoryUpdate) -> CategoryOut:
        category = await self._get_category_row(db, category_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            await self._ensure_name_free(db, changes["name"], exclude=category_id)
        for field, value in changes.items():
            setattr(category, field, value)
        await db.flush()
        return CategoryOut.model_validate(category)

    async def delete_category(self, db: AsyncSession, category_id: uuid.UUID) -> None:
        """Logos and templates in the category keep existing, uncategorized."""
        category = await self._get_category_row(db, category_id)
        await db.delete(category)
        await db.flush()
        logger.info("Category %s deleted", category_id)

    # ── Templates ─────────────────────────────────────────────────────────

    async def list_templates(
        self,
        db: AsyncSession,
        limit: int = 20,
        cursor: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
    ) -> Page[TemplateOut]:
        """Newest first; `search` matches title or description, case-insensitive."""
        try:
            filters = []
            if category_id is not None:
                filters.append(Template.category_id == category_id)
            if search:
                pattern = f"%{search}%"
                filters.append(Template.title.ilike(pattern) | Template.description.ilike(pattern))

            query = select(Template).where(*filters)
            cursor_dt = parse_cursor(cursor)
            if cursor_dt:
                query = query.where(Template.created_at < cursor_dt)
            query = query.order_by(desc(Template.created_at)).limit(limit + 1)

            templates = list((await db.execute(query)).scalars().all())
            total_count = (await db.execute(select(func.count(Template.id)).where(*filters))).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Database error listing templates: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve templates. Please try again.",
                context={"error_type": type(e).__name__},
            )

        has_more = len(templates) > limit
        templates = templates[:limit]
        return Page[TemplateOut](
            items=[TemplateOut.model_validate(template) for template in templates],
            total_count=total_count,
            next_cursor=templates[-1].created_at.isoformat() if has_more and templates else None,
            has_more=has_more,
        )

    async def _get_template_row(self, db: AsyncSession, template_id: uuid.UUID) -> Template:
        template = await db.get(Template, template_id)
        if template is None:
            raise NotFoundError(resource="template", resource_id=str(template_id))
        return template

    async def get_template(self, db: AsyncSession, template_id: uuid.UUID) -> TemplateOut:
        return TemplateOut.model_validate(await self._get_template_row(db, template_id))

    async def create_template(self, db: AsyncSession, data: TemplateCreate) -> TemplateOut:
        """Publish an existing logo; the logo is flagged as a template."""
        base = await logo_service.get_row(db, data.base_logo_id)
        if data.category_id is not None:
            await self._get_category_row(db, data.category_id)
        base.is_template = True
        template = Template(id=uuid.uuid4(), **data.model_dump())
        db.add(template)
        await db.flush()
        logger.info("Template %s created from logo %s", template.id, base.id)
        return TemplateOut.model_validate(template)

    async def update_template(self, db: AsyncSession, template_id: uuid.UUID, data: TemplateUpdate) -> TemplateOut:
        template = await self._get_template_row(db, template_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("category_id") is not None:
            await self._get_category_row(db, changes["category_id"])
        if "title" in changes and changes["title"] is None:
            raise ValidationError(message="title may be omitted but not set to null", field="title")
        for field, value in changes.items():
            setattr(template, field, value)
        await db.flush()
        return TemplateOut.model_validate(template)

    async def delete_template(self, db: AsyncSession, template_id: uuid.UUID) -> None:
        """Removes the template entry; its base logo stays."""
        template = await self._get_template_row(db, template_id)
        await db.delete(template)
        await db.flush()
        logger.info("Template %s deleted", template_id)

    async def use_template(self, db: AsyncSession, template_id: uuid.UUID, data: TemplateUseRequest) -> LogoDetail:
        """
        Create a new logo for `data.owner_id` from a template.

        Canvas size, dpi and every layer (with its payload) are copied;
        assets and fonts are referenced, not duplicated.
        """
        template = await self._get_template_row(db, template_id)
        base = await logo_service.get_row(db, template.base_logo_id)
        document = snapshot.encode(base, layers_to_schema(base.layers))
        new_logo = snapshot.decode(document, owner_id=data.owner_id, title=data.title)
        new_logo = new_logo.model_copy(update={"category_id": template.category_id})

        logo = await logo_service.create_from(db, new_logo)
        logger.info(
            "Logo %s created from template %s for owner %s (%d layers)",
            logo.id, template_id, data.owner_id, len(new_logo.layers),
        )
        return logo_to_detail(logo)


# ── Singleton Instance ────────────────────────────────────────────────────
template_service = TemplateService()
