"""
LogoForge Backend — Category & Template Schemas
=================================================
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    icon_asset_id: Optional[uuid.UUID] = None


class CategoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    icon_asset_id: Optional[uuid.UUID] = None


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    icon_asset_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None


class TemplateCreate(BaseModel):
    """Publishes an existing logo as a template; the logo becomes its base."""
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    preview_url: Optional[str] = None
    base_logo_id: uuid.UUID


class TemplateUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    preview_url: Optional[str] = None


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    category_id: Optional[uuid.UUID] = None
    preview_url: Optional[str] = None
    base_logo_id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateUseRequest(BaseModel):
    """Owner and title of the logo created from the template."""
    model_config = ConfigDict(extra="forbid")

    owner_id: uuid.UUID
    title: str = Field(min_length=1, max_length=200)
