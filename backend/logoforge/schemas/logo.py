"""
LogoForge Backend — Logo, Version & Snapshot Schemas
======================================================

What:  Request/response models for logos and their version history, and the
       snapshot document that versions and templates are built from.
Why:   Keeps the API contract independent from the ORM models; the snapshot
       document is the one serialized format that outlives schema changes.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from logoforge.schemas.common import Page
from logoforge.schemas.layer import LayerCreate, LayerOut


# ══════════════════════════════════════════════════════════════════════════
# Logos
# ══════════════════════════════════════════════════════════════════════════


class LogoCreate(BaseModel):
    """
    A new logo, optionally with its initial layers.

    Layers are inserted all-or-nothing: if any one fails validation or
    persistence, no logo is created.
    """
    model_config = ConfigDict(extra="forbid")

    owner_id: Optional[uuid.UUID] = None
    title: str = Field(min_length=1, max_length=200)
    canvas_w: int = Field(default=1080, ge=1, le=10000)
    canvas_h: int = Field(default=1080, ge=1, le=10000)
    dpi: Optional[int] = Field(default=None, ge=1, le=2400)
    is_template: bool = False
    category_id: Optional[uuid.UUID] = None
    layers: List[LayerCreate] = Field(default_factory=list)


class LogoUpdate(BaseModel):
    """Explicit update struct; unknown keys are rejected, never forwarded to SQL."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    canvas_w: Optional[int] = Field(default=None, ge=1, le=10000)
    canvas_h: Optional[int] = Field(default=None, ge=1, le=10000)
    dpi: Optional[int] = Field(default=None, ge=1, le=2400)
    is_template: Optional[bool] = None
    category_id: Optional[uuid.UUID] = None

    @field_validator("title", "canvas_w", "canvas_h", "is_template")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("field may be omitted but not set to null")
        return v


class LogoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: Optional[uuid.UUID] = None
    title: str
    canvas_w: int
    canvas_h: int
    dpi: Optional[int] = None
    thumbnail_url: Optional[str] = None
    is_template: bool = False
    category_id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LogoDetail(LogoOut):
    """A logo with its full layer stack, bottom (z_index 0) first."""
    layers: List[LayerOut] = Field(default_factory=list)


LogoListResponse = Page[LogoOut]


# ══════════════════════════════════════════════════════════════════════════
# Snapshot document
# ══════════════════════════════════════════════════════════════════════════


class SnapshotDocument(BaseModel):
    """
    Self-contained serialization of a logo and its ordered layers.

    Layers are ordered by z_index ascending and carry their payload inline.
    Asset and font ids are references; the bytes are never copied.
    """
    id: Optional[uuid.UUID] = None
    title: str
    canvas_w: int = Field(ge=1)
    canvas_h: int = Field(ge=1)
    dpi: Optional[int] = None
    thumbnail_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    layers: List[LayerOut] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Versions
# ══════════════════════════════════════════════════════════════════════════


class VersionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    note: Optional[str] = Field(default=None, max_length=2000)


class VersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    logo_id: uuid.UUID
    note: Optional[str] = None
    created_at: datetime


class VersionDetail(VersionOut):
    snapshot: SnapshotDocument


VersionListResponse = Page[VersionOut]
