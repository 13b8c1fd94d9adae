"""
LogoForge Backend — Asset & Font Schemas
==========================================

What:  Request/response models for media assets, fonts, signed direct uploads
       and download links.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from logoforge.models.enums import AssetKind
from logoforge.schemas.common import Page
from logoforge.schemas.layer import HexColor


class AssetCreate(BaseModel):
    """
    Registers an asset that already lives on the media host (for example after
    a signed direct upload from the browser).
    """
    model_config = ConfigDict(extra="forbid")

    kind: AssetKind
    name: str = Field(min_length=1, max_length=500)
    storage: str = Field(default="cloudinary", max_length=32)
    url: str = Field(min_length=1)
    provider_id: Optional[str] = None
    mime_type: str = Field(min_length=1, max_length=128)
    bytes_size: Optional[int] = Field(default=None, ge=0)
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    has_alpha: Optional[bool] = None
    dominant_hex: Optional[HexColor] = None
    palette: Optional[List[Any]] = None
    vector_svg: Optional[str] = None
    checksum_sha256: Optional[str] = Field(default=None, min_length=64, max_length=64)
    meta: Optional[Dict[str, Any]] = None
    created_by: Optional[uuid.UUID] = None


class AssetUpdate(BaseModel):
    """Only descriptive metadata is editable; the stored bytes are immutable."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    dominant_hex: Optional[HexColor] = None
    palette: Optional[List[Any]] = None
    meta: Optional[Dict[str, Any]] = None


class AssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    kind: AssetKind
    name: str
    storage: str
    url: str
    provider_id: Optional[str] = None
    mime_type: str
    bytes_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    has_alpha: Optional[bool] = None
    dominant_hex: Optional[str] = None
    palette: Optional[List[Any]] = None
    vector_svg: Optional[str] = None
    checksum_sha256: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


AssetListResponse = Page[AssetOut]


class SignUploadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    folder: Optional[str] = Field(default=None, max_length=200)
    public_id: Optional[str] = Field(default=None, max_length=200)
    resource_type: str = Field(default="auto", pattern=r"^(auto|image|video|raw)$")


class SignedUploadResponse(BaseModel):
    """Everything the browser needs to POST a file straight to the media host."""
    upload_url: str
    api_key: Optional[str] = None
    timestamp: int
    signature: str
    folder: str
    public_id: Optional[str] = None
    resource_type: str


class DownloadResponse(BaseModel):
    url: str
    expires_at: int = Field(description="Unix timestamp after which the link stops working")


# ══════════════════════════════════════════════════════════════════════════
# Fonts
# ══════════════════════════════════════════════════════════════════════════


class FontCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    family: str = Field(min_length=1, max_length=200)
    style: str = Field(default="normal", max_length=32)
    weight: int = Field(default=400, ge=1, le=1000)
    url: str = Field(min_length=1)
    fallbacks: Optional[List[str]] = None
    meta: Optional[Dict[str, Any]] = None


class FontOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    family: str
    style: str
    weight: int
    url: str
    fallbacks: Optional[List[str]] = None
    meta: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
