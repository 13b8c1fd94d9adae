"""
LogoForge Backend — Export Schemas
====================================
"""

import uuid
from typing import Optional

from pydantic import BaseModel, Field


class ExportResponse(BaseModel):
    """A rasterized rendition hosted on the media host."""
    logo_id: uuid.UUID
    download_url: str
    format: str = "png"
    width: int
    height: int
    dpi: Optional[int] = None
    quality: int
    file_size: Optional[int] = Field(default=None, description="Bytes of the uploaded vector source")


class ThumbnailResponse(BaseModel):
    logo_id: uuid.UUID
    thumbnail_url: str
    width: int
    height: int
