"""
LogoForge Backend — Asset & Font SQLAlchemy Models
====================================================

What:  ORM models for `assets` (media stored on the media host) and `fonts`.
Why:   Layers reference assets and fonts by id; many logos can share one asset.
       Rendering and reordering never mutate these rows.
Who:   AssetService (CRUD, upload), ExportService (resolving references for render).

Column notes:
    - storage: which media backend holds the bytes ("cloudinary" or "local")
    - provider_id: the backend's own handle, needed for delete/transform/download
    - vector_svg: inline markup for vector assets; icons render it inline
    - palette: hex colors as reported by the media backend, most frequent first
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from logoforge.database import Base
from logoforge.models.enums import AssetKind, db_enum
from logoforge.models.logo import JSONDocument, utcnow


class Asset(Base):
    """An externally stored media object (raster, vector, font file or pattern)."""

    __tablename__ = "assets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[AssetKind] = mapped_column(db_enum(AssetKind, "asset_kind"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    storage: Mapped[str] = mapped_column(String(32), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    provider_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    bytes_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    has_alpha: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    dominant_hex: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    palette: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    vector_svg: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    checksum_sha256: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    meta: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint("bytes_size >= 0", name="ck_assets_bytes_size"),
        Index("idx_assets_kind", "kind"),
        Index("idx_assets_created_by", "created_by"),
        Index("idx_assets_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Asset(id={self.id}, kind={self.kind.value}, name='{self.name}')>"


class Font(Base):
    """A font face; unique per (family, weight, style)."""

    __tablename__ = "fonts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family: Mapped[str] = mapped_column(String(200), nullable=False)
    style: Mapped[str] = mapped_column(String(32), nullable=False, default="normal")
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=400)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    # TEXT[] on PostgreSQL, JSON list elsewhere
    fallbacks: Mapped[Optional[List[str]]] = mapped_column(
        JSON().with_variant(ARRAY(Text()), "postgresql"), nullable=True
    )
    meta: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("family", "weight", "style", name="uq_fonts_family_weight_style"),
        Index("idx_fonts_family", "family"),
    )

    def __repr__(self) -> str:
        return f"<Font(family='{self.family}', weight={self.weight}, style='{self.style}')>"
