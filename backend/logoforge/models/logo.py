"""
LogoForge Backend — Logo & Version SQLAlchemy Models
======================================================

What:  ORM models for the `logos` and `logo_versions` tables.
Why:   A logo is the aggregate root: it owns its layers and its version
       history, and deleting it removes both.
How:   Inherits from DeclarativeBase; Alembic reads these for migrations.
Who:   Used by LogoService, LayerService, TemplateService and ExportService.

Table Design Rationale:
    - canvas_w / canvas_h: pixel size of the design surface, 1080×1080 default
    - dpi: optional print resolution carried through exports
    - thumbnail_url: written only by the thumbnail operation
    - is_template: base logos of templates are flagged so the editor can hide them
    - logo_versions.snapshot: a self-contained JSON document (see services/snapshot.py);
      versions are append-only and never updated in place
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from logoforge.database import Base

if TYPE_CHECKING:
    from logoforge.models.layer import Layer
    from logoforge.models.template import Category


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Logo(Base):
    """
    A composable logo: canvas settings plus an ordered stack of layers.

    Query Patterns:
        - List an owner's logos: WHERE owner_id = :owner ORDER BY created_at DESC
        - Load for render/export: by id, layers eagerly loaded ordered by z_index
    """

    __tablename__ = "logos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)

    # ── Canvas ────────────────────────────────────────────────────────────
    canvas_w: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1080, server_default=text("1080")
    )
    canvas_h: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1080, server_default=text("1080")
    )
    dpi: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Templating ────────────────────────────────────────────────────────
    is_template: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    # ── Timestamps ────────────────────────────────────────────────────────
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

    # ── Relationships ─────────────────────────────────────────────────────
    # ORM-level cascades mirror the ON DELETE CASCADE foreign keys so the
    # behaviour is identical on databases without enforced foreign keys.
    layers: Mapped[List["Layer"]] = relationship(
        back_populates="logo",
        cascade="all, delete-orphan",
        order_by="Layer.z_index",
        lazy="selectin",
    )
    versions: Mapped[List["LogoVersion"]] = relationship(
        back_populates="logo",
        cascade="all, delete-orphan",
        order_by="LogoVersion.created_at.desc()",
    )
    category: Mapped[Optional["Category"]] = relationship(back_populates="logos")

    __table_args__ = (
        Index("idx_logos_owner_id", "owner_id"),
        Index("idx_logos_category_id", "category_id"),
        Index("idx_logos_is_template", "is_template"),
        Index("idx_logos_created_at", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<Logo(id={self.id}, title='{self.title}', {self.canvas_w}x{self.canvas_h})>"


class LogoVersion(Base):
    """Immutable snapshot of a logo at a point in time."""

    __tablename__ = "logo_versions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    logo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("logos.id", ondelete="CASCADE"), nullable=False
    )
    snapshot: Mapped[dict] = mapped_column(JSONDocument, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    logo: Mapped["Logo"] = relationship(back_populates="versions")

    __table_args__ = (
        Index("idx_logo_versions_logo_id", "logo_id", created_at.desc()),
    )

    def __repr__(self) -> str:
        return f"<LogoVersion(id={self.id}, logo_id={self.logo_id}, created_at='{self.created_at}')>"
