"""
LogoForge Backend — Category & Template SQLAlchemy Models
===========================================================

What:  ORM models for `categories` and `templates`.
Why:   A template is a reusable base logo; using it deep-copies the base logo's
       layers into a brand-new logo while sharing assets by reference.
Who:   TemplateService.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from logoforge.database import Base
from logoforge.models.logo import utcnow

if TYPE_CHECKING:
    from logoforge.models.logo import Logo


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon_asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("assets.id", ondelete="SET NULL"), nullable=True
    )
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

    logos: Mapped[List["Logo"]] = relationship(back_populates="category")
    templates: Mapped[List["Template"]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}')>"


class Template(Base):
    __tablename__ = "templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    preview_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_logo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("logos.id", ondelete="CASCADE"), nullable=False
    )
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

    category: Mapped[Optional["Category"]] = relationship(back_populates="templates")
    base_logo: Mapped["Logo"] = relationship()

    __table_args__ = (
        Index("idx_templates_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Template(id={self.id}, title='{self.title}')>"
