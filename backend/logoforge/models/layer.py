"""
LogoForge Backend — Layer SQLAlchemy Models
=============================================

What:  ORM models for `layers` and the five kind-specific payload tables.
Why:   Every layer carries the common transform/style columns; everything that
       depends on its kind lives in exactly one payload row keyed by layer_id.
How:   One-to-one relationships from Layer to each payload table, loaded with
       selectin so a logo's layers arrive with their payloads in two queries.

Invariants enforced here:
    - (logo_id, z_index) is unique. Density ({0..N-1}) is maintained by
      ZOrderService; z_index is briefly negative while a reorder is applied,
      so it carries no CHECK (z_index >= 0).
    - Normalized columns are CHECK-constrained to [0, 1]; scale > 0.
    - Deleting a layer deletes its payload (FK ON DELETE CASCADE + ORM cascade).
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text as sql_text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from logoforge.database import Base
from logoforge.models.enums import (
    BackgroundMode,
    BlendMode,
    ImageFit,
    LayerKind,
    LineCap,
    LineJoin,
    ShapeKind,
    StrokeAlign,
    TextAlign,
    TextBaseline,
    db_enum,
)
from logoforge.models.logo import JSONDocument, utcnow

if TYPE_CHECKING:
    from logoforge.models.logo import Logo


def _payload_relationship(target: str):
    return relationship(
        target,
        uselist=False,
        back_populates="layer",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Layer(Base):
    """
    One positioned, styled element of a logo.

    Coordinates are normalized to the canvas (resolution independent); the
    renderer multiplies them by the target size.
    """

    __tablename__ = "layers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    logo_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("logos.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[LayerKind] = mapped_column(db_enum(LayerKind, "layer_kind"), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    z_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Transform ─────────────────────────────────────────────────────────
    x_norm: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    y_norm: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    scale: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    rotation_deg: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default=sql_text("0")
    )
    anchor_x: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.5, server_default=sql_text("0.5")
    )
    anchor_y: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.5, server_default=sql_text("0.5")
    )

    # ── Compositing ───────────────────────────────────────────────────────
    opacity: Mapped[float] = mapped_column(
        Float, nullable=False, default=1.0, server_default=sql_text("1")
    )
    blend_mode: Mapped[BlendMode] = mapped_column(
        db_enum(BlendMode, "blend_mode"), nullable=False, default=BlendMode.NORMAL
    )
    is_visible: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sql_text("true")
    )
    # Editor hint only; the backend does not refuse edits to locked layers
    is_locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sql_text("false")
    )
    common_style: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sql_text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=sql_text("CURRENT_TIMESTAMP"),
    )

    logo: Mapped["Logo"] = relationship(back_populates="layers")

    # ── Payloads (exactly one is set, matching `kind`) ────────────────────
    text: Mapped[Optional["LayerText"]] = _payload_relationship("LayerText")
    shape: Mapped[Optional["LayerShape"]] = _payload_relationship("LayerShape")
    icon: Mapped[Optional["LayerIcon"]] = _payload_relationship("LayerIcon")
    image: Mapped[Optional["LayerImage"]] = _payload_relationship("LayerImage")
    background: Mapped[Optional["LayerBackground"]] = _payload_relationship("LayerBackground")

    __table_args__ = (
        UniqueConstraint("logo_id", "z_index", name="uq_layers_logo_z_index"),
        CheckConstraint("x_norm >= 0 AND x_norm <= 1", name="ck_layers_x_norm"),
        CheckConstraint("y_norm >= 0 AND y_norm <= 1", name="ck_layers_y_norm"),
        CheckConstraint("anchor_x >= 0 AND anchor_x <= 1", name="ck_layers_anchor_x"),
        CheckConstraint("anchor_y >= 0 AND anchor_y <= 1", name="ck_layers_anchor_y"),
        CheckConstraint("opacity >= 0 AND opacity <= 1", name="ck_layers_opacity"),
        CheckConstraint("scale > 0", name="ck_layers_scale"),
        Index("idx_layers_logo_id", "logo_id"),
        Index("idx_layers_kind", "kind"),
    )

    @property
    def payload_row(self) -> Optional["PayloadRow"]:
        """
        The payload row matching this layer's kind.

        Only the relationship named by `kind` is touched, so a freshly built
        layer never triggers a lazy load of its other (unset) payloads.
        """
        return getattr(self, PAYLOAD_ATTRIBUTE[self.kind])

    def __repr__(self) -> str:
        return f"<Layer(id={self.id}, kind={self.kind.value}, z_index={self.z_index})>"


# ══════════════════════════════════════════════════════════════════════════
# Payload tables: primary key is the owning layer's id
# ══════════════════════════════════════════════════════════════════════════


def _layer_fk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, ForeignKey("layers.id", ondelete="CASCADE"), primary_key=True)


class LayerText(Base):
    __tablename__ = "layer_text"

    layer_id: Mapped[uuid.UUID] = _layer_fk()
    content: Mapped[str] = mapped_column(Text, nullable=False)
    font_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("fonts.id", ondelete="SET NULL"), nullable=True
    )
    font_size: Mapped[float] = mapped_column(Float, nullable=False)
    line_height: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    letter_spacing: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    align: Mapped[TextAlign] = mapped_column(
        db_enum(TextAlign, "text_align"), nullable=False, default=TextAlign.CENTER
    )
    baseline: Mapped[TextBaseline] = mapped_column(
        db_enum(TextBaseline, "text_baseline"), nullable=False, default=TextBaseline.ALPHABETIC
    )
    fill_hex: Mapped[str] = mapped_column(String(9), nullable=False, default="#000000")
    fill_alpha: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    stroke_hex: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    stroke_alpha: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stroke_width: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stroke_align: Mapped[Optional[StrokeAlign]] = mapped_column(
        db_enum(StrokeAlign, "stroke_align"), nullable=True
    )
    gradient: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)

    layer: Mapped["Layer"] = relationship(back_populates="text")

    __table_args__ = (
        CheckConstraint("font_size > 0", name="ck_layer_text_font_size"),
        CheckConstraint("fill_alpha >= 0 AND fill_alpha <= 1", name="ck_layer_text_fill_alpha"),
    )


class LayerShape(Base):
    __tablename__ = "layer_shape"

    layer_id: Mapped[uuid.UUID] = _layer_fk()
    shape_kind: Mapped[ShapeKind] = mapped_column(db_enum(ShapeKind, "shape_kind"), nullable=False)
    svg_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    rx: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ry: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fill_hex: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    fill_alpha: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gradient: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    stroke_hex: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    stroke_alpha: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stroke_width: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    stroke_dash: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    line_cap: Mapped[Optional[LineCap]] = mapped_column(db_enum(LineCap, "line_cap"), nullable=True)
    line_join: Mapped[Optional[LineJoin]] = mapped_column(
        db_enum(LineJoin, "line_join"), nullable=True
    )
    meta: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)

    layer: Mapped["Layer"] = relationship(back_populates="shape")


class LayerIcon(Base):
    __tablename__ = "layer_icon"

    layer_id: Mapped[uuid.UUID] = _layer_fk()
    asset_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False)
    tint_hex: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    tint_alpha: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    allow_recolor: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=sql_text("true")
    )

    layer: Mapped["Layer"] = relationship(back_populates="icon")

    __table_args__ = (Index("idx_layer_icon_asset_id", "asset_id"),)


class LayerImage(Base):
    __tablename__ = "layer_image"

    layer_id: Mapped[uuid.UUID] = _layer_fk()
    asset_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("assets.id"), nullable=False)
    crop: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    fit: Mapped[Optional[ImageFit]] = mapped_column(db_enum(ImageFit, "image_fit"), nullable=True)
    rounding: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    blur: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    brightness: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    contrast: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    layer: Mapped["Layer"] = relationship(back_populates="image")

    __table_args__ = (Index("idx_layer_image_asset_id", "asset_id"),)


class LayerBackground(Base):
    __tablename__ = "layer_background"

    layer_id: Mapped[uuid.UUID] = _layer_fk()
    mode: Mapped[BackgroundMode] = mapped_column(
        db_enum(BackgroundMode, "background_mode"), nullable=False
    )
    fill_hex: Mapped[Optional[str]] = mapped_column(String(9), nullable=True)
    fill_alpha: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gradient: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    asset_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("assets.id"), nullable=True
    )
    repeat: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    layer: Mapped["Layer"] = relationship(back_populates="background")

    __table_args__ = (Index("idx_layer_background_asset_id", "asset_id"),)


PayloadRow = Union[LayerText, LayerShape, LayerIcon, LayerImage, LayerBackground]

# What: Layer relationship attribute and payload table for each kind
PAYLOAD_ATTRIBUTE = {
    LayerKind.TEXT: "text",
    LayerKind.SHAPE: "shape",
    LayerKind.ICON: "icon",
    LayerKind.IMAGE: "image",
    LayerKind.BACKGROUND: "background",
}

PAYLOAD_ROW_CLASS = {
    LayerKind.TEXT: LayerText,
    LayerKind.SHAPE: LayerShape,
    LayerKind.ICON: LayerIcon,
    LayerKind.IMAGE: LayerImage,
    LayerKind.BACKGROUND: LayerBackground,
}
