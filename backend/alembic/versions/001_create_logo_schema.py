"""Create logo schema

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

What:  Creates assets, fonts, categories, logos, logo_versions, templates,
       layers and the five layer payload tables, with their enum types.
How:   PostgreSQL-first (UUID, JSONB, TEXT[], native enums). Payload tables
       use the owning layer's id as primary key.

Constraint notes:
    - layers (logo_id, z_index) is UNIQUE; there is no CHECK (z_index >= 0)
      because reorders park rows at negative indices between two flushes.
    - logos → layers → payloads and logos → logo_versions cascade on delete.
    - payload asset references do not cascade: an asset in use cannot be
      deleted.

Rollback: downgrade() drops every table and enum type (all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ── Enum types ────────────────────────────────────────────────────────────
ENUMS = {
    "layer_kind": ("BACKGROUND", "TEXT", "ICON", "SHAPE", "IMAGE"),
    "blend_mode": (
        "normal", "multiply", "screen", "overlay", "darken", "lighten", "color-burn",
        "color-dodge", "difference", "exclusion", "hue", "saturation", "color",
        "luminosity", "soft-light", "hard-light",
    ),
    "text_align": ("left", "center", "right", "justify"),
    "text_baseline": ("top", "middle", "bottom", "alphabetic"),
    "stroke_align": ("center", "inside", "outside"),
    "shape_kind": ("rect", "circle", "path", "polygon"),
    "line_cap": ("butt", "round", "square"),
    "line_join": ("miter", "round", "bevel"),
    "image_fit": ("cover", "contain", "fill"),
    "background_mode": ("solid", "gradient", "image"),
    "asset_kind": ("raster", "vector", "font", "pattern"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name)


def _timestamps(with_updated: bool = True):
    columns = [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]
    if with_updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.TIMESTAMP(timezone=True),
                server_default=sa.text("CURRENT_TIMESTAMP"),
                nullable=False,
            )
        )
    return columns


def _uuid_pk():
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _layer_pk():
    return sa.Column(
        "layer_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("layers.id", ondelete="CASCADE"),
        primary_key=True,
    )


def upgrade() -> None:
    # ── Media ─────────────────────────────────────────────────────────────
    op.create_table(
        "assets",
        _uuid_pk(),
        sa.Column("kind", _enum("asset_kind"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("storage", sa.String(32), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("provider_id", sa.Text(), nullable=True),
        sa.Column("mime_type", sa.String(128), nullable=False),
        sa.Column("bytes_size", sa.Integer(), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("has_alpha", sa.Boolean(), nullable=True),
        sa.Column("dominant_hex", sa.String(9), nullable=True),
        sa.Column("palette", postgresql.JSONB(), nullable=True),
        sa.Column("vector_svg", sa.Text(), nullable=True),
        sa.Column("checksum_sha256", sa.String(64), nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("bytes_size >= 0", name="ck_assets_bytes_size"),
    )
    op.create_index("idx_assets_kind", "assets", ["kind"])
    op.create_index("idx_assets_created_by", "assets", ["created_by"])
    op.create_index("idx_assets_created_at", "assets", [sa.text("created_at DESC")])

    op.create_table(
        "fonts",
        _uuid_pk(),
        sa.Column("family", sa.String(200), nullable=False),
        sa.Column("style", sa.String(32), nullable=False, server_default=sa.text("'normal'")),
        sa.Column("weight", sa.Integer(), nullable=False, server_default=sa.text("400")),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("fallbacks", postgresql.ARRAY(sa.Text()), nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("family", "weight", "style", name="uq_fonts_family_weight_style"),
    )
    op.create_index("idx_fonts_family", "fonts", ["family"])

    # ── Catalogue ─────────────────────────────────────────────────────────
    op.create_table(
        "categories",
        _uuid_pk(),
        sa.Column("name", sa.String(120), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "icon_asset_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("assets.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Logos ─────────────────────────────────────────────────────────────
    op.create_table(
        "logos",
        _uuid_pk(),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("canvas_w", sa.Integer(), nullable=False, server_default=sa.text("1080")),
        sa.Column("canvas_h", sa.Integer(), nullable=False, server_default=sa.text("1080")),
        sa.Column("dpi", sa.Integer(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("is_template", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_logos_owner_id", "logos", ["owner_id"])
    op.create_index("idx_logos_category_id", "logos", ["category_id"])
    op.create_index("idx_logos_is_template", "logos", ["is_template"])
    op.create_index("idx_logos_created_at", "logos", [sa.text("created_at DESC")])

    op.create_table(
        "logo_versions",
        _uuid_pk(),
        sa.Column(
            "logo_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("logos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("snapshot", postgresql.JSONB(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_logo_versions_logo_id", "logo_versions", ["logo_id", sa.text("created_at DESC")])

    op.create_table(
        "templates",
        _uuid_pk(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "category_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("preview_url", sa.Text(), nullable=True),
        sa.Column(
            "base_logo_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("logos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_templates_category_id", "templates", ["category_id"])

    # ── Layers ────────────────────────────────────────────────────────────
    op.create_table(
        "layers",
        _uuid_pk(),
        sa.Column(
            "logo_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("logos.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", _enum("layer_kind"), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("z_index", sa.Integer(), nullable=False),
        sa.Column("x_norm", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("y_norm", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("scale", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("rotation_deg", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("anchor_x", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("anchor_y", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("opacity", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("blend_mode", _enum("blend_mode"), nullable=False, server_default=sa.text("'normal'")),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("common_style", postgresql.JSONB(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("logo_id", "z_index", name="uq_layers_logo_z_index"),
        sa.CheckConstraint("x_norm >= 0 AND x_norm <= 1", name="ck_layers_x_norm"),
        sa.CheckConstraint("y_norm >= 0 AND y_norm <= 1", name="ck_layers_y_norm"),
        sa.CheckConstraint("anchor_x >= 0 AND anchor_x <= 1", name="ck_layers_anchor_x"),
        sa.CheckConstraint("anchor_y >= 0 AND anchor_y <= 1", name="ck_layers_anchor_y"),
        sa.CheckConstraint("opacity >= 0 AND opacity <= 1", name="ck_layers_opacity"),
        sa.CheckConstraint("scale > 0", name="ck_layers_scale"),
    )
    op.create_index("idx_layers_logo_id", "layers", ["logo_id"])
    op.create_index("idx_layers_kind", "layers", ["kind"])

    # ── Payloads ──────────────────────────────────────────────────────────
    op.create_table(
        "layer_text",
        _layer_pk(),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "font_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("fonts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("font_size", sa.Float(), nullable=False),
        sa.Column("line_height", sa.Float(), nullable=True),
        sa.Column("letter_spacing", sa.Float(), nullable=True),
        sa.Column("align", _enum("text_align"), nullable=False, server_default=sa.text("'center'")),
        sa.Column("baseline", _enum("text_baseline"), nullable=False, server_default=sa.text("'alphabetic'")),
        sa.Column("fill_hex", sa.String(9), nullable=False, server_default=sa.text("'#000000'")),
        sa.Column("fill_alpha", sa.Float(), nullable=False, server_default=sa.text("1")),
        sa.Column("stroke_hex", sa.String(9), nullable=True),
        sa.Column("stroke_alpha", sa.Float(), nullable=True),
        sa.Column("stroke_width", sa.Float(), nullable=True),
        sa.Column("stroke_align", _enum("stroke_align"), nullable=True),
        sa.Column("gradient", postgresql.JSONB(), nullable=True),
        sa.CheckConstraint("font_size > 0", name="ck_layer_text_font_size"),
        sa.CheckConstraint("fill_alpha >= 0 AND fill_alpha <= 1", name="ck_layer_text_fill_alpha"),
    )

    op.create_table(
        "layer_shape",
        _layer_pk(),
        sa.Column("shape_kind", _enum("shape_kind"), nullable=False),
        sa.Column("svg_path", sa.Text(), nullable=True),
        sa.Column("points", postgresql.JSONB(), nullable=True),
        sa.Column("rx", sa.Float(), nullable=True),
        sa.Column("ry", sa.Float(), nullable=True),
        sa.Column("fill_hex", sa.String(9), nullable=True),
        sa.Column("fill_alpha", sa.Float(), nullable=True),
        sa.Column("gradient", postgresql.JSONB(), nullable=True),
        sa.Column("stroke_hex", sa.String(9), nullable=True),
        sa.Column("stroke_alpha", sa.Float(), nullable=True),
        sa.Column("stroke_width", sa.Float(), nullable=True),
        sa.Column("stroke_dash", postgresql.JSONB(), nullable=True),
        sa.Column("line_cap", _enum("line_cap"), nullable=True),
        sa.Column("line_join", _enum("line_join"), nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
    )

    op.create_table(
        "layer_icon",
        _layer_pk(),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("tint_hex", sa.String(9), nullable=True),
        sa.Column("tint_alpha", sa.Float(), nullable=True),
        sa.Column("allow_recolor", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "layer_image",
        _layer_pk(),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("crop", postgresql.JSONB(), nullable=True),
        sa.Column("fit", _enum("image_fit"), nullable=True),
        sa.Column("rounding", sa.Float(), nullable=True),
        sa.Column("blur", sa.Float(), nullable=True),
        sa.Column("brightness", sa.Float(), nullable=True),
        sa.Column("contrast", sa.Float(), nullable=True),
    )

    op.create_table(
        "layer_background",
        _layer_pk(),
        sa.Column("mode", _enum("background_mode"), nullable=False),
        sa.Column("fill_hex", sa.String(9), nullable=True),
        sa.Column("fill_alpha", sa.Float(), nullable=True),
        sa.Column("gradient", postgresql.JSONB(), nullable=True),
        sa.Column("asset_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("assets.id"), nullable=True),
        sa.Column("repeat", sa.String(32), nullable=True),
        sa.Column("position", sa.String(64), nullable=True),
        sa.Column("size", sa.String(64), nullable=True),
    )

    # Payload lookups by asset (asset delete checks, usage queries)
    op.create_index("idx_layer_icon_asset_id", "layer_icon", ["asset_id"])
    op.create_index("idx_layer_image_asset_id", "layer_image", ["asset_id"])
    op.create_index("idx_layer_background_asset_id", "layer_background", ["asset_id"])


def downgrade() -> None:
    """Drops everything created by upgrade(), dependants first."""
    for table in (
        "layer_background",
        "layer_image",
        "layer_icon",
        "layer_shape",
        "layer_text",
        "layers",
        "templates",
        "logo_versions",
        "logos",
        "categories",
        "fonts",
        "assets",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        sa.Enum(name=name).drop(bind, checkfirst=True)
