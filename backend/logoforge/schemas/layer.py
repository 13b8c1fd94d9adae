"""
LogoForge Backend — Layer Model (Pydantic Schemas)
====================================================

What:  Typed value types for layers, their five kind-specific payloads and the
       styles they share, plus the validation rules every layer must satisfy.
Why:   The renderer, the snapshot codec and the services all consume the same
       values; validating once here means none of them re-checks ranges.
How:   The payload is a tagged union discriminated by `kind`, so a layer can
       only carry the payload shape its kind declares. Consumers dispatch on
       the payload type exhaustively (see services/renderer.py).

Validation contract:
    - kind must match the single payload's kind
    - normalized fields (x_norm, y_norm, anchor_x, anchor_y, opacity, alphas,
      gradient offsets) lie in [0, 1]; scale > 0; font_size > 0
    - hex colors are #RGB or #RRGGBB
    - gradient stops are at least two and ordered by ascending offset
    - within one submitted layer list, z_index values never collide

    Request bodies that break these rules are rejected by FastAPI (422).
    Documents validated outside a request (snapshots, templates, service
    input) go through `parse_layer` / `validate_layer_set`, which raise the
    application's ValidationError (400) naming the offending field.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from logoforge.exceptions import ValidationError
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
)

# ── Shared field types ────────────────────────────────────────────────────
HexColor = Annotated[str, Field(pattern=r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")]
UnitFloat = Annotated[float, Field(ge=0.0, le=1.0)]


# ══════════════════════════════════════════════════════════════════════════
# Styles
# ══════════════════════════════════════════════════════════════════════════


class GradientStop(BaseModel):
    offset: UnitFloat
    hex: HexColor
    alpha: UnitFloat = 1.0


class Gradient(BaseModel):
    """
    Linear gradient: `angle` in degrees (0 = left→right, 90 = top→bottom).

    Without an angle the gradient runs diagonally from the top-left corner to
    the bottom-right corner.
    """

    type: Literal["linear"] = "linear"
    angle: Optional[float] = None
    stops: List[GradientStop] = Field(min_length=2)

    @field_validator("stops")
    @classmethod
    def validate_stop_order(cls, stops: List[GradientStop]) -> List[GradientStop]:
        """Stops are stored, and rendered, in ascending offset order."""
        offsets = [stop.offset for stop in stops]
        if offsets != sorted(offsets):
            raise ValueError("gradient stops must be ordered by ascending offset")
        return stops


class Shadow(BaseModel):
    dx: float = 0.0
    dy: float = 0.0
    blur: float = Field(default=0.0, ge=0.0)
    hex: HexColor = "#000000"
    alpha: UnitFloat = 0.5


class CommonStyle(BaseModel):
    """Styles applicable to every layer kind."""

    shadow: Optional[Shadow] = None


class CropRect(BaseModel):
    """Crop window as fractions of the source image."""

    x: UnitFloat = 0.0
    y: UnitFloat = 0.0
    w: float = Field(default=1.0, gt=0.0, le=1.0)
    h: float = Field(default=1.0, gt=0.0, le=1.0)


# ══════════════════════════════════════════════════════════════════════════
# Payloads: one per layer kind
# ══════════════════════════════════════════════════════════════════════════


class TextPayload(BaseModel):
    kind: Literal["TEXT"] = "TEXT"
    content: str
    font_id: Optional[uuid.UUID] = None
    font_size: float = Field(gt=0)
    line_height: Optional[float] = Field(default=None, gt=0)
    letter_spacing: Optional[float] = None
    align: TextAlign = TextAlign.CENTER
    baseline: TextBaseline = TextBaseline.ALPHABETIC
    fill_hex: HexColor = "#000000"
    fill_alpha: UnitFloat = 1.0
    stroke_hex: Optional[HexColor] = None
    stroke_alpha: Optional[UnitFloat] = None
    stroke_width: Optional[float] = Field(default=None, ge=0)
    stroke_align: Optional[StrokeAlign] = None
    gradient: Optional[Gradient] = None


class ShapePayload(BaseModel):
    """
    A vector primitive drawn inside a local box.

    The box is 100×100 unless `meta` carries numeric `width`/`height`.
    `points` is either a list of [x, y] pairs or a raw SVG points string.
    """

    kind: Literal["SHAPE"] = "SHAPE"
    shape_kind: ShapeKind
    svg_path: Optional[str] = None
    points: Optional[Union[List[List[float]], str]] = None
    rx: Optional[float] = Field(default=None, ge=0)
    ry: Optional[float] = Field(default=None, ge=0)
    fill_hex: Optional[HexColor] = None
    fill_alpha: Optional[UnitFloat] = None
    gradient: Optional[Gradient] = None
    stroke_hex: Optional[HexColor] = None
    stroke_alpha: Optional[UnitFloat] = None
    stroke_width: Optional[float] = Field(default=None, ge=0)
    stroke_dash: Optional[List[float]] = None
    line_cap: Optional[LineCap] = None
    line_join: Optional[LineJoin] = None
    meta: Optional[Dict[str, Any]] = None


class IconPayload(BaseModel):
    kind: Literal["ICON"] = "ICON"
    asset_id: uuid.UUID
    tint_hex: Optional[HexColor] = None
    tint_alpha: Optional[UnitFloat] = None
    allow_recolor: bool = True


class ImagePayload(BaseModel):
    kind: Literal["IMAGE"] = "IMAGE"
    asset_id: uuid.UUID
    crop: Optional[CropRect] = None
    fit: Optional[ImageFit] = None
    rounding: Optional[float] = Field(default=None, ge=0)
    blur: Optional[float] = Field(default=None, ge=0)
    brightness: Optional[float] = Field(default=None, ge=0)
    contrast: Optional[float] = Field(default=None, ge=0)


class BackgroundPayload(BaseModel):
    kind: Literal["BACKGROUND"] = "BACKGROUND"
    mode: BackgroundMode
    fill_hex: Optional[HexColor] = None
    fill_alpha: Optional[UnitFloat] = None
    gradient: Optional[Gradient] = None
    asset_id: Optional[uuid.UUID] = None
    repeat: Optional[str] = None
    position: Optional[str] = None
    size: Optional[str] = None


LayerPayload = Annotated[
    Union[TextPayload, ShapePayload, IconPayload, ImagePayload, BackgroundPayload],
    Field(discriminator="kind"),
]

PAYLOAD_MODEL = {
    LayerKind.TEXT: TextPayload,
    LayerKind.SHAPE: ShapePayload,
    LayerKind.ICON: IconPayload,
    LayerKind.IMAGE: ImagePayload,
    LayerKind.BACKGROUND: BackgroundPayload,
}


# ══════════════════════════════════════════════════════════════════════════
# Layers
# ══════════════════════════════════════════════════════════════════════════


class LayerFields(BaseModel):
    """Transform and compositing fields shared by every layer kind."""

    name: Optional[str] = Field(default=None, max_length=200)
    x_norm: UnitFloat = 0.5
    y_norm: UnitFloat = 0.5
    scale: float = Field(default=1.0, gt=0)
    rotation_deg: float = 0.0
    anchor_x: UnitFloat = 0.5
    anchor_y: UnitFloat = 0.5
    opacity: UnitFloat = 1.0
    blend_mode: BlendMode = BlendMode.NORMAL
    is_visible: bool = True
    is_locked: bool = False
    common_style: Optional[CommonStyle] = None


def _check_kind_matches(kind: LayerKind, payload: BaseModel) -> None:
    if payload.kind != kind:
        raise ValueError(
            f"payload kind '{payload.kind}' does not match layer kind '{kind.value}'"
        )


class LayerCreate(LayerFields):
    """
    What:  A new layer, as submitted for insertion or inside a logo/snapshot.
    z_index: None appends on top; an explicit index inserts there and shifts
             the layers at or above it up by one.
    """

    model_config = ConfigDict(extra="forbid")

    kind: LayerKind
    z_index: Optional[int] = Field(default=None, ge=0)
    payload: LayerPayload

    @model_validator(mode="after")
    def validate_payload_kind(self) -> "LayerCreate":
        _check_kind_matches(self.kind, self.payload)
        return self


class LayerOut(LayerFields):
    """A stored layer with its payload inline."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    logo_id: uuid.UUID
    kind: LayerKind
    z_index: int
    payload: LayerPayload
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_payload_kind(self) -> "LayerOut":
        _check_kind_matches(self.kind, self.payload)
        return self


class LayerUpdate(BaseModel):
    """
    Explicit update struct for the common layer fields.

    Unknown keys are rejected; only fields the client actually sent are written.
    kind and z_index are not updatable here (reorder has its own operation).
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=200)
    x_norm: Optional[UnitFloat] = None
    y_norm: Optional[UnitFloat] = None
    scale: Optional[float] = Field(default=None, gt=0)
    rotation_deg: Optional[float] = None
    anchor_x: Optional[UnitFloat] = None
    anchor_y: Optional[UnitFloat] = None
    opacity: Optional[UnitFloat] = None
    blend_mode: Optional[BlendMode] = None
    is_visible: Optional[bool] = None
    is_locked: Optional[bool] = None
    common_style: Optional[CommonStyle] = None

    @field_validator(
        "x_norm", "y_norm", "scale", "rotation_deg", "anchor_x", "anchor_y",
        "opacity", "blend_mode", "is_visible", "is_locked",
    )
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        """These columns are NOT NULL; omit the key instead of sending null."""
        if v is None:
            raise ValueError("field may be omitted but not set to null")
        return v


# ── Payload update structs ────────────────────────────────────────────────
# Each mirrors its payload with every field optional. The merged result is
# re-validated against the full payload model before anything is written.


class TextPayloadUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["TEXT"] = "TEXT"
    content: Optional[str] = None
    font_id: Optional[uuid.UUID] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    line_height: Optional[float] = Field(default=None, gt=0)
    letter_spacing: Optional[float] = None
    align: Optional[TextAlign] = None
    baseline: Optional[TextBaseline] = None
    fill_hex: Optional[HexColor] = None
    fill_alpha: Optional[UnitFloat] = None
    stroke_hex: Optional[HexColor] = None
    stroke_alpha: Optional[UnitFloat] = None
    stroke_width: Optional[float] = Field(default=None, ge=0)
    stroke_align: Optional[StrokeAlign] = None
    gradient: Optional[Gradient] = None


class ShapePayloadUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["SHAPE"] = "SHAPE"
    shape_kind: Optional[ShapeKind] = None
    svg_path: Optional[str] = None
    points: Optional[Union[List[List[float]], str]] = None
    rx: Optional[float] = Field(default=None, ge=0)
    ry: Optional[float] = Field(default=None, ge=0)
    fill_hex: Optional[HexColor] = None
    fill_alpha: Optional[UnitFloat] = None
    gradient: Optional[Gradient] = None
    stroke_hex: Optional[HexColor] = None
    stroke_alpha: Optional[UnitFloat] = None
    stroke_width: Optional[float] = Field(default=None, ge=0)
    stroke_dash: Optional[List[float]] = None
    line_cap: Optional[LineCap] = None
    line_join: Optional[LineJoin] = None
    meta: Optional[Dict[str, Any]] = None


class IconPayloadUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["ICON"] = "ICON"
    asset_id: Optional[uuid.UUID] = None
    tint_hex: Optional[HexColor] = None
    tint_alpha: Optional[UnitFloat] = None
    allow_recolor: Optional[bool] = None


class ImagePayloadUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["IMAGE"] = "IMAGE"
    asset_id: Optional[uuid.UUID] = None
    crop: Optional[CropRect] = None
    fit: Optional[ImageFit] = None
    rounding: Optional[float] = Field(default=None, ge=0)
    blur: Optional[float] = Field(default=None, ge=0)
    brightness: Optional[float] = Field(default=None, ge=0)
    contrast: Optional[float] = Field(default=None, ge=0)


class BackgroundPayloadUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["BACKGROUND"] = "BACKGROUND"
    mode: Optional[BackgroundMode] = None
    fill_hex: Optional[HexColor] = None
    fill_alpha: Optional[UnitFloat] = None
    gradient: Optional[Gradient] = None
    asset_id: Optional[uuid.UUID] = None
    repeat: Optional[str] = None
    position: Optional[str] = None
    size: Optional[str] = None


PayloadUpdate = Annotated[
    Union[
        TextPayloadUpdate,
        ShapePayloadUpdate,
        IconPayloadUpdate,
        ImagePayloadUpdate,
        BackgroundPayloadUpdate,
    ],
    Field(discriminator="kind"),
]


class PayloadPatch(RootModel[PayloadUpdate]):
    """Request body of a payload update; `kind` selects the shape and must match the layer."""


class ReorderRequest(BaseModel):
    """Target position for a layer; must lie in [0, N) for a logo with N layers."""

    new_index: int


class LayerOrderResponse(BaseModel):
    """The logo's full layer stack after a reorder, bottom first."""

    logo_id: uuid.UUID
    layers: List[LayerOut]


# ══════════════════════════════════════════════════════════════════════════
# Validation entry points for documents that did not come through a request
# ══════════════════════════════════════════════════════════════════════════

_layer_adapter = TypeAdapter(LayerCreate)


def _first_error(exc: PydanticValidationError, prefix: str = "") -> ValidationError:
    """Translates pydantic's error list into our ValidationError with a field path."""
    errors = exc.errors()
    first = errors[0] if errors else {"loc": (), "msg": str(exc)}
    path = ".".join(str(part) for part in first.get("loc", ()))
    field = f"{prefix}{path}" if path else (prefix.rstrip(".") or None)
    return ValidationError(
        message=f"Invalid layer data: {first.get('msg', 'invalid value')}",
        field=field,
        context={"errors": len(errors)},
    )


def parse_layer(data: Mapping[str, Any], field_prefix: str = "") -> LayerCreate:
    """
    Validate a raw layer mapping.

    Raises:
        ValidationError: naming the first offending field (e.g. "opacity",
                         "payload.font_size", "layers.2.x_norm").
    """
    try:
        return _layer_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise _first_error(e, field_prefix)


def validate_layer_set(layers: Sequence[LayerCreate]) -> List[LayerCreate]:
    """
    Resolve the stacking order of a layer list submitted as a whole.

    Rules:
        - no z_index given anywhere: list order is stacking order
        - z_index given everywhere: values must be distinct; they are compacted
          to 0..N-1 keeping their relative order
        - a mix of both is rejected

    Returns:
        New LayerCreate values with dense z_index 0..N-1, sorted bottom first.

    Raises:
        ValidationError: z_index collision or partially specified indices.
    """
    explicit = [layer.z_index for layer in layers]
    given = [z for z in explicit if z is not None]

    if not given:
        return [layer.model_copy(update={"z_index": i}) for i, layer in enumerate(layers)]

    if len(given) != len(layers):
        raise ValidationError(
            message="Either every layer specifies z_index or none does",
            field="z_index",
        )

    seen: Dict[int, int] = {}
    for position, z in enumerate(given):
        if z in seen:
            raise ValidationError(
                message=f"z_index {z} is used by more than one layer",
                field=f"layers.{position}.z_index",
                context={"z_index": z, "first_position": seen[z]},
            )
        seen[z] = position

    ordered = sorted(layers, key=lambda layer: layer.z_index)
    return [layer.model_copy(update={"z_index": i}) for i, layer in enumerate(ordered)]
