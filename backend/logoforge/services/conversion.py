"""
LogoForge Backend — ORM ⇄ Schema Conversion
=============================================

What:  Builds the API/value types from ORM rows and ORM rows from validated
       value types.
Why:   A layer is one row in `layers` plus one row in the payload table that
       matches its kind; every service needs the same join of the two.
How:   The payload row is read through `Layer.payload_row`, which only
       touches the relationship for the layer's own kind.
"""

import uuid
from typing import Iterable, List

from logoforge.exceptions import DatabaseError
from logoforge.models.enums import LayerKind
from logoforge.models.layer import PAYLOAD_ATTRIBUTE, PAYLOAD_ROW_CLASS, Layer
from logoforge.models.logo import Logo
from logoforge.schemas.layer import PAYLOAD_MODEL, LayerCreate, LayerOut
from logoforge.schemas.logo import LogoDetail, LogoOut

# Columns copied from a LayerCreate onto a Layer row
LAYER_COLUMNS = (
    "name", "x_norm", "y_norm", "scale", "rotation_deg", "anchor_x", "anchor_y",
    "opacity", "blend_mode", "is_visible", "is_locked",
)


def layer_to_schema(row: Layer) -> LayerOut:
    """
    Raises:
        DatabaseError: the layer has no payload row for its kind
    """
    payload_row = row.payload_row
    if payload_row is None:
        raise DatabaseError(
            message="Layer data is incomplete",
            context={"layer_id": str(row.id), "kind": row.kind.value},
        )
    payload = PAYLOAD_MODEL[row.kind].model_validate(payload_row, from_attributes=True)
    return LayerOut(
        id=row.id,
        logo_id=row.logo_id,
        kind=row.kind,
        z_index=row.z_index,
        name=row.name,
        x_norm=row.x_norm,
        y_norm=row.y_norm,
        scale=row.scale,
        rotation_deg=row.rotation_deg,
        anchor_x=row.anchor_x,
        anchor_y=row.anchor_y,
        opacity=row.opacity,
        blend_mode=row.blend_mode,
        is_visible=row.is_visible,
        is_locked=row.is_locked,
        common_style=row.common_style,
        payload=payload,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def layers_to_schema(rows: Iterable[Layer]) -> List[LayerOut]:
    """Converts and sorts bottom first."""
    return sorted((layer_to_schema(row) for row in rows), key=lambda layer: layer.z_index)


def logo_to_schema(logo: Logo) -> LogoOut:
    return LogoOut.model_validate(logo, from_attributes=True)


def logo_to_detail(logo: Logo) -> LogoDetail:
    summary = logo_to_schema(logo)
    return LogoDetail(**summary.model_dump(), layers=layers_to_schema(logo.layers))


def build_payload_row(payload):
    """New payload row for a validated payload value; nested styles become JSON dicts."""
    row_cls = PAYLOAD_ROW_CLASS[LayerKind(payload.kind)]
    values = payload.model_dump(exclude={"kind"})
    return row_cls(**values)


def build_layer_row(logo_id: uuid.UUID, data: LayerCreate, z_index: int) -> Layer:
    """
    New Layer row (with its payload row attached) at the given z_index.

    The caller decides z_index; `data.z_index` is ignored here.
    """
    layer = Layer(
        id=uuid.uuid4(),
        logo_id=logo_id,
        kind=data.kind,
        z_index=z_index,
        common_style=data.common_style.model_dump() if data.common_style else None,
        **{column: getattr(data, column) for column in LAYER_COLUMNS},
    )
    setattr(layer, PAYLOAD_ATTRIBUTE[data.kind], build_payload_row(data.payload))
    return layer
