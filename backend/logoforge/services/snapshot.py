"""
LogoForge Backend — Snapshot / Version Codec
==============================================

What:  Serializes a logo and its ordered layers into one self-contained JSON
       document, and turns such a document back into creatable values.
Why:   Version history stores these documents verbatim; template use and
       version restore rebuild layers from them. One format serves both.
How:   Encoding goes through SnapshotDocument (pydantic, JSON mode). Decoding
       re-validates every layer with the same rules as the API and drops all
       identity fields, so the caller always gets new ids.

Round-trip law:
    decode(encode(L)) reproduces every field of L except ids, timestamps and
    the caller-supplied owner/title.
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from logoforge.exceptions import RenderTimeoutError, ValidationError
from logoforge.schemas.layer import LayerCreate, LayerOut, parse_layer, validate_layer_set
from logoforge.schemas.logo import LogoCreate, SnapshotDocument

logger = logging.getLogger(__name__)

# Stripped from every layer on decode; the new rows get fresh values
IDENTITY_FIELDS = ("id", "logo_id", "created_at", "updated_at")


def encode(logo, layers: Sequence[LayerOut], deadline: Optional[float] = None) -> Dict[str, Any]:
    """
    Build the snapshot document for a logo.

    Args:
        logo:     Logo row or LogoOut
        layers:   the logo's layers, in any order
        deadline: time.monotonic() value after which encoding aborts

    Returns:
        JSON-ready dict, layers ordered by z_index ascending.
    """
    if deadline is not None and time.monotonic() > deadline:
        raise RenderTimeoutError(message="Snapshot took too long and was cancelled")
    document = SnapshotDocument(
        id=logo.id,
        title=logo.title,
        canvas_w=logo.canvas_w,
        canvas_h=logo.canvas_h,
        dpi=logo.dpi,
        thumbnail_url=logo.thumbnail_url,
        created_at=logo.created_at,
        updated_at=logo.updated_at,
        layers=sorted(layers, key=lambda layer: layer.z_index),
    )
    return document.model_dump(mode="json")


def decode_layers(raw_layers: Sequence[Mapping[str, Any]]) -> List[LayerCreate]:
    """
    Validated, identity-free layers from a document's layer list.

    Raises:
        ValidationError: a layer breaks the layer model rules
    """
    parsed = []
    for position, raw in enumerate(raw_layers):
        if not isinstance(raw, Mapping):
            raise ValidationError(message="Snapshot layer must be an object", field=f"layers.{position}")
        data = {key: value for key, value in raw.items() if key not in IDENTITY_FIELDS}
        parsed.append(parse_layer(data, field_prefix=f"layers.{position}."))
    return validate_layer_set(parsed)


def decode(
    document: Mapping[str, Any],
    owner_id: Optional[uuid.UUID],
    title: Optional[str] = None,
) -> LogoCreate:
    """
    Turn a snapshot document into a LogoCreate with new identities.

    Args:
        document: a dict produced by `encode` (possibly read back from JSON)
        owner_id: owner of the logo to be created
        title:    overrides the document title when given

    Raises:
        ValidationError: the document or one of its layers is invalid
    """
    try:
        header = SnapshotDocument.model_validate(
            {key: value for key, value in document.items() if key != "layers"}
        )
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {"loc": (), "msg": str(e)}
        raise ValidationError(
            message=f"Invalid snapshot: {first['msg']}",
            field=".".join(str(part) for part in first["loc"]) or None,
        )

    raw_layers = document.get("layers") or []
    if not isinstance(raw_layers, list):
        raise ValidationError(message="Snapshot layers must be a list", field="layers")
    layers = decode_layers(raw_layers)
    logger.debug("Decoded snapshot of logo %s with %d layers", header.id, len(layers))

    return LogoCreate(
        owner_id=owner_id,
        title=title or header.title,
        canvas_w=header.canvas_w,
        canvas_h=header.canvas_h,
        dpi=header.dpi,
        layers=layers,
    )
