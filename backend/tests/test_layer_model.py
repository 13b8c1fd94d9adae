"""
LogoForge Backend — Layer Model Validation Tests
==================================================

What we test:
    ✅ Every kind with its own payload validates
    ✅ kind/payload mismatch, out-of-range normalized fields, bad colors
    ✅ Gradient stops: at least two, ascending offsets
    ✅ parse_layer names the offending field in our ValidationError
    ✅ validate_layer_set: list order, explicit indices, collisions
    ✅ Update structs reject nulls and unknown keys
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from logoforge.exceptions import ValidationError
from logoforge.models.enums import LayerKind
from logoforge.schemas.layer import (
    LayerCreate,
    LayerUpdate,
    PayloadPatch,
    ShapePayloadUpdate,
    TextPayload,
    parse_layer,
    validate_layer_set,
)


class TestLayerCreate:

    @pytest.mark.parametrize("kind", ["TEXT", "SHAPE", "ICON", "IMAGE", "BACKGROUND"])
    def test_every_kind_validates(self, make_layer, kind):
        layer = LayerCreate.model_validate(make_layer(kind))
        assert layer.kind == LayerKind(kind)
        assert layer.payload.kind == kind

    def test_defaults(self, make_layer):
        layer = LayerCreate.model_validate(make_layer("SHAPE"))
        assert (layer.x_norm, layer.y_norm, layer.scale, layer.opacity) == (0.5, 0.5, 1.0, 1.0)
        assert layer.is_visible is True
        assert layer.z_index is None

    def test_kind_mismatch_is_rejected(self, make_layer):
        data = make_layer("TEXT")
        data["kind"] = "SHAPE"
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(data)

    @pytest.mark.parametrize("field", ["x_norm", "y_norm", "anchor_x", "anchor_y", "opacity"])
    @pytest.mark.parametrize("value", [-0.01, 1.01])
    def test_normalized_fields_out_of_range(self, make_layer, field, value):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("SHAPE", **{field: value}))

    def test_boundary_values_accepted(self, make_layer):
        layer = LayerCreate.model_validate(make_layer("SHAPE", x_norm=0.0, y_norm=1.0, opacity=0.0))
        assert layer.x_norm == 0.0 and layer.y_norm == 1.0

    @pytest.mark.parametrize("scale", [0, -1])
    def test_scale_must_be_positive(self, make_layer, scale):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("SHAPE", scale=scale))

    def test_font_size_must_be_positive(self, make_layer):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("TEXT", font_size=0))

    @pytest.mark.parametrize("color", ["#fff", "#A1b2C3"])
    def test_hex_colors_accepted(self, make_layer, color):
        layer = LayerCreate.model_validate(make_layer("SHAPE", fill_hex=color))
        assert layer.payload.fill_hex == color

    @pytest.mark.parametrize("color", ["fff", "#ffff", "#gggggg", "red"])
    def test_bad_hex_colors_rejected(self, make_layer, color):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("SHAPE", fill_hex=color))

    def test_unknown_fields_rejected(self, make_layer):
        data = make_layer("SHAPE")
        data["colour"] = "#fff"
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(data)


class TestGradient:

    def _gradient(self, *offsets):
        return {"stops": [{"offset": o, "hex": "#000000"} for o in offsets]}

    def test_ascending_stops_accepted(self, make_layer):
        layer = LayerCreate.model_validate(make_layer("SHAPE", gradient=self._gradient(0, 0.5, 1)))
        assert [stop.offset for stop in layer.payload.gradient.stops] == [0, 0.5, 1]

    def test_equal_offsets_accepted(self, make_layer):
        LayerCreate.model_validate(make_layer("SHAPE", gradient=self._gradient(0, 0.5, 0.5, 1)))

    def test_descending_stops_rejected(self, make_layer):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("SHAPE", gradient=self._gradient(0.8, 0.2)))

    def test_single_stop_rejected(self, make_layer):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("SHAPE", gradient=self._gradient(0.5)))

    def test_offset_out_of_range(self, make_layer):
        with pytest.raises(PydanticValidationError):
            LayerCreate.model_validate(make_layer("SHAPE", gradient=self._gradient(0, 1.5)))


class TestParseLayer:

    def test_returns_layer(self, make_layer):
        assert parse_layer(make_layer("TEXT")).payload.content == "Acme"

    def test_names_the_common_field(self, make_layer):
        with pytest.raises(ValidationError) as exc_info:
            parse_layer(make_layer("SHAPE", opacity=2))
        assert exc_info.value.field == "opacity"

    def test_names_the_payload_field_with_prefix(self, make_layer):
        with pytest.raises(ValidationError) as exc_info:
            parse_layer(make_layer("TEXT", font_size=-3), field_prefix="layers.2.")
        assert exc_info.value.field.startswith("layers.2.payload")
        assert "font_size" in exc_info.value.field


class TestValidateLayerSet:

    def test_list_order_without_indices(self, make_layer):
        layers = [LayerCreate.model_validate(make_layer("SHAPE", name=str(i))) for i in range(3)]
        resolved = validate_layer_set(layers)
        assert [(layer.name, layer.z_index) for layer in resolved] == [("0", 0), ("1", 1), ("2", 2)]

    def test_explicit_indices_are_compacted_in_order(self, make_layer):
        layers = [
            LayerCreate.model_validate(make_layer("SHAPE", name="top", z_index=7)),
            LayerCreate.model_validate(make_layer("SHAPE", name="bottom", z_index=2)),
        ]
        resolved = validate_layer_set(layers)
        assert [(layer.name, layer.z_index) for layer in resolved] == [("bottom", 0), ("top", 1)]

    def test_collision_is_rejected(self, make_layer):
        layers = [
            LayerCreate.model_validate(make_layer("SHAPE", z_index=1)),
            LayerCreate.model_validate(make_layer("TEXT", z_index=1)),
        ]
        with pytest.raises(ValidationError) as exc_info:
            validate_layer_set(layers)
        assert exc_info.value.field == "layers.1.z_index"

    def test_partial_indices_rejected(self, make_layer):
        layers = [
            LayerCreate.model_validate(make_layer("SHAPE", z_index=0)),
            LayerCreate.model_validate(make_layer("SHAPE")),
        ]
        with pytest.raises(ValidationError):
            validate_layer_set(layers)

    def test_empty_list(self):
        assert validate_layer_set([]) == []


class TestUpdateStructs:

    def test_layer_update_rejects_null(self):
        with pytest.raises(PydanticValidationError):
            LayerUpdate.model_validate({"opacity": None})

    def test_layer_update_rejects_z_index(self):
        with pytest.raises(PydanticValidationError):
            LayerUpdate.model_validate({"z_index": 3})

    def test_layer_update_keeps_only_sent_fields(self):
        update = LayerUpdate.model_validate({"name": None, "opacity": 0.3})
        assert update.model_dump(exclude_unset=True) == {"name": None, "opacity": 0.3}

    def test_payload_patch_selects_shape_by_kind(self):
        patch = PayloadPatch.model_validate({"kind": "SHAPE", "fill_hex": "#00ff00"})
        assert isinstance(patch.root, ShapePayloadUpdate)
        assert patch.root.model_dump(exclude_unset=True) == {"kind": "SHAPE", "fill_hex": "#00ff00"}

    def test_payload_patch_rejects_foreign_field(self):
        with pytest.raises(PydanticValidationError):
            PayloadPatch.model_validate({"kind": "SHAPE", "content": "hello"})

    def test_text_payload_requires_content(self):
        with pytest.raises(PydanticValidationError):
            TextPayload.model_validate({"font_size": 12})
