"""
LogoForge Backend — Snapshot Codec Tests
==========================================

What we test:
    ✅ decode(encode(L)) keeps every layer field except identities
    ✅ The document survives a JSON round trip (as stored in logo_versions)
    ✅ Layers are ordered by z_index in the document
    ✅ Owner and title come from the caller
    ✅ Invalid documents raise our ValidationError
"""

import json
import time
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from logoforge.exceptions import RenderTimeoutError, ValidationError
from logoforge.schemas.layer import LayerOut
from logoforge.services import snapshot

IDENTITY = {"id", "logo_id", "created_at", "updated_at"}


class TestSnapshotRoundTrip:

    def setup_method(self):
        now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
        self.logo = SimpleNamespace(
            id=uuid.uuid4(), title="Acme", canvas_w=800, canvas_h=600, dpi=300,
            thumbnail_url=None, created_at=now, updated_at=now,
        )

    def _layers(self, make_layer):
        gradient = {"angle": 45, "stops": [{"offset": 0, "hex": "#000"}, {"offset": 1, "hex": "#fff", "alpha": 0.3}]}
        specs = [
            make_layer("BACKGROUND", mode="gradient", fill_hex=None, gradient=gradient),
            make_layer("SHAPE", shape_kind="polygon", points=[[0, 0], [50, 100], [100, 0]], stroke_dash=[4, 2]),
            make_layer("IMAGE", crop={"x": 0.1, "y": 0.1, "w": 0.5, "h": 0.5}, fit="cover", rounding=8),
            make_layer("ICON", tint_hex="#ff8800", allow_recolor=False),
            make_layer(
                "TEXT", content="Acme\nCorp", letter_spacing=1.5, align="left",
                stroke_hex="#000000", stroke_width=2, stroke_align="outside",
                x_norm=0.3, rotation_deg=-12.5, opacity=0.75, blend_mode="screen",
                common_style={"shadow": {"dx": 2, "dy": 3, "blur": 4}},
            ),
        ]
        layers = []
        for z, data in enumerate(specs):
            data.update(id=uuid.uuid4(), logo_id=self.logo.id, z_index=z)
            layers.append(LayerOut.model_validate(data))
        return layers

    def test_round_trip_keeps_every_field(self, make_layer):
        layers = self._layers(make_layer)
        document = json.loads(json.dumps(snapshot.encode(self.logo, layers)))
        owner = uuid.uuid4()

        restored = snapshot.decode(document, owner_id=owner)

        assert restored.owner_id == owner
        assert restored.title == "Acme"
        assert (restored.canvas_w, restored.canvas_h, restored.dpi) == (800, 600, 300)
        assert len(restored.layers) == len(layers)
        for original, copy in zip(layers, restored.layers):
            assert copy.model_dump() == original.model_dump(exclude=IDENTITY)

    def test_document_orders_layers(self, make_layer):
        layers = self._layers(make_layer)
        document = snapshot.encode(self.logo, list(reversed(layers)))
        assert [layer["z_index"] for layer in document["layers"]] == [0, 1, 2, 3, 4]
        assert document["layers"][0]["kind"] == "BACKGROUND"

    def test_title_override(self, make_layer):
        document = snapshot.encode(self.logo, [])
        assert snapshot.decode(document, owner_id=None, title="Copy").title == "Copy"

    def test_decoded_layers_have_no_identity(self, make_layer):
        document = snapshot.encode(self.logo, self._layers(make_layer))
        for layer in snapshot.decode(document, owner_id=None).layers:
            assert not IDENTITY & set(type(layer).model_fields)

    def test_invalid_layer_names_field(self, make_layer):
        document = snapshot.encode(self.logo, self._layers(make_layer))
        document["layers"][1]["opacity"] = 3
        with pytest.raises(ValidationError) as exc_info:
            snapshot.decode(document, owner_id=None)
        assert exc_info.value.field == "layers.1.opacity"

    def test_unsorted_gradient_in_document_is_rejected(self, make_layer):
        document = snapshot.encode(self.logo, self._layers(make_layer))
        document["layers"][0]["payload"]["gradient"]["stops"].reverse()
        with pytest.raises(ValidationError):
            snapshot.decode(document, owner_id=None)

    def test_missing_canvas_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            snapshot.decode({"title": "x", "layers": []}, owner_id=None)
        assert exc_info.value.field in ("canvas_w", "canvas_h")

    def test_layers_must_be_a_list(self):
        with pytest.raises(ValidationError):
            snapshot.decode({"title": "x", "canvas_w": 1, "canvas_h": 1, "layers": {"0": {}}}, owner_id=None)

    def test_encode_deadline(self):
        with pytest.raises(RenderTimeoutError):
            snapshot.encode(self.logo, [], deadline=time.monotonic() - 1)
