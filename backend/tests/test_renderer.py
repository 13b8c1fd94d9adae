"""
LogoForge Backend — Renderer Tests
====================================

What we test:
    ✅ Identical input renders byte-identical output
    ✅ Painter's order follows z_index, whatever the input order
    ✅ Invisible layers and layers with missing assets are left out
    ✅ Transform about the anchor, canvas and override sizes
    ✅ Gradients, font fallback chains, icon recoloring
    ✅ A passed deadline aborts with RenderTimeoutError
"""

import time
import uuid
import xml.etree.ElementTree as ET
from types import SimpleNamespace

import pytest

from logoforge.exceptions import RenderTimeoutError
from logoforge.models.enums import AssetKind
from logoforge.schemas.asset import AssetOut, FontOut
from logoforge.schemas.layer import LayerOut
from logoforge.services.renderer import SVG_NS, recolor, render

NS = {"svg": SVG_NS}


def _parse(document: str) -> ET.Element:
    return ET.fromstring(document.encode("utf-8"))


def _layer_groups(root: ET.Element):
    return [g for g in root.findall("svg:g", NS) if g.get("id", "").startswith("lf-layer-")]


class TestRender:

    def setup_method(self):
        self.logo_id = uuid.uuid4()
        self.logo = SimpleNamespace(canvas_w=200, canvas_h=100)

    def _layer(self, make_layer, kind, z, **overrides) -> LayerOut:
        data = make_layer(kind, **overrides)
        data.update(id=uuid.uuid4(), logo_id=self.logo_id, z_index=z)
        return LayerOut.model_validate(data)

    def test_deterministic(self, make_layer):
        layers = [
            self._layer(make_layer, "BACKGROUND", 0),
            self._layer(make_layer, "SHAPE", 1, rotation_deg=15),
            self._layer(make_layer, "TEXT", 2, content="Acme"),
        ]
        assert render(self.logo, layers) == render(self.logo, layers)

    def test_painters_order(self, make_layer):
        layers = [
            self._layer(make_layer, "TEXT", 2),
            self._layer(make_layer, "BACKGROUND", 0),
            self._layer(make_layer, "SHAPE", 1),
        ]
        root = _parse(render(self.logo, layers))
        groups = _layer_groups(root)
        assert [g.get("data-kind") for g in groups] == ["BACKGROUND", "SHAPE", "TEXT"]

    def test_invisible_layers_excluded(self, make_layer):
        layers = [
            self._layer(make_layer, "SHAPE", 0, is_visible=False),
            self._layer(make_layer, "SHAPE", 1),
        ]
        root = _parse(render(self.logo, layers))
        assert [g.get("id") for g in _layer_groups(root)] == ["lf-layer-1"]

    def test_canvas_and_override_size(self, make_layer):
        root = _parse(render(self.logo, []))
        assert (root.get("width"), root.get("height"), root.get("viewBox")) == ("200", "100", "0 0 200 100")
        root = _parse(render(self.logo, [], width=400, height=300))
        assert root.get("viewBox") == "0 0 400 300"

    def test_empty_logo_has_no_defs(self):
        root = _parse(render(self.logo, []))
        assert root.find("svg:defs", NS) is None

    def test_transform_about_anchor(self, make_layer):
        layer = self._layer(make_layer, "SHAPE", 0, x_norm=0.25, y_norm=0.5, rotation_deg=90, scale=2)
        root = _parse(render(self.logo, [layer]))
        inner = _layer_groups(root)[0].find("svg:g", NS)
        assert inner.get("transform") == "translate(50 50) rotate(90) scale(2) translate(-50 -50)"

    def test_opacity_and_blend_mode(self, make_layer):
        layer = self._layer(make_layer, "SHAPE", 0, opacity=0.4, blend_mode="multiply")
        group = _layer_groups(_parse(render(self.logo, [layer])))[0]
        assert group.get("opacity") == "0.4"
        assert group.get("style") == "mix-blend-mode:multiply"

    def test_background_fills_the_canvas(self, make_layer):
        layer = self._layer(make_layer, "BACKGROUND", 0, fill_hex="#abcdef")
        rect = _layer_groups(_parse(render(self.logo, [layer])))[0].find("svg:rect", NS)
        assert rect.get("width") == "200" and rect.get("height") == "100"
        assert rect.get("fill") == "#abcdef"

    def test_gradient_stops_in_order(self, make_layer):
        gradient = {"angle": 0, "stops": [
            {"offset": 0, "hex": "#000000"},
            {"offset": 0.5, "hex": "#ff0000", "alpha": 0.5},
            {"offset": 1, "hex": "#ffffff"},
        ]}
        layer = self._layer(make_layer, "SHAPE", 3, gradient=gradient)
        root = _parse(render(self.logo, [layer]))
        grad = root.find("svg:defs/svg:linearGradient", NS)
        assert grad.get("id") == "lf-grad-3"
        assert [s.get("offset") for s in grad.findall("svg:stop", NS)] == ["0%", "50%", "100%"]
        shape = root.find(".//svg:rect", NS)
        assert shape.get("fill") == "url(#lf-grad-3)"

    def test_text_font_chain(self, make_layer):
        font = FontOut(
            id=uuid.uuid4(), family="Open Sans", style="normal", weight=400,
            url="/fonts/open-sans.woff2", fallbacks=["Arial"],
        )
        layer = self._layer(make_layer, "TEXT", 0, font_id=str(font.id))
        text = _parse(render(self.logo, [layer], fonts={font.id: font})).find(".//svg:text", NS)
        assert text.get("font-family") == "'Open Sans', Arial, sans-serif"
        assert text.text == "Acme"

    def test_text_unknown_font_uses_default(self, make_layer):
        layer = self._layer(make_layer, "TEXT", 0, font_id=str(uuid.uuid4()))
        text = _parse(render(self.logo, [layer], default_font="serif")).find(".//svg:text", NS)
        assert text.get("font-family") == "serif"

    def test_multiline_text_uses_tspans(self, make_layer):
        layer = self._layer(make_layer, "TEXT", 0, content="Acme\nCorp", font_size=10)
        text = _parse(render(self.logo, [layer])).find(".//svg:text", NS)
        spans = text.findall("svg:tspan", NS)
        assert [s.text for s in spans] == ["Acme", "Corp"]
        assert spans[1].get("dy") == "12"

    def test_missing_asset_layer_skipped(self, make_layer):
        layers = [self._layer(make_layer, "IMAGE", 0), self._layer(make_layer, "SHAPE", 1)]
        groups = _layer_groups(_parse(render(self.logo, layers)))
        assert [g.get("data-kind") for g in groups] == ["SHAPE"]

    def test_icon_is_inlined_and_tinted(self, make_layer, svg_icon_bytes):
        asset = AssetOut(
            id=uuid.uuid4(), kind=AssetKind.VECTOR, name="star", storage="local",
            url="/media/star.svg", mime_type="image/svg+xml", vector_svg=svg_icon_bytes.decode(),
        )
        layer = self._layer(make_layer, "ICON", 0, asset_id=str(asset.id), tint_hex="#123456")
        group = _layer_groups(_parse(render(self.logo, [layer], assets={asset.id: asset})))[0]
        icon = group.find("svg:g/svg:svg", NS)
        assert icon.get("fill") == "#123456"
        assert icon.find("svg:path", NS).get("fill") == "#123456"
        assert "fill:#123456" in icon.find("svg:circle", NS).get("style")

    def test_deadline_passed(self, make_layer):
        layers = [self._layer(make_layer, "SHAPE", 0)]
        with pytest.raises(RenderTimeoutError):
            render(self.logo, layers, deadline=time.monotonic() - 1)


class TestRecolor:

    def test_none_fill_stays_unpainted(self):
        root = ET.fromstring(
            f'<svg xmlns="{SVG_NS}"><path fill="none" stroke="currentColor"/>'
            f'<rect style="fill: none; stroke: red"/></svg>'
        )
        recolor(root, "#00ff00", 0.5)
        path = root.find("svg:path", NS)
        assert path.get("fill") == "none"
        assert path.get("stroke") == "#00ff00"
        assert "fill: none" in root.find("svg:rect", NS).get("style")
        assert root.get("fill-opacity") == "0.5"

    def test_tint_alpha_replaces_child_fill_opacity(self):
        root = ET.fromstring(
            f'<svg xmlns="{SVG_NS}"><path fill="#000" fill-opacity="0.2"/>'
            f'<circle style="fill:#f00; fill-opacity: 0.4; stroke:#0f0"/></svg>'
        )
        recolor(root, "#123456", 0.8)
        assert root.find("svg:path", NS).get("fill-opacity") is None
        style = root.find("svg:circle", NS).get("style")
        assert "fill-opacity" not in style
        assert "fill:#123456" in style and "stroke:#0f0" in style
        assert root.get("fill-opacity") == "0.8"

    def test_child_fill_opacity_kept_without_tint_alpha(self):
        root = ET.fromstring(f'<svg xmlns="{SVG_NS}"><path fill="#000" fill-opacity="0.2"/></svg>')
        recolor(root, "#123456")
        assert root.find("svg:path", NS).get("fill-opacity") == "0.2"
