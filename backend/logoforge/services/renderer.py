"""
LogoForge Backend — Composition Renderer
==========================================

What:  Flattens a logo's ordered layer list into one SVG document.
Why:   Export, thumbnails and PNG rasterization (done by the media host) all
       start from the same vector document.
How:   Builds an ElementTree in painter's order (z_index ascending) and
       serializes it once. Rendering is pure: no I/O, no clock in the output,
       so identical inputs produce byte-identical documents.
Who:   ExportService, after it has loaded the logo, its layers and the
       assets/fonts they reference.

Document layout:
    <svg width=W height=H viewBox="0 0 W H">
      <defs>  gradients, filters, clip paths (ids derive from z_index)  </defs>
      <g id="lf-layer-0" data-kind="BACKGROUND" ...> ... </g>
      <g id="lf-layer-1" data-kind="TEXT" opacity filter style>
        <g transform="translate(x y) rotate(r) scale(s) translate(-ax·w -ay·h)">
          <text .../>
        </g>
      </g>
      ...
    </svg>

Local boxes (the box the anchor refers to):
    TEXT        zero-size; the anchor has no effect, align/baseline position it
    SHAPE       100×100, or meta.width × meta.height
    ICON        100×100; the icon's own viewBox is fitted into it
    IMAGE       the asset's pixel size when known, else 100×100
    BACKGROUND  the full target rect, untransformed

A layer whose payload cannot produce an element (a path without data, a
missing asset) is left out of the document, the same as an invisible layer.
"""

import logging
import math
import re
import time
import uuid
import xml.etree.ElementTree as ET
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, assert_never

from logoforge.exceptions import RenderTimeoutError
from logoforge.models.enums import (
    BackgroundMode,
    BlendMode,
    ImageFit,
    ShapeKind,
    StrokeAlign,
    TextAlign,
    TextBaseline,
)
from logoforge.schemas.asset import AssetOut, FontOut
from logoforge.schemas.layer import (
    BackgroundPayload,
    Gradient,
    IconPayload,
    ImagePayload,
    LayerOut,
    ShapePayload,
    TextPayload,
)

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

DEFAULT_BOX = (100.0, 100.0)
DEFAULT_LINE_HEIGHT = 1.2

TEXT_ANCHOR = {
    TextAlign.LEFT: "start",
    TextAlign.CENTER: "middle",
    TextAlign.RIGHT: "end",
    TextAlign.JUSTIFY: "start",
}

DOMINANT_BASELINE = {
    TextBaseline.TOP: "text-before-edge",
    TextBaseline.MIDDLE: "middle",
    TextBaseline.BOTTOM: "text-after-edge",
    TextBaseline.ALPHABETIC: "alphabetic",
}

FIT_ASPECT = {
    ImageFit.COVER: "xMidYMid slice",
    ImageFit.CONTAIN: "xMidYMid meet",
    ImageFit.FILL: "none",
}


# ── Helpers ───────────────────────────────────────────────────────────────


def _fmt(value: float) -> str:
    """Fixed-precision number text; never scientific notation, never '-0'."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _el(tag: str, attrs: Optional[Dict[str, str]] = None, parent: Optional[ET.Element] = None) -> ET.Element:
    qualified = f"{{{SVG_NS}}}{tag}"
    attrib = {k: v for k, v in (attrs or {}).items() if v is not None}
    if parent is None:
        return ET.Element(qualified, attrib)
    return ET.SubElement(parent, qualified, attrib)


def _font_family(payload: TextPayload, fonts: Mapping[uuid.UUID, FontOut], default_font: str) -> str:
    names: List[str] = []
    font = fonts.get(payload.font_id) if payload.font_id else None
    if font is not None:
        names.append(font.family)
        names.extend(font.fallbacks or [])
    elif payload.font_id is not None:
        logger.debug("Font %s not available, using default face", payload.font_id)
    names.append(default_font)
    quoted: List[str] = []
    for name in names:
        entry = f"'{name}'" if " " in name else name
        if entry not in quoted:
            quoted.append(entry)
    return ", ".join(quoted)


def _aspect_from_css(size: Optional[str], position: Optional[str]) -> str:
    """Map CSS-like background size/position onto preserveAspectRatio."""
    if size in ("stretch", "100% 100%", "fill"):
        return "none"
    tokens = (position or "center").lower().split()
    x_align = "xMin" if "left" in tokens else "xMax" if "right" in tokens else "xMid"
    y_align = "YMin" if "top" in tokens else "YMax" if "bottom" in tokens else "YMid"
    mode = "slice" if size == "cover" else "meet"
    return f"{x_align}{y_align} {mode}"


# ══════════════════════════════════════════════════════════════════════════
# Renderer
# ══════════════════════════════════════════════════════════════════════════


class _Render:
    """State for rendering one document: the root, its <defs> and lookups."""

    def __init__(
        self,
        width: float,
        height: float,
        assets: Mapping[uuid.UUID, AssetOut],
        fonts: Mapping[uuid.UUID, FontOut],
        default_font: str,
    ):
        self.width = width
        self.height = height
        self.assets = assets
        self.fonts = fonts
        self.default_font = default_font
        self.root = _el("svg", {
            "width": _fmt(width),
            "height": _fmt(height),
            "viewBox": f"0 0 {_fmt(width)} {_fmt(height)}",
        })
        self.defs = _el("defs", parent=self.root)

    # ── Definitions ───────────────────────────────────────────────────────

    def gradient(self, gradient: Gradient, z: int) -> str:
        """Adds a linearGradient; returns the paint reference."""
        if gradient.angle is None:
            x1, y1, x2, y2 = 0.0, 0.0, 100.0, 100.0
        else:
            rad = math.radians(gradient.angle)
            dx, dy = math.cos(rad) * 50.0, math.sin(rad) * 50.0
            x1, y1, x2, y2 = 50.0 - dx, 50.0 - dy, 50.0 + dx, 50.0 + dy
        grad_id = f"lf-grad-{z}"
        element = _el("linearGradient", {
            "id": grad_id,
            "x1": f"{_fmt(x1)}%",
            "y1": f"{_fmt(y1)}%",
            "x2": f"{_fmt(x2)}%",
            "y2": f"{_fmt(y2)}%",
        }, self.defs)
        # Stored order is rendering order
        for stop in gradient.stops:
            _el("stop", {
                "offset": f"{_fmt(stop.offset * 100)}%",
                "stop-color": stop.hex,
                "stop-opacity": _fmt(stop.alpha),
            }, element)
        return f"url(#{grad_id})"

    def shadow(self, layer: LayerOut) -> Optional[str]:
        shadow = layer.common_style.shadow if layer.common_style else None
        if shadow is None:
            return None
        filter_id = f"lf-shadow-{layer.z_index}"
        element = _el("filter", {
            "id": filter_id,
            "x": "-50%",
            "y": "-50%",
            "width": "200%",
            "height": "200%",
        }, self.defs)
        _el("feDropShadow", {
            "dx": _fmt(shadow.dx),
            "dy": _fmt(shadow.dy),
            "stdDeviation": _fmt(shadow.blur / 2),
            "flood-color": shadow.hex,
            "flood-opacity": _fmt(shadow.alpha),
        }, element)
        return f"url(#{filter_id})"

    # ── Layers ────────────────────────────────────────────────────────────

    def layer(self, layer: LayerOut) -> None:
        group = _el("g", {
            "id": f"lf-layer-{layer.z_index}",
            "data-kind": layer.kind.value,
        })
        if layer.opacity < 1:
            group.set("opacity", _fmt(layer.opacity))
        if layer.blend_mode != BlendMode.NORMAL:
            group.set("style", f"mix-blend-mode:{layer.blend_mode.value}")

        payload = layer.payload
        if isinstance(payload, BackgroundPayload):
            emitted = self.background(group, payload, layer.z_index)
        elif isinstance(payload, TextPayload):
            emitted = self.text(self._placed(group, layer, (0.0, 0.0)), payload, layer.z_index)
        elif isinstance(payload, ShapePayload):
            emitted = self.shape(self._placed(group, layer, self._shape_box(payload)), payload, layer.z_index)
        elif isinstance(payload, IconPayload):
            emitted = self.icon(self._placed(group, layer, DEFAULT_BOX), payload)
        elif isinstance(payload, ImagePayload):
            box = self._image_box(payload)
            emitted = self.image(self._placed(group, layer, box), payload, box, layer.z_index)
        else:
            assert_never(payload)

        if not emitted:
            logger.debug("Layer %s (%s) produced no output", layer.id, layer.kind.value)
            return
        shadow = self.shadow(layer)
        if shadow:
            group.set("filter", shadow)
        self.root.append(group)

    def _placed(self, group: ET.Element, layer: LayerOut, box: Tuple[float, float]) -> ET.Element:
        """Inner group carrying translate → rotate → scale about the anchor."""
        box_w, box_h = box
        transform = (
            f"translate({_fmt(layer.x_norm * self.width)} {_fmt(layer.y_norm * self.height)}) "
            f"rotate({_fmt(layer.rotation_deg)}) "
            f"scale({_fmt(layer.scale)}) "
            f"translate({_fmt(-layer.anchor_x * box_w)} {_fmt(-layer.anchor_y * box_h)})"
        )
        return _el("g", {"transform": transform}, group)

    def background(self, group: ET.Element, payload: BackgroundPayload, z: int) -> bool:
        rect = {"x": "0", "y": "0", "width": _fmt(self.width), "height": _fmt(self.height)}
        if payload.mode == BackgroundMode.SOLID:
            if not payload.fill_hex:
                return False
            rect["fill"] = payload.fill_hex
            if payload.fill_alpha is not None:
                rect["fill-opacity"] = _fmt(payload.fill_alpha)
            _el("rect", rect, group)
            return True
        if payload.mode == BackgroundMode.GRADIENT:
            if payload.gradient is None:
                return False
            rect["fill"] = self.gradient(payload.gradient, z)
            _el("rect", rect, group)
            return True

        asset = self.assets.get(payload.asset_id) if payload.asset_id else None
        if asset is None:
            return False
        if payload.repeat == "repeat" and asset.width and asset.height:
            pattern_id = f"lf-pat-{z}"
            pattern = _el("pattern", {
                "id": pattern_id,
                "patternUnits": "userSpaceOnUse",
                "width": _fmt(asset.width),
                "height": _fmt(asset.height),
            }, self.defs)
            _el("image", {
                "href": asset.url,
                "width": _fmt(asset.width),
                "height": _fmt(asset.height),
            }, pattern)
            rect["fill"] = f"url(#{pattern_id})"
            _el("rect", rect, group)
            return True
        rect.pop("fill", None)
        rect["href"] = asset.url
        rect["preserveAspectRatio"] = _aspect_from_css(payload.size, payload.position)
        _el("image", rect, group)
        return True

    def text(self, parent: ET.Element, payload: TextPayload, z: int) -> bool:
        if not payload.content:
            return False
        attrs = {
            "x": "0",
            "y": "0",
            "font-family": _font_family(payload, self.fonts, self.default_font),
            "font-size": _fmt(payload.font_size),
            "text-anchor": TEXT_ANCHOR[payload.align],
            "dominant-baseline": DOMINANT_BASELINE[payload.baseline],
        }
        if payload.letter_spacing is not None:
            attrs["letter-spacing"] = _fmt(payload.letter_spacing)
        if payload.gradient is not None:
            attrs["fill"] = self.gradient(payload.gradient, z)
        else:
            attrs["fill"] = payload.fill_hex
            if payload.fill_alpha < 1:
                attrs["fill-opacity"] = _fmt(payload.fill_alpha)

        stroke = None
        if payload.stroke_hex and payload.stroke_width:
            stroke = {"stroke": payload.stroke_hex}
            if payload.stroke_alpha is not None:
                stroke["stroke-opacity"] = _fmt(payload.stroke_alpha)

        align = payload.stroke_align or StrokeAlign.CENTER
        if stroke and align == StrokeAlign.OUTSIDE:
            # Double width under the fill leaves only the outer half visible
            attrs.update(stroke)
            attrs["stroke-width"] = _fmt(payload.stroke_width * 2)
            attrs["paint-order"] = "stroke"
        elif stroke and align == StrokeAlign.CENTER:
            attrs.update(stroke)
            attrs["stroke-width"] = _fmt(payload.stroke_width)

        self._text_lines(_el("text", attrs, parent), payload)

        if stroke and align == StrokeAlign.INSIDE:
            # Double width clipped to the glyphs leaves only the inner half visible
            clip_id = f"lf-clip-{z}"
            clip = _el("clipPath", {"id": clip_id}, self.defs)
            clip_attrs = {k: v for k, v in attrs.items() if not k.startswith("fill")}
            self._text_lines(_el("text", clip_attrs, clip), payload)
            outline = dict(clip_attrs, fill="none")
            outline.update(stroke)
            outline["stroke-width"] = _fmt(payload.stroke_width * 2)
            outline["clip-path"] = f"url(#{clip_id})"
            self._text_lines(_el("text", outline, parent), payload)
        return True

    def _text_lines(self, element: ET.Element, payload: TextPayload) -> None:
        lines = payload.content.split("\n")
        if len(lines) == 1:
            element.text = payload.content
            return
        step = payload.font_size * (payload.line_height or DEFAULT_LINE_HEIGHT)
        for i, line in enumerate(lines):
            tspan = _el("tspan", {"x": "0", "dy": "0" if i == 0 else _fmt(step)}, element)
            tspan.text = line

    @staticmethod
    def _shape_box(payload: ShapePayload) -> Tuple[float, float]:
        meta = payload.meta or {}
        width, height = meta.get("width"), meta.get("height")
        if isinstance(width, (int, float)) and isinstance(height, (int, float)) and width > 0 and height > 0:
            return float(width), float(height)
        return DEFAULT_BOX

    def _shape_paint(self, payload: ShapePayload, z: int) -> Dict[str, str]:
        paint: Dict[str, str] = {}
        if payload.gradient is not None:
            paint["fill"] = self.gradient(payload.gradient, z)
        else:
            paint["fill"] = payload.fill_hex or "none"
            if payload.fill_hex and payload.fill_alpha is not None:
                paint["fill-opacity"] = _fmt(payload.fill_alpha)
        if payload.stroke_hex and payload.stroke_width:
            paint["stroke"] = payload.stroke_hex
            paint["stroke-width"] = _fmt(payload.stroke_width)
            if payload.stroke_alpha is not None:
                paint["stroke-opacity"] = _fmt(payload.stroke_alpha)
            if payload.stroke_dash:
                paint["stroke-dasharray"] = " ".join(_fmt(d) for d in payload.stroke_dash)
            if payload.line_cap is not None:
                paint["stroke-linecap"] = payload.line_cap.value
            if payload.line_join is not None:
                paint["stroke-linejoin"] = payload.line_join.value
        return paint

    def shape(self, parent: ET.Element, payload: ShapePayload, z: int) -> bool:
        box_w, box_h = self._shape_box(payload)
        kind = payload.shape_kind
        if kind == ShapeKind.RECT:
            attrs = {"x": "0", "y": "0", "width": _fmt(box_w), "height": _fmt(box_h)}
            if payload.rx is not None:
                attrs["rx"] = _fmt(payload.rx)
            if payload.ry is not None:
                attrs["ry"] = _fmt(payload.ry)
            tag = "rect"
        elif kind == ShapeKind.CIRCLE:
            attrs = {"cx": _fmt(box_w / 2), "cy": _fmt(box_h / 2), "r": _fmt(min(box_w, box_h) / 2)}
            tag = "circle"
        elif kind == ShapeKind.PATH:
            if not payload.svg_path:
                return False
            attrs = {"d": payload.svg_path}
            tag = "path"
        elif kind == ShapeKind.POLYGON:
            if not payload.points:
                return False
            if isinstance(payload.points, str):
                points = payload.points
            else:
                points = " ".join(f"{_fmt(p[0])},{_fmt(p[1])}" for p in payload.points if len(p) >= 2)
            attrs = {"points": points}
            tag = "polygon"
        else:
            assert_never(kind)
        attrs.update(self._shape_paint(payload, z))
        _el(tag, attrs, parent)
        return True

    def icon(self, parent: ET.Element, payload: IconPayload) -> bool:
        asset = self.assets.get(payload.asset_id)
        if asset is None:
            logger.warning("Icon asset %s is missing, layer skipped", payload.asset_id)
            return False
        box_w, box_h = DEFAULT_BOX
        markup = _parse_vector(asset.vector_svg) if asset.vector_svg else None
        if markup is None:
            _el("image", {
                "href": asset.url,
                "x": "0",
                "y": "0",
                "width": _fmt(box_w),
                "height": _fmt(box_h),
            }, parent)
            return True

        markup.set("x", "0")
        markup.set("y", "0")
        markup.set("width", _fmt(box_w))
        markup.set("height", _fmt(box_h))
        if payload.allow_recolor and payload.tint_hex:
            recolor(markup, payload.tint_hex, payload.tint_alpha)
        parent.append(markup)
        return True

    def _image_box(self, payload: ImagePayload) -> Tuple[float, float]:
        asset = self.assets.get(payload.asset_id)
        if asset is not None and asset.width and asset.height:
            return float(asset.width), float(asset.height)
        return DEFAULT_BOX

    def image(self, parent: ET.Element, payload: ImagePayload, box: Tuple[float, float], z: int) -> bool:
        asset = self.assets.get(payload.asset_id)
        if asset is None:
            logger.warning("Image asset %s is missing, layer skipped", payload.asset_id)
            return False
        box_w, box_h = box
        aspect = FIT_ASPECT.get(payload.fit) if payload.fit else None

        if payload.crop is not None:
            crop = payload.crop
            holder = _el("svg", {
                "x": "0",
                "y": "0",
                "width": _fmt(box_w),
                "height": _fmt(box_h),
                "viewBox": " ".join(_fmt(v) for v in (
                    crop.x * box_w, crop.y * box_h, crop.w * box_w, crop.h * box_h,
                )),
                "preserveAspectRatio": aspect,
            }, parent)
            target = _el("image", {
                "href": asset.url,
                "width": _fmt(box_w),
                "height": _fmt(box_h),
                "preserveAspectRatio": "none",
            }, holder)
        else:
            holder = target = _el("image", {
                "href": asset.url,
                "x": "0",
                "y": "0",
                "width": _fmt(box_w),
                "height": _fmt(box_h),
                "preserveAspectRatio": aspect,
            }, parent)

        if payload.rounding:
            clip_id = f"lf-clip-{z}"
            clip = _el("clipPath", {"id": clip_id}, self.defs)
            _el("rect", {
                "x": "0",
                "y": "0",
                "width": _fmt(box_w),
                "height": _fmt(box_h),
                "rx": _fmt(payload.rounding),
                "ry": _fmt(payload.rounding),
            }, clip)
            holder.set("clip-path", f"url(#{clip_id})")

        effects = self._image_effects(payload, z)
        if effects:
            target.set("filter", effects)
        return True

    def _image_effects(self, payload: ImagePayload, z: int) -> Optional[str]:
        """Blur, then brightness, then contrast; identity values emit nothing."""
        blur = payload.blur or 0
        brightness = payload.brightness if payload.brightness is not None else 1.0
        contrast = payload.contrast if payload.contrast is not None else 1.0
        if not blur and brightness == 1.0 and contrast == 1.0:
            return None
        filter_id = f"lf-fx-{z}"
        element = _el("filter", {"id": filter_id}, self.defs)
        if blur:
            _el("feGaussianBlur", {"stdDeviation": _fmt(blur)}, element)
        for slope, intercept in ((brightness, 0.0), (contrast, (1 - contrast) / 2)):
            if slope == 1.0 and intercept == 0.0:
                continue
            transfer = _el("feComponentTransfer", parent=element)
            for channel in ("feFuncR", "feFuncG", "feFuncB"):
                _el(channel, {
                    "type": "linear",
                    "slope": _fmt(slope),
                    "intercept": _fmt(intercept),
                }, transfer)
        return f"url(#{filter_id})"


# ══════════════════════════════════════════════════════════════════════════
# Icon markup
# ══════════════════════════════════════════════════════════════════════════

_STYLE_FILL = re.compile(r"(^|;)\s*fill\s*:[^;]*")
_STYLE_FILL_OPACITY = re.compile(r"(^|;)\s*fill-opacity\s*:[^;]*;?")


def _parse_vector(markup: str) -> Optional[ET.Element]:
    """Parse inline icon markup into a namespaced <svg> element, or None."""
    try:
        root = ET.fromstring(markup)
    except ET.ParseError as e:
        logger.warning("Icon markup could not be parsed, using image reference: %s", e)
        return None
    for element in root.iter():
        if isinstance(element.tag, str) and not element.tag.startswith("{"):
            element.tag = f"{{{SVG_NS}}}{element.tag}"
    if root.tag != f"{{{SVG_NS}}}svg":
        wrapper = _el("svg")
        wrapper.append(root)
        root = wrapper
    root.attrib.pop("id", None)
    return root


def recolor(root: ET.Element, tint_hex: str, tint_alpha: Optional[float] = None) -> None:
    """
    Override every painted fill in an icon tree with the tint color.

    Fills set to "none" stay unpainted. `currentColor` in fill or stroke
    resolves to the tint. The root fill covers elements that inherit.
    With a tint alpha, per-element fill-opacity is dropped so the root
    value applies everywhere.
    """
    for element in root.iter():
        if tint_alpha is not None:
            element.attrib.pop("fill-opacity", None)
        fill = element.get("fill")
        if fill is not None and fill.strip() != "none":
            element.set("fill", tint_hex)
        if element.get("stroke") == "currentColor":
            element.set("stroke", tint_hex)
        style = element.get("style")
        if style:
            style = style.replace("currentColor", tint_hex)
            style = _STYLE_FILL.sub(
                lambda m: m.group(0) if m.group(0).split(":", 1)[1].strip() == "none"
                else f"{m.group(1)}fill:{tint_hex}",
                style,
            )
            if tint_alpha is not None:
                style = _STYLE_FILL_OPACITY.sub(lambda m: m.group(1), style).strip()
            element.set("style", style)
    root.set("fill", tint_hex)
    if tint_alpha is not None:
        root.set("fill-opacity", _fmt(tint_alpha))


# ══════════════════════════════════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════════════════════════════════


def render(
    logo,
    layers: Sequence[LayerOut],
    width: Optional[float] = None,
    height: Optional[float] = None,
    assets: Optional[Mapping[uuid.UUID, AssetOut]] = None,
    fonts: Optional[Mapping[uuid.UUID, FontOut]] = None,
    default_font: str = "sans-serif",
    deadline: Optional[float] = None,
) -> str:
    """
    Render a logo to an SVG document.

    Args:
        logo:         anything with canvas_w / canvas_h (Logo row or LogoOut)
        layers:       the logo's layers, in any order
        width/height: output size; defaults to the logo canvas
        assets:       assets referenced by ICON/IMAGE/BACKGROUND layers
        fonts:        fonts referenced by TEXT layers
        default_font: face used when a text layer's font is not available
        deadline:     time.monotonic() value after which rendering aborts

    Returns:
        The SVG document, XML declaration included.

    Raises:
        RenderTimeoutError: the deadline passed before the document was complete
    """
    width = float(width or logo.canvas_w)
    height = float(height or logo.canvas_h)
    state = _Render(width, height, assets or {}, fonts or {}, default_font)

    for layer in sorted(layers, key=lambda item: item.z_index):
        if deadline is not None and time.monotonic() > deadline:
            raise RenderTimeoutError(context={"rendered_layers": len(state.root) - 1})
        if not layer.is_visible:
            continue
        state.layer(layer)

    if len(state.defs) == 0:
        state.root.remove(state.defs)
    return XML_DECLARATION + ET.tostring(state.root, encoding="unicode")
