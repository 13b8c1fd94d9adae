"""
LogoForge Backend — Shared Enumerations
=========================================

What:  The closed value sets used by both the ORM models and the API schemas.
Why:   One definition per vocabulary so that the database enum types, the
       pydantic validation and the renderer's exhaustive matching agree.
How:   `str` enums; the database stores `.value` (see `db_enum`).
"""

import enum
from typing import Type

from sqlalchemy import Enum as SAEnum


class LayerKind(str, enum.Enum):
    BACKGROUND = "BACKGROUND"
    TEXT = "TEXT"
    ICON = "ICON"
    SHAPE = "SHAPE"
    IMAGE = "IMAGE"


class BlendMode(str, enum.Enum):
    NORMAL = "normal"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    OVERLAY = "overlay"
    DARKEN = "darken"
    LIGHTEN = "lighten"
    COLOR_BURN = "color-burn"
    COLOR_DODGE = "color-dodge"
    DIFFERENCE = "difference"
    EXCLUSION = "exclusion"
    HUE = "hue"
    SATURATION = "saturation"
    COLOR = "color"
    LUMINOSITY = "luminosity"
    SOFT_LIGHT = "soft-light"
    HARD_LIGHT = "hard-light"


class TextAlign(str, enum.Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


class TextBaseline(str, enum.Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"
    ALPHABETIC = "alphabetic"


class StrokeAlign(str, enum.Enum):
    CENTER = "center"
    INSIDE = "inside"
    OUTSIDE = "outside"


class ShapeKind(str, enum.Enum):
    RECT = "rect"
    CIRCLE = "circle"
    PATH = "path"
    POLYGON = "polygon"


class LineCap(str, enum.Enum):
    BUTT = "butt"
    ROUND = "round"
    SQUARE = "square"


class LineJoin(str, enum.Enum):
    MITER = "miter"
    ROUND = "round"
    BEVEL = "bevel"


class ImageFit(str, enum.Enum):
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"


class BackgroundMode(str, enum.Enum):
    SOLID = "solid"
    GRADIENT = "gradient"
    IMAGE = "image"


class AssetKind(str, enum.Enum):
    RASTER = "raster"
    VECTOR = "vector"
    FONT = "font"
    PATTERN = "pattern"


def db_enum(enum_cls: Type[enum.Enum], name: str) -> SAEnum:
    """Column type persisting the enum's values (not its member names)."""
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
