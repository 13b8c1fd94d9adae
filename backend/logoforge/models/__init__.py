"""
LogoForge Backend — ORM Models
================================

Importing this package registers every table with `Base.metadata` so that
string-based relationships resolve and Alembic/test `create_all()` see the
whole schema.
"""

from logoforge.models.asset import Asset, Font  # noqa: F401
from logoforge.models.layer import (  # noqa: F401
    Layer,
    LayerBackground,
    LayerIcon,
    LayerImage,
    LayerShape,
    LayerText,
)
from logoforge.models.logo import Logo, LogoVersion  # noqa: F401
from logoforge.models.template import Category, Template  # noqa: F401
