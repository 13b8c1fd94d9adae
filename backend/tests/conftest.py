"""
LogoForge Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any logoforge import so the
       settings singleton, the engine and the media service pick up test
       values. Persistence tests run against a file-backed SQLite database
       (aiosqlite) created fresh for every test, with foreign keys enforced.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── engine:          async engine on tmp_path/test.db, schema created
    ├── db:              AsyncSession bound to that engine
    ├── mock_db_session: AsyncMock session for pure service unit tests
    ├── test_client:     httpx AsyncClient over ASGITransport, DB overridden
    ├── make_layer:      factory for valid layer dicts of every kind
    └── png_bytes:       a real 8×6 RGBA PNG (Pillow)
"""

import io
import os
import tempfile
import uuid
from typing import Any, AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any logoforge import)
# ══════════════════════════════════════════════════════════════════════════
_storage = tempfile.mkdtemp(prefix="logoforge_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_storage, 'app.db')}"
os.environ["MEDIA_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = os.path.join(_storage, "media")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RENDER_TIMEOUT_SECONDS"] = "0"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import logoforge.models  # noqa: E402,F401
from logoforge.database import Base, get_db_session  # noqa: E402


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh schema per test; SQLite only enforces ON DELETE with the pragma on."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    event.listen(test_engine.sync_engine, "connect", _enable_foreign_keys)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    A MagicMock that simulates AsyncSession behavior.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = row
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient talking to the app in-process.

    get_db_session is overridden to use the per-test database, with the same
    commit-on-success / rollback-on-error behaviour as the real dependency.
    """
    from logoforge.main import app

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ══════════════════════════════════════════════════════════════════════════
# Data Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_layer():
    """
    Factory for valid layer dicts.

    Usage:
        make_layer("TEXT", content="Acme", z_index=2, opacity=0.5)
        Keys that belong to the payload go into the payload; others are
        common layer fields.
    """
    payload_defaults: Dict[str, Dict[str, Any]] = {
        "TEXT": {"content": "Acme", "font_size": 48, "fill_hex": "#112233"},
        "SHAPE": {"shape_kind": "rect", "fill_hex": "#ff0000"},
        "BACKGROUND": {"mode": "solid", "fill_hex": "#ffffff"},
        "ICON": {"asset_id": str(uuid.uuid4())},
        "IMAGE": {"asset_id": str(uuid.uuid4())},
    }
    common_fields = {
        "name", "x_norm", "y_norm", "scale", "rotation_deg", "anchor_x", "anchor_y",
        "opacity", "blend_mode", "is_visible", "is_locked", "common_style", "z_index",
    }

    def _make(kind: str = "SHAPE", **overrides) -> Dict[str, Any]:
        payload = {"kind": kind, **payload_defaults[kind]}
        layer: Dict[str, Any] = {"kind": kind}
        for key, value in overrides.items():
            if key in common_fields:
                layer[key] = value
            else:
                payload[key] = value
        layer["payload"] = payload
        return layer

    return _make


@pytest.fixture
def png_bytes() -> bytes:
    """An 8×6 RGBA PNG: left half red, right half transparent blue."""
    img = Image.new("RGBA", (8, 6), (255, 0, 0, 255))
    for x in range(4, 8):
        for y in range(6):
            img.putpixel((x, y), (0, 0, 255, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def svg_icon_bytes() -> bytes:
    return (
        b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24">'
        b'<path d="M0 0h24v24H0z" fill="#000000"/>'
        b'<circle cx="12" cy="12" r="6" style="fill:#ff0000;stroke:#00ff00"/>'
        b"</svg>"
    )
