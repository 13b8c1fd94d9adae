"""
LogoForge Backend — API Tests
===============================

What we test:
    ✅ Health check reports database and media status
    ✅ Logo, layer, version, template and asset endpoints end to end
    ✅ Error envelope: status code, machine code, details, request id
    ✅ Media host failures map to 502/503 and leave no asset behind
    ✅ Render timeouts map to 504
    ✅ Rate limiting returns 429 with Retry-After

How:
    Requests go through the real app (middleware, handlers, routers) via
    httpx's ASGITransport; the database is a per-test SQLite file and media
    is stored by the local backend in a temp directory.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from logoforge.exceptions import CircuitBreakerOpenError, RenderTimeoutError, UpstreamMediaError
from logoforge.middleware.rate_limit import RateLimitMiddleware


async def _create_logo(client, make_layer, names=("A", "B", "C")):
    response = await client.post("/api/logos", json={
        "title": "Acme",
        "canvas_w": 400,
        "canvas_h": 200,
        "layers": [make_layer("SHAPE", name=name) for name in names],
    })
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "connected"
        assert body["media_backend"] == "local"
        assert body["status"] in ("healthy", "degraded")
        assert "X-Request-ID" in response.headers


class TestLogoEndpoints:

    @pytest.mark.asyncio
    async def test_create_and_get(self, test_client, make_layer):
        created = await _create_logo(test_client, make_layer)
        assert [layer["z_index"] for layer in created["layers"]] == [0, 1, 2]

        response = await test_client.get(f"/api/logos/{created['id']}")
        assert response.status_code == 200
        assert response.json()["canvas_w"] == 400

    @pytest.mark.asyncio
    async def test_list_sets_total_count(self, test_client, make_layer):
        await _create_logo(test_client, make_layer)
        response = await test_client.get("/api/logos", params={"limit": 10})
        assert response.status_code == 200
        assert response.headers["X-Total-Count"] == "1"
        assert response.json()["items"][0]["title"] == "Acme"

    @pytest.mark.asyncio
    async def test_unknown_logo_is_404(self, test_client):
        response = await test_client.get(f"/api/logos/{uuid.uuid4()}")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["details"]["resource"] == "logo"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_out_of_range_field_is_422(self, test_client, make_layer):
        response = await test_client.post("/api/logos", json={
            "title": "Bad", "layers": [make_layer("SHAPE", opacity=2)],
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_z_index_collision_is_400(self, test_client, make_layer):
        response = await test_client.post("/api/logos", json={
            "title": "Bad",
            "layers": [make_layer("SHAPE", z_index=0), make_layer("TEXT", z_index=0)],
        })
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_create_without_layers(self, test_client):
        response = await test_client.post("/api/logos", json={"title": "x", "canvas_w": 100, "canvas_h": 100})
        assert response.status_code == 201, response.text
        assert response.json()["layers"] == []

    @pytest.mark.asyncio
    async def test_missing_asset_reference_is_404(self, test_client, make_layer):
        response = await test_client.post("/api/logos", json={
            "title": "Dangling", "layers": [make_layer("SHAPE"), make_layer("ICON")],
        })
        assert response.status_code == 404
        assert response.json()["details"]["resource"] == "asset"
        listed = await test_client.get("/api/logos")
        assert listed.json()["total_count"] == 0

    @pytest.mark.asyncio
    async def test_update_and_delete(self, test_client, make_layer):
        created = await _create_logo(test_client, make_layer)
        response = await test_client.patch(f"/api/logos/{created['id']}", json={"title": "Renamed"})
        assert response.json()["title"] == "Renamed"

        assert (await test_client.delete(f"/api/logos/{created['id']}")).status_code == 204
        assert (await test_client.get(f"/api/logos/{created['id']}")).status_code == 404


class TestLayerEndpoints:

    @pytest.mark.asyncio
    async def test_add_and_reorder(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        response = await test_client.post(
            f"/api/logos/{logo['id']}/layers", json=make_layer("TEXT", name="T", z_index=0)
        )
        assert response.status_code == 201
        layer_id = response.json()["id"]

        response = await test_client.post(f"/api/layers/{layer_id}/reorder", json={"new_index": 3})
        assert response.status_code == 200
        assert [layer["name"] for layer in response.json()["layers"]] == ["A", "B", "C", "T"]

    @pytest.mark.asyncio
    async def test_reorder_out_of_range(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        layer_id = logo["layers"][0]["id"]
        response = await test_client.post(f"/api/layers/{layer_id}/reorder", json={"new_index": 3})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "out_of_range"
        assert body["details"] == {"index": 3, "size": 3}

        unchanged = (await test_client.get(f"/api/logos/{logo['id']}")).json()
        assert [layer["name"] for layer in unchanged["layers"]] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_patch_layer_and_payload(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        layer_id = logo["layers"][1]["id"]

        response = await test_client.patch(f"/api/layers/{layer_id}", json={"rotation_deg": 45})
        assert response.json()["rotation_deg"] == 45

        response = await test_client.patch(
            f"/api/layers/{layer_id}/payload", json={"kind": "SHAPE", "shape_kind": "circle"}
        )
        assert response.status_code == 200
        assert response.json()["payload"]["shape_kind"] == "circle"
        assert response.json()["payload"]["fill_hex"] == "#ff0000"

    @pytest.mark.asyncio
    async def test_payload_kind_mismatch_is_400(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        response = await test_client.patch(
            f"/api/layers/{logo['layers'][0]['id']}/payload", json={"kind": "TEXT", "content": "x"}
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "kind"

    @pytest.mark.asyncio
    async def test_add_layer_with_missing_asset_is_404(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer, names=("A",))
        response = await test_client.post(f"/api/logos/{logo['id']}/layers", json=make_layer("ICON"))
        assert response.status_code == 404
        assert response.json()["details"]["resource"] == "asset"
        layers = (await test_client.get(f"/api/logos/{logo['id']}")).json()["layers"]
        assert [layer["name"] for layer in layers] == ["A"]

    @pytest.mark.asyncio
    async def test_payload_with_missing_font_is_404(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer, names=("A",))
        added = await test_client.post(f"/api/logos/{logo['id']}/layers", json=make_layer("TEXT"))
        assert added.status_code == 201

        response = await test_client.patch(
            f"/api/layers/{added.json()['id']}/payload",
            json={"kind": "TEXT", "font_id": str(uuid.uuid4())},
        )
        assert response.status_code == 404
        assert response.json()["details"]["resource"] == "font"
        layer = (await test_client.get(f"/api/layers/{added.json()['id']}")).json()
        assert layer["payload"]["font_id"] is None

    @pytest.mark.asyncio
    async def test_delete_layer_closes_gap(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        response = await test_client.delete(f"/api/layers/{logo['layers'][0]['id']}")
        assert response.status_code == 204
        layers = (await test_client.get(f"/api/logos/{logo['id']}")).json()["layers"]
        assert [(layer["name"], layer["z_index"]) for layer in layers] == [("B", 0), ("C", 1)]


class TestVersionsAndTemplates:

    @pytest.mark.asyncio
    async def test_save_and_restore_version(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        response = await test_client.post(f"/api/logos/{logo['id']}/versions", json={"note": "first"})
        assert response.status_code == 201
        version_id = response.json()["id"]

        await test_client.delete(f"/api/layers/{logo['layers'][2]['id']}")
        await test_client.patch(f"/api/logos/{logo['id']}", json={"canvas_w": 100})

        versions = (await test_client.get(f"/api/logos/{logo['id']}/versions")).json()
        assert versions["total_count"] == 1

        detail = (await test_client.get(f"/api/logos/{logo['id']}/versions/{version_id}")).json()
        assert len(detail["snapshot"]["layers"]) == 3

        restored = await test_client.post(f"/api/logos/{logo['id']}/versions/{version_id}/restore")
        assert restored.status_code == 200
        body = restored.json()
        assert body["canvas_w"] == 400
        assert [layer["name"] for layer in body["layers"]] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_template_flow(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        category = await test_client.post("/api/templates/categories", json={"name": "Tech"})
        assert category.status_code == 201
        duplicate = await test_client.post("/api/templates/categories", json={"name": "Tech"})
        assert duplicate.status_code == 400

        template = await test_client.post("/api/templates", json={
            "title": "Starter", "base_logo_id": logo["id"], "category_id": category.json()["id"],
        })
        assert template.status_code == 201

        listed = (await test_client.get("/api/templates", params={"search": "start"})).json()
        assert listed["total_count"] == 1

        owner = str(uuid.uuid4())
        used = await test_client.post(
            f"/api/templates/{template.json()['id']}/use", json={"owner_id": owner, "title": "Mine"}
        )
        assert used.status_code == 201
        copy = used.json()
        assert copy["owner_id"] == owner
        assert copy["category_id"] == category.json()["id"]
        assert [layer["name"] for layer in copy["layers"]] == ["A", "B", "C"]
        assert copy["id"] != logo["id"]

    @pytest.mark.asyncio
    async def test_template_from_empty_logo(self, test_client):
        base = await test_client.post("/api/logos", json={"title": "Blank"})
        assert base.status_code == 201
        template = await test_client.post(
            "/api/templates", json={"title": "Blank", "base_logo_id": base.json()["id"]}
        )
        assert template.status_code == 201

        used = await test_client.post(
            f"/api/templates/{template.json()['id']}/use",
            json={"owner_id": str(uuid.uuid4()), "title": "Mine"},
        )
        assert used.status_code == 201, used.text
        assert used.json()["layers"] == []


class TestAssetEndpoints:

    @pytest.mark.asyncio
    async def test_upload_serve_download_delete(self, test_client, png_bytes):
        response = await test_client.post(
            "/api/assets/upload",
            files={"file": ("mark.png", png_bytes, "image/png")},
            data={"name": "Mark"},
        )
        assert response.status_code == 201, response.text
        asset = response.json()
        assert (asset["kind"], asset["width"], asset["height"], asset["storage"]) == ("raster", 8, 6, "local")
        assert len(asset["checksum_sha256"]) == 64

        served = await test_client.get(asset["url"])
        assert served.status_code == 200
        assert served.content == png_bytes

        link = (await test_client.get(f"/api/assets/{asset['id']}/download")).json()
        assert link["url"].startswith(asset["url"])

        assert (await test_client.delete(f"/api/assets/{asset['id']}")).status_code == 204
        assert (await test_client.get(asset["url"])).status_code == 404

    @pytest.mark.asyncio
    async def test_upload_rejects_unsupported_type(self, test_client):
        response = await test_client.post(
            "/api/assets/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "file"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502_and_writes_nothing(self, test_client, png_bytes):
        failing = AsyncMock()
        failing.upload.side_effect = UpstreamMediaError(retry_after=30)
        with patch("logoforge.services.asset_service.media_service", failing):
            response = await test_client.post(
                "/api/assets/upload", files={"file": ("mark.png", png_bytes, "image/png")}
            )
        assert response.status_code == 502
        assert response.json()["error"] == "upstream_media_error"
        assert "details" not in response.json() or response.json()["details"] is None
        assert response.headers["Retry-After"] == "30"

        listed = (await test_client.get("/api/assets")).json()
        assert listed["total_count"] == 0

    @pytest.mark.asyncio
    async def test_open_circuit_is_503(self, test_client, png_bytes):
        failing = AsyncMock()
        failing.upload.side_effect = CircuitBreakerOpenError(recovery_time=42)
        with patch("logoforge.services.asset_service.media_service", failing):
            response = await test_client.post(
                "/api/assets/upload", files={"file": ("mark.png", png_bytes, "image/png")}
            )
        assert response.status_code == 503
        assert response.json()["details"] == {"recovery_time": 42}
        assert response.headers["Retry-After"] == "42"

    @pytest.mark.asyncio
    async def test_font_catalogue(self, test_client):
        payload = {"family": "Inter", "weight": 700, "url": "https://fonts.example/inter-700.woff2"}
        assert (await test_client.post("/api/fonts", json=payload)).status_code == 201
        assert (await test_client.post("/api/fonts", json=payload)).status_code == 400
        fonts = (await test_client.get("/api/fonts", params={"family": "int"})).json()
        assert [font["weight"] for font in fonts] == [700]


class TestExportEndpoints:

    @pytest.mark.asyncio
    async def test_export_svg(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        response = await test_client.get(f"/api/logos/{logo['id']}/export.svg")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("image/svg+xml")
        assert "attachment" in response.headers["content-disposition"]
        assert response.text.startswith("<?xml")
        assert response.text.count('data-kind="SHAPE"') == 3

    @pytest.mark.asyncio
    async def test_export_png_and_thumbnail(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        export = await test_client.get(f"/api/logos/{logo['id']}/export.png", params={"width": 800})
        assert export.status_code == 200, export.text
        body = export.json()
        assert (body["width"], body["height"], body["dpi"]) == (800, 200, 72)
        assert body["download_url"].endswith(".svg")

        thumb = await test_client.post(f"/api/logos/{logo['id']}/thumbnail", params={"size": 64})
        assert thumb.status_code == 200
        stored = (await test_client.get(f"/api/logos/{logo['id']}")).json()
        assert stored["thumbnail_url"] == thumb.json()["thumbnail_url"]

    @pytest.mark.asyncio
    async def test_render_timeout_is_504(self, test_client, make_layer):
        logo = await _create_logo(test_client, make_layer)
        with patch("logoforge.services.export_service.renderer.render", side_effect=RenderTimeoutError()):
            response = await test_client.get(f"/api/logos/{logo['id']}/export.svg")
        assert response.status_code == 504
        assert response.json()["error"] == "render_timeout"


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_limit_returns_429(self):
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, requests=2, window=60)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            assert (await client.get("/ping")).status_code == 200
            assert (await client.get("/ping")).status_code == 200
            response = await client.get("/ping")
        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"
        assert int(response.headers["Retry-After"]) > 0
