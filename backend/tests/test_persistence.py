"""
LogoForge Backend — Persistence Tests (services on SQLite)
============================================================

What we test:
    ✅ Logos are created with their layers all-or-nothing, indices dense
    ✅ Insert / delete / reorder keep z_index dense and persist
    ✅ Concurrent reorders on one logo leave a valid order
    ✅ Deleting a logo removes layers, payload rows and versions
    ✅ Template use produces an independent deep copy
    ✅ Version save and restore
    ✅ Partial payload updates, kind mismatches
    ✅ Assets referenced by layers cannot be deleted

How:
    Each test gets a fresh SQLite database (see conftest.py). Services are
    called directly with a real AsyncSession.
"""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select

from logoforge.exceptions import ConflictError, NotFoundError, OutOfRangeError, ValidationError
from logoforge.models.enums import AssetKind
from logoforge.models.layer import Layer, LayerShape, LayerText
from logoforge.models.logo import Logo, LogoVersion
from logoforge.schemas.asset import AssetCreate
from logoforge.schemas.layer import LayerCreate, LayerUpdate, PayloadPatch
from logoforge.schemas.logo import LogoCreate, VersionCreate
from logoforge.schemas.template import TemplateCreate, TemplateUseRequest
from logoforge.services.asset_service import asset_service
from logoforge.services.layer_service import layer_service
from logoforge.services.logo_service import logo_service
from logoforge.services.template_service import template_service


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


async def _z_order(session_factory, logo_id):
    """(name, z_index) pairs as committed, read through a fresh session."""
    async with session_factory() as session:
        result = await session.execute(
            select(Layer.name, Layer.z_index).where(Layer.logo_id == logo_id).order_by(Layer.z_index)
        )
        return [tuple(row) for row in result.all()]


async def _logo_with(db, make_layer, names):
    data = LogoCreate(
        title="Acme",
        layers=[LayerCreate.model_validate(make_layer("SHAPE", name=name)) for name in names],
    )
    detail = await logo_service.create_logo(db, data)
    await db.commit()
    return detail


class TestLogoCreation:

    @pytest.mark.asyncio
    async def test_layers_get_dense_indices(self, db, make_layer):
        detail = await _logo_with(db, make_layer, ["a", "b", "c"])
        assert [(layer.name, layer.z_index) for layer in detail.layers] == [("a", 0), ("b", 1), ("c", 2)]
        assert await _count(db, LayerShape) == 3

    @pytest.mark.asyncio
    async def test_colliding_indices_write_nothing(self, db, make_layer):
        data = LogoCreate(title="Bad", layers=[
            LayerCreate.model_validate(make_layer("SHAPE", z_index=0)),
            LayerCreate.model_validate(make_layer("TEXT", z_index=0)),
        ])
        with pytest.raises(ValidationError):
            await logo_service.create_logo(db, data)
        await db.rollback()
        assert await _count(db, Logo) == 0
        assert await _count(db, Layer) == 0

    @pytest.mark.asyncio
    async def test_get_unknown_logo(self, db):
        with pytest.raises(NotFoundError):
            await logo_service.get_logo(db, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_is_paginated_newest_first(self, db, make_layer):
        for name in ("one", "two", "three"):
            await logo_service.create_logo(db, LogoCreate(title=name))
            await db.commit()
        page = await logo_service.list_logos(db, limit=2)
        assert page.total_count == 3
        assert page.has_more is True
        assert len(page.items) == 2


class TestZOrderPersistence:

    @pytest.mark.asyncio
    async def test_reorder_persists(self, db, session_factory, make_layer):
        detail = await _logo_with(db, make_layer, ["A", "B", "C", "D"])
        a, d = detail.layers[0], detail.layers[3]

        await layer_service.reorder_layer(db, a.id, 2)
        assert await _z_order(session_factory, detail.id) == [("B", 0), ("C", 1), ("A", 2), ("D", 3)]

        response = await layer_service.reorder_layer(db, d.id, 0)
        assert [layer.name for layer in response.layers] == ["D", "B", "C", "A"]
        assert await _z_order(session_factory, detail.id) == [("D", 0), ("B", 1), ("C", 2), ("A", 3)]

    @pytest.mark.asyncio
    async def test_out_of_range_changes_nothing(self, db, session_factory, make_layer):
        detail = await _logo_with(db, make_layer, ["A", "B"])
        with pytest.raises(OutOfRangeError):
            await layer_service.reorder_layer(db, detail.layers[0].id, 2)
        assert await _z_order(session_factory, detail.id) == [("A", 0), ("B", 1)]

    @pytest.mark.asyncio
    async def test_insert_and_delete(self, db, session_factory, make_layer):
        detail = await _logo_with(db, make_layer, ["A", "B"])

        added = await layer_service.add_layer(
            db, detail.id, LayerCreate.model_validate(make_layer("TEXT", name="T", z_index=1))
        )
        assert added.z_index == 1
        assert await _z_order(session_factory, detail.id) == [("A", 0), ("T", 1), ("B", 2)]

        await layer_service.add_layer(db, detail.id, LayerCreate.model_validate(make_layer("SHAPE", name="top")))
        assert (await _z_order(session_factory, detail.id))[-1] == ("top", 3)

        await layer_service.delete_layer(db, detail.layers[0].id)
        assert await _z_order(session_factory, detail.id) == [("T", 0), ("B", 1), ("top", 2)]
        assert await _count(db, LayerShape) == 2

    @pytest.mark.asyncio
    async def test_insert_past_top_rejected(self, db, make_layer):
        detail = await _logo_with(db, make_layer, ["A"])
        with pytest.raises(OutOfRangeError):
            await layer_service.add_layer(
                db, detail.id, LayerCreate.model_validate(make_layer("SHAPE", z_index=5))
            )

    @pytest.mark.asyncio
    async def test_add_layer_to_unknown_logo(self, db, make_layer):
        with pytest.raises(NotFoundError):
            await layer_service.add_layer(db, uuid.uuid4(), LayerCreate.model_validate(make_layer("SHAPE")))

    @pytest.mark.asyncio
    async def test_concurrent_reorders_stay_dense(self, db, session_factory, make_layer):
        detail = await _logo_with(db, make_layer, ["A", "B", "C", "D", "E"])
        moves = [(detail.layers[0].id, 4), (detail.layers[4].id, 0), (detail.layers[2].id, 1)]

        async def move(layer_id, index):
            async with session_factory() as session:
                await layer_service.reorder_layer(session, layer_id, index)

        await asyncio.gather(*(move(layer_id, index) for layer_id, index in moves))

        order = await _z_order(session_factory, detail.id)
        assert [z for _, z in order] == [0, 1, 2, 3, 4]
        assert sorted(name for name, _ in order) == ["A", "B", "C", "D", "E"]


class TestLayerUpdates:

    @pytest.mark.asyncio
    async def test_update_common_fields(self, db, make_layer):
        detail = await _logo_with(db, make_layer, ["A"])
        layer = await layer_service.update_layer(
            db, detail.layers[0].id, LayerUpdate(opacity=0.25, name="renamed")
        )
        assert (layer.opacity, layer.name, layer.x_norm) == (0.25, "renamed", 0.5)

    @pytest.mark.asyncio
    async def test_partial_payload_update_merges(self, db, make_layer):
        detail = await _logo_with(db, make_layer, ["A"])
        patch = PayloadPatch.model_validate({"kind": "SHAPE", "stroke_hex": "#00ff00", "stroke_width": 3})
        layer = await layer_service.update_payload(db, detail.layers[0].id, patch.root)
        assert layer.payload.stroke_hex == "#00ff00"
        assert layer.payload.fill_hex == "#ff0000"
        assert layer.payload.shape_kind.value == "rect"

    @pytest.mark.asyncio
    async def test_payload_kind_mismatch(self, db, make_layer):
        detail = await _logo_with(db, make_layer, ["A"])
        patch = PayloadPatch.model_validate({"kind": "TEXT", "content": "nope"})
        with pytest.raises(ValidationError) as exc_info:
            await layer_service.update_payload(db, detail.layers[0].id, patch.root)
        assert exc_info.value.field == "kind"


class TestCascadesAndCopies:

    @pytest.mark.asyncio
    async def test_delete_logo_cascades(self, db, make_layer):
        data = LogoCreate(title="Doomed", layers=[
            LayerCreate.model_validate(make_layer("SHAPE")),
            LayerCreate.model_validate(make_layer("TEXT")),
        ])
        detail = await logo_service.create_logo(db, data)
        await logo_service.save_version(db, detail.id, VersionCreate(note="v1"))
        await db.commit()

        await logo_service.delete_logo(db, detail.id)
        await db.commit()

        for model in (Logo, Layer, LayerShape, LayerText, LogoVersion):
            assert await _count(db, model) == 0, model.__name__

    @pytest.mark.asyncio
    async def test_template_use_is_an_independent_copy(self, db, session_factory, make_layer):
        base = await _logo_with(db, make_layer, ["A", "B"])
        template = await template_service.create_template(
            db, TemplateCreate(title="Starter", base_logo_id=base.id)
        )
        await db.commit()
        owner = uuid.uuid4()

        copy = await template_service.use_template(
            db, template.id, TemplateUseRequest(owner_id=owner, title="Mine")
        )
        await db.commit()

        assert copy.id != base.id
        assert (copy.owner_id, copy.title, copy.is_template) == (owner, "Mine", False)
        assert [layer.name for layer in copy.layers] == ["A", "B"]
        assert not {layer.id for layer in copy.layers} & {layer.id for layer in base.layers}

        await layer_service.reorder_layer(db, copy.layers[0].id, 1)
        await layer_service.update_layer(db, copy.layers[1].id, LayerUpdate(opacity=0.1))
        await db.commit()
        assert await _z_order(session_factory, base.id) == [("A", 0), ("B", 1)]
        assert (await logo_service.get_logo(db, base.id)).layers[1].opacity == 1.0

    @pytest.mark.asyncio
    async def test_version_restore(self, db, session_factory, make_layer):
        detail = await _logo_with(db, make_layer, ["A", "B"])
        version = await logo_service.save_version(db, detail.id, VersionCreate())
        await db.commit()

        await layer_service.delete_layer(db, detail.layers[0].id)
        await layer_service.add_layer(db, detail.id, LayerCreate.model_validate(make_layer("TEXT", name="T")))
        assert await _z_order(session_factory, detail.id) == [("B", 0), ("T", 1)]

        restored = await logo_service.restore_version(db, detail.id, version.id)
        assert restored.id == detail.id
        assert [(layer.name, layer.z_index) for layer in restored.layers] == [("A", 0), ("B", 1)]
        assert await _z_order(session_factory, detail.id) == [("A", 0), ("B", 1)]
        assert await _count(db, LayerText) == 0

    @pytest.mark.asyncio
    async def test_referenced_asset_cannot_be_deleted(self, db, make_layer):
        asset = await asset_service.create_asset(db, AssetCreate(
            kind=AssetKind.RASTER, name="photo", storage="external",
            url="https://example.com/photo.png", mime_type="image/png",
        ))
        logo = await logo_service.create_logo(db, LogoCreate(title="With image", layers=[
            LayerCreate.model_validate(make_layer("IMAGE", asset_id=str(asset.id))),
        ]))
        await db.commit()

        with pytest.raises(ConflictError):
            await asset_service.delete_asset(db, asset.id)

        await logo_service.delete_logo(db, logo.id)
        await asset_service.delete_asset(db, asset.id)
        await db.commit()
        with pytest.raises(NotFoundError):
            await asset_service.get_asset(db, asset.id)

    @pytest.mark.asyncio
    async def test_restore_with_deleted_asset_changes_nothing(self, db, session_factory, make_layer):
        asset = await asset_service.create_asset(db, AssetCreate(
            kind=AssetKind.RASTER, name="photo", storage="external",
            url="https://example.com/photo.png", mime_type="image/png",
        ))
        detail = await logo_service.create_logo(db, LogoCreate(title="With image", layers=[
            LayerCreate.model_validate(make_layer("SHAPE", name="A")),
            LayerCreate.model_validate(make_layer("IMAGE", name="photo", asset_id=str(asset.id))),
        ]))
        version = await logo_service.save_version(db, detail.id, VersionCreate())
        await db.commit()

        await layer_service.delete_layer(db, detail.layers[1].id)
        await asset_service.delete_asset(db, asset.id)
        await db.commit()

        with pytest.raises(NotFoundError) as exc_info:
            await logo_service.restore_version(db, detail.id, version.id)
        assert exc_info.value.context["resource"] == "asset"
        await db.rollback()
        assert await _z_order(session_factory, detail.id) == [("A", 0)]

    @pytest.mark.asyncio
    async def test_add_layer_with_missing_asset(self, db, session_factory, make_layer):
        detail = await _logo_with(db, make_layer, ["A"])
        with pytest.raises(NotFoundError) as exc_info:
            await layer_service.add_layer(db, detail.id, LayerCreate.model_validate(make_layer("ICON")))
        assert exc_info.value.context["resource"] == "asset"
        assert await _z_order(session_factory, detail.id) == [("A", 0)]

    @pytest.mark.asyncio
    async def test_empty_logo_detail(self, db):
        detail = await logo_service.create_logo(db, LogoCreate(title="Blank"))
        await db.commit()
        assert detail.layers == []
        assert (await logo_service.get_logo(db, detail.id)).layers == []
