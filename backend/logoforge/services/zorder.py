"""
LogoForge Backend — Z-Order Maintainer
========================================

What:  Keeps every logo's layer z_index values dense and unique
       ({0, …, N-1} for N layers) under insert, delete and single-layer moves.
Why:   The renderer paints in z_index order and the UI addresses layers by
       position; gaps or duplicates would make both ambiguous.
How:   Two halves:
       1. Pure planners take a `{layer_id: z_index}` snapshot and return the
          full set of changes. No I/O, trivially unit-testable.
       2. ZOrderService applies a plan inside an exclusivity scope and in two
          phases, so the (logo_id, z_index) unique constraint holds after
          every statement.

Move semantics (old → new, N layers):
    new > old:   layers with old < z ≤ new move down by one
    new < old:   layers with new ≤ z < old move up by one
    new == old:  nothing changes
    new ∉ [0,N): OutOfRangeError (never clamped)

Exclusivity:
    ┌───────────────────┐   ┌──────────────────────────┐   ┌──────────────┐
    │ asyncio.Lock per  │──▶│ SELECT logo FOR UPDATE    │──▶│ plan + apply │──▶ COMMIT
    │ logo (in-process) │   │ (cross-process boundary)  │   │ (2 phases)   │
    └───────────────────┘   └──────────────────────────┘   └──────────────┘

    Different logos never wait on each other. SQLite ignores FOR UPDATE; the
    in-process lock still serializes a single worker.
"""

import asyncio
import logging
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from logoforge.database import transaction
from logoforge.exceptions import ConflictError, DatabaseError, NotFoundError, OutOfRangeError
from logoforge.models.layer import Layer
from logoforge.models.logo import Logo

logger = logging.getLogger(__name__)

Snapshot = Mapping[uuid.UUID, int]
Plan = Dict[uuid.UUID, int]


def is_z_index_collision(error: IntegrityError) -> bool:
    """True for a violation of the (logo_id, z_index) unique constraint."""
    text = str(error.orig)
    return "uq_layers_logo_z_index" in text or "layers.z_index" in text


# ══════════════════════════════════════════════════════════════════════════
# Pure planners
# ══════════════════════════════════════════════════════════════════════════


def check_dense(snapshot: Snapshot) -> None:
    """
    Raises:
        ConflictError: the indices are not exactly {0, …, N-1}
    """
    if sorted(snapshot.values()) != list(range(len(snapshot))):
        raise ConflictError(
            context={"z_indices": sorted(snapshot.values())},
        )


def plan_reorder(snapshot: Snapshot, layer_id: uuid.UUID, new_index: int) -> Plan:
    """
    Compute the new z_index of every layer whose index changes.

    Returns:
        {layer_id: new z_index} for changed layers only; empty for a no-op.

    Raises:
        NotFoundError:   layer_id is not in the snapshot
        OutOfRangeError: new_index outside [0, N)
        ConflictError:   snapshot is not dense
    """
    if layer_id not in snapshot:
        raise NotFoundError(resource="layer", resource_id=str(layer_id))
    size = len(snapshot)
    if not 0 <= new_index < size:
        raise OutOfRangeError(index=new_index, size=size)
    check_dense(snapshot)

    old_index = snapshot[layer_id]
    if new_index == old_index:
        return {}

    plan: Plan = {layer_id: new_index}
    for other_id, z in snapshot.items():
        if other_id == layer_id:
            continue
        if new_index > old_index and old_index < z <= new_index:
            plan[other_id] = z - 1
        elif new_index < old_index and new_index <= z < old_index:
            plan[other_id] = z + 1
    return plan


def plan_insert(snapshot: Snapshot, index: Optional[int] = None) -> Tuple[int, Plan]:
    """
    Make room for one new layer.

    Args:
        index: target position; None appends on top (index N)

    Returns:
        (position for the new layer, plan for the existing layers)

    Raises:
        OutOfRangeError: index outside [0, N]
        ConflictError:   snapshot is not dense
    """
    check_dense(snapshot)
    size = len(snapshot)
    if index is None:
        return size, {}
    if not 0 <= index <= size:
        raise OutOfRangeError(index=index, size=size + 1)
    plan = {layer_id: z + 1 for layer_id, z in snapshot.items() if z >= index}
    return index, plan


def plan_delete(snapshot: Snapshot, layer_id: uuid.UUID) -> Plan:
    """
    Close the gap left by removing `layer_id`.

    Returns:
        New z_index for every remaining layer above the removed one.
    """
    if layer_id not in snapshot:
        raise NotFoundError(resource="layer", resource_id=str(layer_id))
    check_dense(snapshot)
    removed = snapshot[layer_id]
    return {
        other_id: z - 1
        for other_id, z in snapshot.items()
        if other_id != layer_id and z > removed
    }


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════


class ZOrderService:
    """
    Applies z-order plans to the database.

    Every public method commits before returning (inside the per-logo lock),
    so the next waiter on the same logo reads the new order.
    """

    def __init__(self):
        # Entries disappear once no coroutine holds a reference to the lock
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, logo_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(logo_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[logo_id] = lock
        return lock

    @asynccontextmanager
    async def exclusive(self, db: AsyncSession, logo_id: uuid.UUID) -> AsyncGenerator[Logo, None]:
        """
        Serialize layer-set mutations of one logo.

        Yields the locked Logo row. The block's writes are committed on exit,
        or rolled back if it raises.

        Raises:
            NotFoundError: the logo does not exist
        """
        lock = self._lock_for(logo_id)
        async with lock:
            async with transaction(db):
                result = await db.execute(
                    select(Logo)
                    .where(Logo.id == logo_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                logo = result.scalar_one_or_none()
                if logo is None:
                    raise NotFoundError(resource="logo", resource_id=str(logo_id))
                yield logo

    async def load_layers(self, db: AsyncSession, logo_id: uuid.UUID) -> List[Layer]:
        """
        Layer rows of a logo, bottom first.

        Rows already in the session are refreshed: a writer that held the
        lock before us may have moved them.
        """
        result = await db.execute(
            select(Layer)
            .where(Layer.logo_id == logo_id)
            .order_by(Layer.z_index)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _apply(self, db: AsyncSession, rows: Mapping[uuid.UUID, Layer], plan: Plan) -> None:
        """
        Write a plan in two phases.

        Phase 1 parks every affected row at a distinct negative index, phase 2
        writes the final values. Each phase is flushed on its own, so no
        intermediate statement ever holds two rows at the same index.
        """
        if not plan:
            return
        try:
            for parked, layer_id in enumerate(plan, start=1):
                rows[layer_id].z_index = -parked
            await db.flush()
            for layer_id, z in plan.items():
                rows[layer_id].z_index = z
            await db.flush()
        except IntegrityError as e:
            if not is_z_index_collision(e):
                logger.error("Applying z-order plan failed: %s", e.orig)
                raise DatabaseError(context={"layers": len(plan)})
            logger.warning("z_index constraint violated while applying plan: %s", e.orig)
            raise ConflictError(context={"layers": len(plan)})

    async def reorder(
        self, db: AsyncSession, logo_id: uuid.UUID, layer_id: uuid.UUID, new_index: int
    ) -> List[Layer]:
        """
        Move one layer to `new_index`.

        Returns:
            The logo's layer rows after the move, bottom first.
        """
        async with self.exclusive(db, logo_id):
            layers = await self.load_layers(db, logo_id)
            rows = {layer.id: layer for layer in layers}
            plan = plan_reorder({layer.id: layer.z_index for layer in layers}, layer_id, new_index)
            if not plan:
                logger.debug("Reorder of layer %s to %d is a no-op", layer_id, new_index)
            await self._apply(db, rows, plan)
            logger.info(
                "Reordered layer %s of logo %s to index %d (%d layers shifted)",
                layer_id, logo_id, new_index, max(len(plan) - 1, 0),
            )
        return sorted(layers, key=lambda layer: layer.z_index)

    async def insert(
        self, db: AsyncSession, logo_id: uuid.UUID, layer: Layer, index: Optional[int] = None
    ) -> Layer:
        """
        Add a new layer row at `index` (None = on top), shifting the layers at
        or above it.
        """
        async with self.exclusive(db, logo_id) as logo:
            layers = await self.load_layers(db, logo_id)
            position, plan = plan_insert({row.id: row.z_index for row in layers}, index)
            await self._apply(db, {row.id: row for row in layers}, plan)
            layer.logo_id = logo_id
            layer.z_index = position
            logo.layers.append(layer)
            try:
                await db.flush()
            except IntegrityError as e:
                if not is_z_index_collision(e):
                    logger.error("Insert of layer %s into logo %s failed: %s", layer.id, logo_id, e.orig)
                    raise DatabaseError(
                        message="Could not add the layer. Please try again.",
                        context={"logo_id": str(logo_id)},
                    )
                logger.warning("z_index constraint violated on insert: %s", e.orig)
                raise ConflictError(context={"z_index": position})
            logger.info("Inserted %s layer %s into logo %s at %d", layer.kind.value, layer.id, logo_id, position)
        return layer

    async def remove(self, db: AsyncSession, logo_id: uuid.UUID, layer_id: uuid.UUID) -> None:
        """Delete a layer (and its payload) and close the gap."""
        async with self.exclusive(db, logo_id) as logo:
            layers = await self.load_layers(db, logo_id)
            snapshot = {row.id: row.z_index for row in layers}
            plan = plan_delete(snapshot, layer_id)
            rows = {row.id: row for row in layers}
            doomed = rows[layer_id]
            if doomed in logo.layers:
                logo.layers.remove(doomed)
            await db.delete(doomed)
            await db.flush()
            await self._apply(db, rows, plan)
            logger.info("Deleted layer %s from logo %s (%d layers shifted)", layer_id, logo_id, len(plan))


# ── Singleton Instance ────────────────────────────────────────────────────
zorder_service = ZOrderService()
