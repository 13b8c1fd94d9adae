"""
LogoForge Backend — Z-Order Planner Tests
===========================================

What we test:
    ✅ Reorder moves the layer and shifts the ones in between
    ✅ Moving to the current position is a no-op
    ✅ Out-of-range targets raise and are never clamped
    ✅ Insert at a position / on top, delete closes the gap
    ✅ Gapped or duplicated snapshots are refused (ConflictError)
    ✅ Any sequence of operations keeps indices dense

These planners are pure, so no database or mocks are needed.
"""

import random
import uuid

import pytest

from logoforge.exceptions import ConflictError, NotFoundError, OutOfRangeError
from logoforge.services.zorder import check_dense, plan_delete, plan_insert, plan_reorder


def _apply(snapshot, plan):
    result = dict(snapshot)
    result.update(plan)
    return result


def _order(snapshot):
    """Layer ids bottom first."""
    return [layer_id for layer_id, _ in sorted(snapshot.items(), key=lambda item: item[1])]


class TestPlanReorder:

    def setup_method(self):
        self.a, self.b, self.c, self.d = (uuid.uuid4() for _ in range(4))
        self.snapshot = {self.a: 0, self.b: 1, self.c: 2, self.d: 3}

    def test_move_up_shifts_layers_in_between_down(self):
        plan = plan_reorder(self.snapshot, self.a, 2)
        assert plan == {self.a: 2, self.b: 0, self.c: 1}
        assert _order(_apply(self.snapshot, plan)) == [self.b, self.c, self.a, self.d]

    def test_move_down_shifts_layers_in_between_up(self):
        plan = plan_reorder(self.snapshot, self.d, 0)
        assert _order(_apply(self.snapshot, plan)) == [self.d, self.a, self.b, self.c]
        assert self.d in plan and len(plan) == 4

    def test_successive_moves(self):
        after_first = _apply(self.snapshot, plan_reorder(self.snapshot, self.a, 2))
        after_second = _apply(after_first, plan_reorder(after_first, self.d, 0))
        assert _order(after_second) == [self.d, self.b, self.c, self.a]

    def test_same_position_is_noop(self):
        assert plan_reorder(self.snapshot, self.b, 1) == {}

    def test_single_layer_to_zero_is_noop(self):
        only = uuid.uuid4()
        assert plan_reorder({only: 0}, only, 0) == {}

    @pytest.mark.parametrize("target", [-1, 4, 100])
    def test_out_of_range_is_rejected(self, target):
        with pytest.raises(OutOfRangeError) as exc_info:
            plan_reorder(self.snapshot, self.b, target)
        assert exc_info.value.index == target
        assert exc_info.value.size == 4

    def test_unknown_layer(self):
        with pytest.raises(NotFoundError):
            plan_reorder(self.snapshot, uuid.uuid4(), 0)

    def test_gapped_snapshot_conflicts(self):
        gapped = {self.a: 0, self.b: 2, self.c: 3}
        with pytest.raises(ConflictError):
            plan_reorder(gapped, self.a, 1)


class TestPlanInsertDelete:

    def setup_method(self):
        self.ids = [uuid.uuid4() for _ in range(3)]
        self.snapshot = {layer_id: z for z, layer_id in enumerate(self.ids)}

    def test_insert_on_top_by_default(self):
        position, plan = plan_insert(self.snapshot)
        assert position == 3
        assert plan == {}

    def test_insert_in_the_middle_shifts_upper_layers(self):
        position, plan = plan_insert(self.snapshot, 1)
        assert position == 1
        assert plan == {self.ids[1]: 2, self.ids[2]: 3}

    def test_insert_at_n_is_allowed(self):
        position, plan = plan_insert(self.snapshot, 3)
        assert position == 3 and plan == {}

    def test_insert_past_n_is_rejected(self):
        with pytest.raises(OutOfRangeError):
            plan_insert(self.snapshot, 4)

    def test_insert_into_empty_logo(self):
        assert plan_insert({}, 0) == (0, {})

    def test_delete_closes_the_gap(self):
        plan = plan_delete(self.snapshot, self.ids[0])
        assert plan == {self.ids[1]: 0, self.ids[2]: 1}

    def test_delete_top_layer_moves_nothing(self):
        assert plan_delete(self.snapshot, self.ids[2]) == {}

    def test_duplicate_indices_conflict(self):
        with pytest.raises(ConflictError):
            check_dense({self.ids[0]: 0, self.ids[1]: 0})


class TestDensity:
    """Random operation sequences must always leave {0..N-1}."""

    @pytest.mark.parametrize("seed", range(5))
    def test_random_operations_stay_dense(self, seed):
        rng = random.Random(seed)
        snapshot = {}
        for _ in range(200):
            op = rng.choice(["insert", "insert", "delete", "reorder"])
            if op == "insert" or not snapshot:
                index = rng.choice([None, rng.randint(0, len(snapshot))])
                position, plan = plan_insert(snapshot, index)
                snapshot = _apply(snapshot, plan)
                snapshot[uuid.uuid4()] = position
            elif op == "delete":
                victim = rng.choice(list(snapshot))
                plan = plan_delete(snapshot, victim)
                del snapshot[victim]
                snapshot = _apply(snapshot, plan)
            else:
                target = rng.choice(list(snapshot))
                snapshot = _apply(snapshot, plan_reorder(snapshot, target, rng.randrange(len(snapshot))))
            check_dense(snapshot)
