"""Tests for the position allocator."""

import pytest

from tabletop_audio.domain.library.ordering import InsertPlan, PositionAllocator, needs_renumber
from tabletop_audio.domain.shared.exceptions import ValidationError


def _apply(order: list[tuple[str, float]], plan: InsertPlan, name: str):
    """Apply a plan to ``order`` (read-ordered (name, position) pairs)."""
    updated = [
        (item, plan.reassigned.get(i, position)) for i, (item, position) in enumerate(order)
    ]
    updated.append((name, plan.position))
    return sorted(updated, key=lambda pair: pair[1])


class TestPlanInsert:
    """Tests for PositionAllocator.plan_insert."""

    def test_first_item_starts_at_zero(self):
        """Should place the first item at position 0."""
        plan = PositionAllocator().plan_insert([])
        assert plan.position == 0.0
        assert not plan.renumbered

    def test_append_adds_gap(self):
        """Should append at last + gap."""
        plan = PositionAllocator(gap=10.0).plan_insert([0.0, 10.0])
        assert plan.position == 20.0
        assert plan.reassigned == {}

    def test_index_past_end_appends(self):
        """Should treat an index beyond the end as append."""
        plan = PositionAllocator().plan_insert([0.0, 1.0], 99)
        assert plan.position == 2.0

    def test_between_uses_midpoint(self):
        """Should use the midpoint of the neighbours."""
        plan = PositionAllocator().plan_insert([0.0, 1.0], 1)
        assert plan.position == 0.5
        assert not plan.renumbered

    def test_head_subtracts_gap(self):
        """Should insert at first - gap."""
        plan = PositionAllocator().plan_insert([0.0, 1.0], 0)
        assert plan.position == -1.0

    def test_negative_index_rejected(self):
        """Should reject negative indices."""
        with pytest.raises(ValidationError):
            PositionAllocator().plan_insert([0.0], -1)

    def test_tied_neighbours_trigger_renumber(self):
        """Should renumber when neighbours share a position."""
        plan = PositionAllocator().plan_insert([0.0, 0.0, 0.0], 1)
        assert plan.renumbered
        assert plan.position == 1.0
        assert plan.reassigned == {0: 0.0, 1: 2.0, 2: 3.0}

    def test_head_below_floor_renumbers(self):
        """Should renumber instead of crossing the minimum position."""
        allocator = PositionAllocator(gap=1.0, min_position=-2.0)
        plan = allocator.plan_insert([-1.5, 0.0], 0)
        assert plan.renumbered
        assert plan.position == 0.0
        assert plan.reassigned == {0: 1.0, 1: 2.0}

    def test_gap_must_be_positive(self):
        """Should refuse a non-positive gap."""
        with pytest.raises(ValueError):
            PositionAllocator(gap=0)


class TestPlanMove:
    """Tests for PositionAllocator.plan_move."""

    def test_move_last_to_front(self):
        """Should place the moved item before the current first."""
        plan = PositionAllocator().plan_move([0.0, 1.0, 2.0], 2, 0)
        assert plan.position == -1.0

    def test_move_first_between_others(self):
        """Should place the moved item between its new neighbours."""
        plan = PositionAllocator().plan_move([0.0, 1.0, 2.0], 0, 1)
        assert plan.position == 1.5


class TestRenumberExhaustion:
    """Renumber fallback under repeated inserts."""

    def test_fifty_head_inserts_keep_intent(self):
        """Should keep every head insert first even after hitting the floor."""
        allocator = PositionAllocator(gap=1.0, min_position=-10.0)
        order = [("a", 0.0), ("b", 1.0), ("c", 2.0)]
        renumbers = 0

        for i in range(50):
            plan = allocator.plan_insert([p for _, p in order], 0)
            renumbers += plan.renumbered
            order = _apply(order, plan, f"h{i}")
            assert order[0][0] == f"h{i}"
            assert not needs_renumber([p for _, p in order])

        assert renumbers > 0
        names = [name for name, _ in order]
        assert names[-3:] == ["a", "b", "c"]
        assert names[:50] == [f"h{i}" for i in reversed(range(50))]

    def test_repeated_midpoint_exhausts_precision(self):
        """Should renumber once float precision runs out and keep order."""
        allocator = PositionAllocator()
        order = [("left", 1.0), ("right", 2.0)]
        renumbered = False

        for i in range(100):
            index = 1  # always directly after "left"
            plan = allocator.plan_insert([p for _, p in order], index)
            renumbered = renumbered or plan.renumbered
            order = _apply(order, plan, f"m{i}")
            assert order[1][0] == f"m{i}"
            assert not needs_renumber([p for _, p in order])

        assert renumbered
        assert order[0][0] == "left"
        assert order[-1][0] == "right"
