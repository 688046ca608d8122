"""Position allocation for ordered siblings (collection items, folder children).

Positions live in a sparse float space so that most inserts touch a single
row. The allocator works purely on the positions of the siblings in their
current read order and returns a plan; callers persist it atomically.

- append: ``last + gap``
- head: ``first - gap``, never below ``min_position``
- between: midpoint of the two neighbours

When any of these cannot produce a value strictly inside its bounds (floor
reached, neighbours tied, float precision exhausted) the whole sibling set is
renumbered to ``0, gap, 2*gap, ...`` in its intended order, new item included.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from tabletop_audio.domain.shared.constants import OrderingDefaults
from tabletop_audio.domain.shared.exceptions import ValidationError
from tabletop_audio.domain.shared.messages import ErrorMessages


@dataclass(frozen=True)
class InsertPlan:
    """Where to put a new sibling and which existing siblings must move.

    ``reassigned`` maps sibling *index* (in the read order passed to the
    allocator) to its new position; it is empty unless a renumber happened.
    """

    position: float
    reassigned: dict[int, float] = field(default_factory=dict)

    @property
    def renumbered(self) -> bool:
        return bool(self.reassigned)


class PositionAllocator:
    """Computes positions for inserts and moves without full renumbering."""

    def __init__(
        self,
        gap: float = OrderingDefaults.GAP,
        min_position: float = OrderingDefaults.MIN_POSITION,
    ) -> None:
        if gap <= 0:
            raise ValueError("gap must be positive")
        self._gap = gap
        self._min_position = min_position

    @property
    def gap(self) -> float:
        return self._gap

    def plan_insert(self, positions: Sequence[float], index: int | None = None) -> InsertPlan:
        """Plan an insert before ``positions[index]``; ``None`` or ``len`` appends.

        Indices beyond the end are treated as an append.
        """
        count = len(positions)
        if index is None or index > count:
            index = count
        if index < 0:
            raise ValidationError(ErrorMessages.NEGATIVE_INDEX, field="position")

        if count == 0:
            return InsertPlan(position=0.0)

        if index == count:
            last = positions[-1]
            candidate = last + self._gap
            if candidate > last:
                return InsertPlan(position=candidate)
            return self._renumber(count, index)

        if index == 0:
            first = positions[0]
            candidate = first - self._gap
            if candidate >= self._min_position and candidate < first:
                return InsertPlan(position=candidate)
            return self._renumber(count, index)

        before, after = positions[index - 1], positions[index]
        midpoint = before + (after - before) / 2
        if before < midpoint < after:
            return InsertPlan(position=midpoint)
        return self._renumber(count, index)

    def plan_move(
        self, positions: Sequence[float], from_index: int, to_index: int
    ) -> InsertPlan:
        """Plan moving ``positions[from_index]`` so it ends up at ``to_index``.

        Returned indices in ``reassigned`` refer to the sibling list *without*
        the moved element, matching how the move is applied: remove, then
        re-insert.
        """
        remaining = [p for i, p in enumerate(positions) if i != from_index]
        return self.plan_insert(remaining, to_index)

    def renumber(self, count: int) -> list[float]:
        """Evenly spaced positions for ``count`` siblings."""
        return [i * self._gap for i in range(count)]

    def _renumber(self, count: int, index: int) -> InsertPlan:
        fresh = self.renumber(count + 1)
        reassigned: dict[int, float] = {}
        for sibling in range(count):
            slot = sibling if sibling < index else sibling + 1
            reassigned[sibling] = fresh[slot]
        return InsertPlan(position=fresh[index], reassigned=reassigned)


def needs_renumber(positions: Sequence[float]) -> bool:
    """True when the given read-ordered positions contain ties."""
    return any(a >= b for a, b in zip(positions, positions[1:], strict=False))
