"""Performs the constraint propagation that follows every collapse."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from tilemap_wfc.errors import ContradictionError
from tilemap_wfc.logging_config import get_logger

if TYPE_CHECKING:
    from tilemap_wfc.model.adjacency_rules import AdjacencyRules
    from tilemap_wfc.model.wave_grid import EntropyCache, WaveGrid

logger = get_logger(__name__)


class Propagator:
    """Restores arc consistency of the wave after a cell has changed.

    Starting from the changed cell, every neighbor's possibility set is intersected with the union of the patterns the
    rules allow next to any of the cell's remaining patterns. Every neighbor that shrinks is queued in turn, so the
    narrowing ripples outwards until nothing changes anymore. Cells are accessed through their flat index only, the
    possibility set of the cell being processed is copied before its neighbors are modified.
    """

    # The wave grid being narrowed.
    _wave: WaveGrid
    # The entropy cache, refreshed for all shrunk cells once a propagation is done.
    _entropy_cache: EntropyCache
    # The rules deciding which patterns may be placed next to each other.
    _rules: AdjacencyRules

    def __init__(self, wave: WaveGrid, entropy_cache: EntropyCache, rules: AdjacencyRules) -> None:
        """Initializes the propagator.

        Args:
            wave: The wave grid to narrow.
            entropy_cache: The entropy cache to refresh for narrowed cells.
            rules: The adjacency rules, defined for the same patterns as the wave.
        """
        if rules.pattern_count != wave.pattern_count:
            raise ValueError(
                f"adjacency rules cover {rules.pattern_count} patterns, the wave grid {wave.pattern_count}"
            )

        self._wave = wave
        self._entropy_cache = entropy_cache
        self._rules = rules

    def propagate(self, origin: tuple[int, int]) -> list[tuple[int, int, int]]:
        """Narrows the possibility sets reachable from the origin cell.

        Args:
            origin: (x, y) coords of the cell whose possibility set just changed.

        Returns:
            (x, y, pattern index) for every cell that was narrowed down to a single pattern along the way, in the order
                they were resolved.

        Raises:
            ContradictionError: If the possibility set of a cell would become empty. The wave is left in the state it
                had right before that removal.
        """
        origin_index = self._wave.index(*origin)

        pending_indices = deque([origin_index])
        queued_indices = {origin_index}
        dirty_indices: set[int] = set()
        implicitly_collapsed: list[tuple[int, int, int]] = []

        try:
            while pending_indices:
                index = pending_indices.popleft()
                queued_indices.discard(index)
                x, y = self._wave.coords(index)
                possible_patterns = self._wave.get_possible_patterns(x, y)

                for direction in self._wave.get_valid_directions(x, y):
                    neighbor = self._wave.get_neighbor(x, y, direction)
                    assert neighbor is not None
                    neighbor_index = self._wave.index(*neighbor)

                    count_before = self._wave.get_possibility_count(*neighbor)
                    allowed_patterns = self._rules.get_allowed_union(possible_patterns, direction)
                    count_after = self._wave.restrict(*neighbor, allowed_patterns)

                    if count_after == 0:
                        logger.warning(
                            f"Contradiction at cell {neighbor}: no pattern left after propagating {direction.name} "
                            f"from cell {(x, y)}"
                        )
                        raise ContradictionError(neighbor[0], neighbor[1], direction, (x, y))

                    if count_after < count_before:
                        dirty_indices.add(neighbor_index)
                        if count_after == 1:
                            implicitly_collapsed.append(
                                (neighbor[0], neighbor[1], self._wave.get_collapsed_pattern(*neighbor))
                            )
                        if neighbor_index not in queued_indices:
                            queued_indices.add(neighbor_index)
                            pending_indices.append(neighbor_index)
        finally:
            self._entropy_cache.update(dirty_indices)

        return implicitly_collapsed
