"""Determines which patterns can legally be placed next to each other."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.enums import Direction
from tilemap_wfc.logging_config import get_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

    from tilemap_wfc.model.pattern_catalog import PatternCatalog

logger = get_logger(__name__)


class AdjacencyRules:
    """Immutable compatibility table between the patterns of a catalog.

    Pattern B is a legal neighbor of pattern A in direction d exactly if the part of A facing d equals the part of B
    facing the opposite direction, i.e. if both patterns agree on the tiles they share when B is placed one step away
    from A in direction d. For 2x2 patterns the edge directions compare two tiles and the diagonal directions compare the
    single corner tile. The rules are therefore symmetric: B is legal next to A in direction d if and only if A is legal
    next to B in the opposite direction.

    Attributes:
        pattern_count: The number of patterns the rules are defined for.
    """

    pattern_count: int

    # The 3D boolean array defining compatibility: [p1, p2, direction] is True exactly if pattern p2 can be placed next
    # to pattern p1 in the specified direction.
    _adjacency_rules: NDArray[np.bool_]

    def __init__(self, catalog: PatternCatalog) -> None:
        """Calculates the rules for every ordered pattern pair and every direction.

        Args:
            catalog: The patterns to determine the rules for.
        """
        self.pattern_count = catalog.pattern_count
        self._determine_adjacency_rules(catalog)
        self._adjacency_rules.flags.writeable = False

        logger.debug(f"Determined {self.rule_count} adjacency rules for {self.pattern_count} patterns")

    @classmethod
    def from_matrix(cls, adjacency_rules: ArrayLike) -> AdjacencyRules:
        """Wraps an explicitly given compatibility table instead of deriving it from patterns.

        Args:
            adjacency_rules: Boolean array of shape (pattern_count, pattern_count, len(Direction)), indexed by
                [p1, p2, direction.value].

        Returns:
            The new rules object.
        """
        matrix = np.array(adjacency_rules, dtype=bool)
        if matrix.ndim != 3 or matrix.shape[0] != matrix.shape[1] or matrix.shape[2] != len(Direction):
            raise ValueError(
                f"adjacency matrix must have shape (pattern_count, pattern_count, {len(Direction)}), got {matrix.shape}"
            )

        rules = cls.__new__(cls)
        rules.pattern_count = matrix.shape[0]
        rules._adjacency_rules = matrix
        rules._adjacency_rules.flags.writeable = False
        return rules

    @property
    def rule_count(self) -> int:
        """The number of (p1, p2, direction) triples that are legal."""
        return int(self._adjacency_rules.sum())

    def is_allowed(self, pattern_index: int, other_pattern_index: int, direction: Direction) -> bool:
        """Returns True if the other pattern can be placed one step away from the pattern in the given direction."""
        return bool(self._adjacency_rules[pattern_index, other_pattern_index, direction.value])

    def get_compatible_patterns(self, pattern_index: int, direction: Direction) -> list[int]:
        """Returns all compatible pattern indices for a pattern and direction.

        Args:
            pattern_index: The index of the pattern to check compatibility for.
            direction: The direction to check compatibility for.

        Returns:
            A list of all pattern indices that can legally be placed adjacent to the pattern with the specified index
                in the specified direction.
        """
        return [int(index) for index in np.flatnonzero(self._adjacency_rules[pattern_index, :, direction.value])]

    def get_allowed_union(self, possible_patterns: NDArray[np.bool_], direction: Direction) -> NDArray[np.bool_]:
        """Returns the patterns allowed next to at least one of the given patterns.

        Args:
            possible_patterns: Boolean mask over all pattern indices (e.g. the remaining possibilities of a cell).
            direction: The direction of the neighbor.

        Returns:
            Boolean mask which is True for each pattern index that is a legal neighbor in the given direction of at
                least one pattern of the input mask.
        """
        return self._adjacency_rules[possible_patterns, :, direction.value].any(axis=0)

    def is_consistent(self, pattern_grid: NDArray[np.int_]) -> bool:
        """Checks a grid of pattern indices for any pair of neighbors that violates the rules.

        Args:
            pattern_grid: 2D array of pattern indices, indexed by [y, x].

        Returns:
            True if every pair of neighboring cells (in all eight directions) is legal.
        """
        height, width = pattern_grid.shape
        for direction in Direction.outward():
            dx, dy = direction.to_vector()
            source = pattern_grid[max(0, -dy) : height - max(0, dy), max(0, -dx) : width - max(0, dx)]
            neighbor = pattern_grid[max(0, dy) : height + min(0, dy), max(0, dx) : width + min(0, dx)]
            if not self._adjacency_rules[source, neighbor, direction.value].all():
                return False
        return True

    def _determine_adjacency_rules(self, catalog: PatternCatalog) -> None:
        """Calculates compatibility by comparing the overlapping pattern regions."""
        self._adjacency_rules = np.full((self.pattern_count, self.pattern_count, len(Direction)), False, dtype=bool)

        definitions = [catalog.get_definition(index) for index in range(self.pattern_count)]

        for direction in Direction:
            # Part of every pattern facing the neighbor, and part of every pattern facing back at the cell.
            facing_neighbor = np.array([_get_overlap(d, direction).flatten() for d in definitions])
            facing_back = np.array([_get_overlap(d, direction.reverse()).flatten() for d in definitions])

            # [p1, p2] is True if p1's side facing the direction equals p2's side facing the opposite direction.
            self._adjacency_rules[:, :, direction.value] = (
                facing_neighbor[:, np.newaxis, :] == facing_back[np.newaxis, :, :]
            ).all(axis=2)


def _get_overlap(tile_arrangement: NDArray[np.int_], direction: Direction) -> NDArray[np.int_]:
    """Returns the tiles of a pattern that a neighbor placed in the given direction overlaps with."""
    dx, dy = direction.to_vector()
    size = tile_arrangement.shape[0]
    rows = slice(max(dy, 0), size + min(dy, 0))
    cols = slice(max(dx, 0), size + min(dx, 0))
    return tile_arrangement[rows, cols]
