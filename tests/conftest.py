"""Shared pytest fixtures for tilemap generator tests."""

import numpy as np
import pytest

from tilemap_wfc.enums import Direction
from tilemap_wfc.model.adjacency_rules import AdjacencyRules
from tilemap_wfc.model.pattern_catalog import PatternCatalog


# =============================================================================
# Training Grids
# =============================================================================

@pytest.fixture
def checkerboard_grid() -> np.ndarray:
    """The smallest possible training grid: a single 2x2 window."""
    return np.array([[0, 1], [1, 0]])


@pytest.fixture
def stripes_grid() -> np.ndarray:
    """Vertical stripes. Yields exactly two patterns that force each other left and right."""
    return np.array(
        [
            [0, 1, 0, 1],
            [0, 1, 0, 1],
            [0, 1, 0, 1],
        ]
    )


@pytest.fixture
def all_binary_patterns_grid() -> np.ndarray:
    """8x8 grid whose 2x2 blocks are the 16 possible binary 2x2 patterns.

    Since every binary 2x2 arrangement is a pattern, generation from this grid can never run into a contradiction.
    """
    grid = np.zeros((8, 8), dtype=np.int_)
    for number in range(16):
        row, col = divmod(number, 4)
        bits = [(number >> bit) & 1 for bit in range(4)]
        grid[2 * row : 2 * row + 2, 2 * col : 2 * col + 2] = np.array(bits).reshape(2, 2)
    return grid


# =============================================================================
# Catalogs and Rules
# =============================================================================

@pytest.fixture
def stripes_catalog(stripes_grid: np.ndarray) -> PatternCatalog:
    return PatternCatalog(stripes_grid, 2)


@pytest.fixture
def stripes_rules(stripes_catalog: PatternCatalog) -> AdjacencyRules:
    return AdjacencyRules(stripes_catalog)


@pytest.fixture
def binary_catalog(all_binary_patterns_grid: np.ndarray) -> PatternCatalog:
    return PatternCatalog(all_binary_patterns_grid, 2)


@pytest.fixture
def binary_rules(binary_catalog: PatternCatalog) -> AdjacencyRules:
    return AdjacencyRules(binary_catalog)


@pytest.fixture
def two_solid_patterns_catalog() -> PatternCatalog:
    """Two solid patterns (all 0 and all 1) with equal frequency."""
    return PatternCatalog.from_definitions([[[0, 0], [0, 0]], [[1, 1], [1, 1]]])


@pytest.fixture
def no_right_neighbor_rules() -> AdjacencyRules:
    """Rules for two patterns that allow everything, except for any pattern to the right of another one."""
    matrix = np.full((2, 2, len(Direction)), True, dtype=bool)
    matrix[:, :, Direction.RIGHT.value] = False
    return AdjacencyRules.from_matrix(matrix)
