"""Contains the mutable search state of the WFC algorithm and its entropy cache."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.constants import ENTROPY_NOISE_MAX
from tilemap_wfc.enums import Direction
from tilemap_wfc.errors import GridIndexError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from numpy.typing import NDArray


class WaveGrid:
    """Stores the set of still possible patterns for every cell of the wave.

    The possibility sets are rows of a single flat boolean array (one row per cell, one column per pattern index), so
    every cell is addressed by its flat index 'y * width + x'. A cell is collapsed exactly if a single pattern is left.
    A possibility set is never allowed to become empty: 'restrict()' refuses to write an empty set and reports it
    instead, so the caller can raise a contradiction with the proper context.

    Attributes:
        width: Number of wave cells per row.
        height: Number of wave cells per column.
        pattern_count: Number of patterns every cell initially can become.
    """

    width: int
    height: int
    pattern_count: int

    # Boolean array of shape (width * height, pattern_count). True for each pattern still possible in a cell.
    _coefficients: NDArray[np.bool_]
    # The number of True entries of each row of '_coefficients'.
    _possibility_counts: NDArray[np.int_]

    def __init__(self, width: int, height: int, pattern_count: int) -> None:
        """Initializes every cell with the full set of patterns."""
        if width < 1 or height < 1:
            raise ValueError(f"wave grid needs at least one cell, got {width}x{height}")
        if pattern_count < 1:
            raise ValueError("wave grid needs at least one pattern")

        self.width = width
        self.height = height
        self.pattern_count = pattern_count

        self._coefficients = np.full((width * height, pattern_count), True, dtype=bool)
        self._possibility_counts = np.full(width * height, pattern_count, dtype=np.int_)

    @property
    def cell_count(self) -> int:
        """The total number of wave cells."""
        return self.width * self.height

    @property
    def possibility_counts(self) -> NDArray[np.int_]:
        """Read-only view of the number of remaining patterns per flat cell index."""
        view = self._possibility_counts.view()
        view.flags.writeable = False
        return view

    def index(self, x: int, y: int) -> int:
        """Returns the flat index of the cell at (x, y).

        Raises:
            GridIndexError: If (x, y) lies outside of the wave.
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise GridIndexError(f"cell ({x}, {y}) is outside of the {self.width}x{self.height} wave grid")
        return y * self.width + x

    def coords(self, index: int) -> tuple[int, int]:
        """Returns the (x, y) coords of the cell with the given flat index."""
        if not 0 <= index < self.cell_count:
            raise GridIndexError(f"flat index {index} is outside of the {self.width}x{self.height} wave grid")
        return index % self.width, index // self.width

    def get_neighbor(self, x: int, y: int, direction: Direction) -> tuple[int, int] | None:
        """Returns the coords of the neighbor in the given direction, or None if it would lie outside (no wraparound)."""
        dx, dy = direction.to_vector()
        neighbor_x, neighbor_y = x + dx, y + dy
        if 0 <= neighbor_x < self.width and 0 <= neighbor_y < self.height:
            return neighbor_x, neighbor_y
        return None

    def get_valid_directions(self, x: int, y: int) -> list[Direction]:
        """Returns the outward directions that lead to a cell inside the wave (fewer at edges and corners)."""
        self.index(x, y)
        return [direction for direction in Direction.outward() if self.get_neighbor(x, y, direction) is not None]

    def get_possible_patterns(self, x: int, y: int) -> NDArray[np.bool_]:
        """Returns a copy of the possibility set of a cell as boolean mask over all pattern indices."""
        return self._coefficients[self.index(x, y)].copy()

    def get_possible_patterns_of_cells(self, indices: NDArray[np.int_]) -> NDArray[np.bool_]:
        """Returns a copy of the possibility sets of the cells with the given flat indices, one row per cell."""
        return self._coefficients[indices]

    def get_possible_pattern_indices(self, x: int, y: int) -> list[int]:
        """Returns the indices of all patterns still possible in a cell."""
        return [int(index) for index in np.flatnonzero(self._coefficients[self.index(x, y)])]

    def get_possibility_count(self, x: int, y: int) -> int:
        """Returns the number of patterns still possible in a cell."""
        return int(self._possibility_counts[self.index(x, y)])

    def is_collapsed(self, x: int, y: int) -> bool:
        """Returns True if exactly one pattern is left in a cell."""
        return self.get_possibility_count(x, y) == 1

    def is_fully_collapsed(self) -> bool:
        """Returns True once every cell holds exactly one pattern."""
        return bool((self._possibility_counts == 1).all())

    def get_collapsed_pattern(self, x: int, y: int) -> int:
        """Returns the single remaining pattern of a collapsed cell, or -1 if the cell is still undecided."""
        index = self.index(x, y)
        if self._possibility_counts[index] != 1:
            return -1
        return int(np.argmax(self._coefficients[index]))

    def get_collapsed_cells(self) -> list[tuple[int, int, int]]:
        """Returns (x, y, pattern index) for every collapsed cell, row by row."""
        collapsed_cells = []
        for index in np.flatnonzero(self._possibility_counts == 1):
            x, y = self.coords(int(index))
            collapsed_cells.append((x, y, int(np.argmax(self._coefficients[index]))))
        return collapsed_cells

    def get_pattern_grid(self) -> NDArray[np.int_]:
        """Returns a [y, x] grid of the collapsed pattern index of each cell (-1 for undecided cells)."""
        pattern_grid = np.argmax(self._coefficients, axis=1)
        pattern_grid[self._possibility_counts != 1] = -1
        return pattern_grid.reshape(self.height, self.width)

    def collapse(self, x: int, y: int, pattern_index: int) -> None:
        """Replaces the possibility set of a cell by the single given pattern."""
        index = self.index(x, y)
        if not self._coefficients[index, pattern_index]:
            raise ValueError(f"pattern {pattern_index} is no longer possible in cell ({x}, {y})")
        self._coefficients[index] = False
        self._coefficients[index, pattern_index] = True
        self._possibility_counts[index] = 1

    def restrict(self, x: int, y: int, allowed_patterns: NDArray[np.bool_]) -> int:
        """Intersects the possibility set of a cell with the given pattern mask.

        Args:
            x: Column of the cell.
            y: Row of the cell.
            allowed_patterns: Boolean mask over all pattern indices.

        Returns:
            The number of patterns left after the intersection. If this is 0, the cell is left unchanged, since an empty
                possibility set is a contradiction the caller has to report.
        """
        index = self.index(x, y)
        narrowed = self._coefficients[index] & allowed_patterns
        remaining = int(narrowed.sum())
        if remaining > 0:
            self._coefficients[index] = narrowed
            self._possibility_counts[index] = remaining
        return remaining


class EntropyCache:
    """Caches the Shannon entropy of each wave cell for picking the next cell to collapse.

    The cached value of an undecided cell is the Shannon entropy (in bits) of its remaining patterns, weighted by their
    catalog probabilities, minus a small random value in [0, noise_max). The random value only breaks ties between
    cells and keeps the collapse order from following the grid layout. Collapsed cells always cache 0. The random values
    come from the injected generator, so a seeded generator makes the collapse order reproducible.
    """

    # Flat array (one value per wave cell) of the cached entropies.
    _entropies: NDArray[np.double]

    # The wave grid whose possibility sets the entropies describe.
    _wave: WaveGrid
    # The catalog probability of every pattern.
    _probabilities: NDArray[np.double]
    # Precomputed p * log2(p) for every pattern probability.
    _probability_log_probabilities: NDArray[np.double]
    # Random source for the tie-breaking noise.
    _rng: np.random.Generator
    # Upper bound (exclusive) of the tie-breaking noise.
    _noise_max: float

    def __init__(
        self,
        wave: WaveGrid,
        probabilities: NDArray[np.double],
        rng: np.random.Generator,
        noise_max: float = ENTROPY_NOISE_MAX,
    ) -> None:
        """Evaluates the entropy of every cell of the wave."""
        if len(probabilities) != wave.pattern_count:
            raise ValueError(
                f"got {len(probabilities)} pattern probabilities for a wave of {wave.pattern_count} patterns"
            )

        self._wave = wave
        self._probabilities = np.asarray(probabilities, dtype=np.double)
        self._probability_log_probabilities = self._probabilities * np.log2(self._probabilities)
        self._rng = rng
        self._noise_max = noise_max

        self._entropies = np.zeros(wave.cell_count, dtype=np.double)
        self.update(range(wave.cell_count))

    def get(self, x: int, y: int) -> float:
        """Returns the cached entropy of the cell at (x, y)."""
        return float(self._entropies[self._wave.index(x, y)])

    def as_grid(self) -> NDArray[np.double]:
        """Returns a [y, x] copy of all cached entropies."""
        return self._entropies.reshape(self._wave.height, self._wave.width).copy()

    def mark_collapsed(self, index: int) -> None:
        """Zeroes the cached entropy of a cell that was just collapsed."""
        self._entropies[index] = 0.0

    def update(self, indices: Iterable[int]) -> None:
        """Recomputes the cached entropy of the cells with the given flat indices."""
        index_array = np.fromiter(indices, dtype=np.int_)
        if index_array.size == 0:
            return

        possible = self._wave.get_possible_patterns_of_cells(index_array)
        sum_of_weights = (possible * self._probabilities).sum(axis=1)
        sum_of_weight_log_weights = (possible * self._probability_log_probabilities).sum(axis=1)
        entropies = np.log2(sum_of_weights) - sum_of_weight_log_weights / sum_of_weights

        undecided = self._wave.possibility_counts[index_array] > 1
        noise = self._rng.uniform(0.0, self._noise_max, size=index_array.size)
        self._entropies[index_array] = np.where(undecided, entropies - noise, 0.0)

    def find_lowest(self) -> int | None:
        """Returns the flat index of the undecided cell with the lowest cached entropy, or None if every cell is decided.

        Undecided cells are recognized by their possibility count, not by their cached value, so the noise can never
        hide a cell that still has to be collapsed.
        """
        undecided = self._wave.possibility_counts > 1
        if not undecided.any():
            return None
        return int(np.argmin(np.where(undecided, self._entropies, math.inf)))
