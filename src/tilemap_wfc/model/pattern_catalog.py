"""Extracts the tile patterns used by the WFC algorithm from a training grid."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from tilemap_wfc.constants import EMPTY_TILE_INDEX
from tilemap_wfc.errors import MalformedTrainingDataError
from tilemap_wfc.logging_config import get_logger

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = get_logger(__name__)


class PatternCatalog:
    """Ordered collection of the unique tile patterns found in a training grid.

    Patterns of size NxN are extracted by sliding a window with a stride of 1 over the training grid. Every window that
    contains an empty tile is skipped. Identical windows are merged into one pattern whose occurrence count is
    incremented. The index of a pattern is its position in discovery order (row by row, left to right), and its
    probability is its share of all counted occurrences.

    Attributes:
        pattern_size: The width and height of the square patterns extracted (in tiles).
        pattern_count: The total number of unique patterns discovered.
    """

    pattern_size: int
    pattern_count: int

    # The tile index that marks unknown/empty cells of the training grid.
    _empty_tile_index: int

    # A list of unique pattern objects, where the index corresponds to the pattern ID.
    _patterns: list[_Pattern]

    # An array storing the occurrence count for each pattern.
    _frequency_hints: NDArray[np.int_]

    # An array storing occurrences / total occurrences for each pattern. Sums up to 1.0.
    _probabilities: NDArray[np.double]

    def __init__(
        self, training_grid: ArrayLike, pattern_size: int, empty_tile_index: int = EMPTY_TILE_INDEX
    ) -> None:
        """Extracts and counts the patterns of the training grid.

        Args:
            training_grid: The dense 2D grid of tile indices serving as an example of the desired output.
            pattern_size: The width and height of the square patterns extracted (in tiles).
            empty_tile_index: The tile index that marks unknown/empty cells of the training grid. Windows containing it
                are never turned into patterns.

        Raises:
            MalformedTrainingDataError: If the training grid is not a dense 2D integer grid or if it does not contain a
                single window free of empty tiles.
        """
        if pattern_size < 1:
            raise ValueError(f"pattern size must be positive, got {pattern_size}")

        self.pattern_size = pattern_size
        self._empty_tile_index = empty_tile_index

        sample_array = _to_training_array(training_grid)
        self._extract_and_count_patterns(sample_array)
        self._finish_catalog()

        logger.debug(
            f"Extracted {self.pattern_count} unique {pattern_size}x{pattern_size} patterns from a "
            f"{sample_array.shape[1]}x{sample_array.shape[0]} training grid"
        )

    @classmethod
    def from_definitions(
        cls,
        definitions: Sequence[ArrayLike],
        frequencies: Sequence[int] | None = None,
        empty_tile_index: int = EMPTY_TILE_INDEX,
    ) -> PatternCatalog:
        """Builds a catalog from explicitly given pattern definitions instead of a training grid.

        Args:
            definitions: The square tile arrangements of the patterns, in index order. Must be unique.
            frequencies: The occurrence count of each pattern. Defaults to 1 for every pattern.
            empty_tile_index: The tile index that marks unknown/empty cells.

        Returns:
            The new catalog.
        """
        if not definitions:
            raise MalformedTrainingDataError("a pattern catalog needs at least one pattern")
        if frequencies is not None and len(frequencies) != len(definitions):
            raise ValueError(f"got {len(frequencies)} frequencies for {len(definitions)} pattern definitions")

        catalog = cls.__new__(cls)
        catalog._empty_tile_index = empty_tile_index
        catalog._patterns = []

        seen_keys = set()
        for index, definition in enumerate(definitions):
            tile_arrangement = np.asarray(definition, dtype=np.int_)
            if tile_arrangement.ndim != 2 or tile_arrangement.shape[0] != tile_arrangement.shape[1]:
                raise ValueError(f"pattern definition {index} is not a square 2D array")

            key = _hash_tile_arrangement(tile_arrangement)
            if key in seen_keys:
                raise ValueError(f"pattern definition {index} is a duplicate")
            seen_keys.add(key)

            pattern = _Pattern(index, tile_arrangement)
            if frequencies is not None:
                if frequencies[index] < 1:
                    raise ValueError(f"pattern definition {index} needs a positive frequency")
                pattern._frequency = int(frequencies[index])
            catalog._patterns.append(pattern)

        catalog.pattern_size = catalog._patterns[0]._tile_arrangement.shape[0]
        if any(pattern._tile_arrangement.shape[0] != catalog.pattern_size for pattern in catalog._patterns):
            raise ValueError("all pattern definitions must have the same size")

        catalog._finish_catalog()
        return catalog

    @property
    def probabilities(self) -> NDArray[np.double]:
        """The probability of each pattern, indexed by pattern index."""
        return self._probabilities

    @property
    def frequencies(self) -> NDArray[np.int_]:
        """The occurrence count of each pattern, indexed by pattern index."""
        return self._frequency_hints

    def get_definition(self, pattern_index: int) -> NDArray[np.int_]:
        """Returns a copy of the NxN tile arrangement of the pattern with the given index."""
        return self._patterns[pattern_index]._tile_arrangement.copy()

    def get_flat_definition(self, pattern_index: int) -> tuple[int, ...]:
        """Returns the tile arrangement of a pattern flattened row by row."""
        return tuple(int(tile) for tile in self._patterns[pattern_index]._tile_arrangement.flatten())

    def get_probability(self, pattern_index: int) -> float:
        """Returns the share of all counted occurrences that belongs to the pattern with the given index."""
        return float(self._probabilities[pattern_index])

    def get_tile_index(self, pattern_index: int, dx: int = 0, dy: int = 0) -> int:
        """Returns the tile index at offset (dx, dy) of a pattern.

        Args:
            pattern_index: The index of the pattern.
            dx: Column offset inside the pattern. Defaults to the left column.
            dy: Row offset inside the pattern. Defaults to the top row.

        Returns:
            The tile index at the given offset, or the empty tile index if the pattern index is invalid (-1).
        """
        if pattern_index < 0:
            return self._empty_tile_index
        return int(self._patterns[pattern_index]._tile_arrangement[dy, dx])

    def _extract_and_count_patterns(self, sample_array: NDArray[np.int_]) -> None:
        """Extracts all unique NxN patterns and counts their frequency."""
        self._patterns = []
        patterns_by_hash: dict[tuple[int, ...], _Pattern] = {}
        skipped_windows = 0

        for row in range(sample_array.shape[0] - self.pattern_size + 1):
            for col in range(sample_array.shape[1] - self.pattern_size + 1):
                tile_arrangement = sample_array[row : row + self.pattern_size, col : col + self.pattern_size]

                # A window touching an unknown tile cannot be a pattern source.
                if (tile_arrangement == self._empty_tile_index).any():
                    skipped_windows += 1
                    continue

                hash_value = _hash_tile_arrangement(tile_arrangement)
                if hash_value not in patterns_by_hash:
                    new_pattern = _Pattern(len(self._patterns), tile_arrangement)
                    self._patterns.append(new_pattern)
                    patterns_by_hash[hash_value] = new_pattern
                else:
                    patterns_by_hash[hash_value]._frequency += 1

        if skipped_windows:
            logger.debug(f"Skipped {skipped_windows} windows containing empty tiles")

        if not self._patterns:
            raise MalformedTrainingDataError(
                f"training grid of shape {sample_array.shape} contains no {self.pattern_size}x{self.pattern_size} "
                f"window free of empty tiles ({self._empty_tile_index})"
            )

    def _finish_catalog(self) -> None:
        """Derives the pattern count, frequency hints and probabilities from the extracted patterns."""
        self.pattern_count = len(self._patterns)
        self._frequency_hints = np.array([pattern._frequency for pattern in self._patterns], dtype=np.int_)
        self._probabilities = self._frequency_hints / self._frequency_hints.sum()


def _to_training_array(training_grid: ArrayLike) -> NDArray[np.int_]:
    """Converts the training grid into a 2D integer array, rejecting ragged or non-2D input."""
    try:
        sample_array = np.asarray(training_grid, dtype=np.int_)
    except (TypeError, ValueError) as exc:
        raise MalformedTrainingDataError(f"training grid is not a dense integer grid: {exc}") from exc

    if sample_array.ndim != 2:
        raise MalformedTrainingDataError(f"training grid must be 2D, got {sample_array.ndim} dimensions")
    return sample_array


def _hash_tile_arrangement(array: NDArray[np.int_]) -> tuple[int, ...]:
    """Generates a hashable key for a pattern's tile arrangement."""
    return tuple(int(tile) for tile in array.flatten())


class _Pattern:
    """Internal class to represent a single unique NxN tile pattern."""

    # The unique integer ID for this pattern.
    _index: int
    # The NxN array of tile indices that define the pattern.
    _tile_arrangement: NDArray[np.int_]
    # The number of times this pattern was found in the training grid.
    _frequency: int

    def __init__(self, index: int, tile_arrangement: NDArray[np.int_]) -> None:
        """Initializes a pattern object. Frequency starts at 1 upon creation."""
        self._index = index
        self._tile_arrangement = tile_arrangement.copy()
        self._frequency = 1
