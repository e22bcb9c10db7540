"""Picks the next wave cell and commits it to a single pattern."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tilemap_wfc.model.wave_grid import EntropyCache, WaveGrid


class Collapser:
    """Collapses the undecided cell with the lowest cached entropy.

    The pattern of the chosen cell is sampled among its remaining patterns, weighted by the patterns' catalog
    probabilities, so motifs that are common in the training grid recur more often in the output.
    """

    # The wave grid whose cells get collapsed.
    _wave: WaveGrid
    # The entropy cache used for picking the cell (kept in sync with every collapse).
    _entropy_cache: EntropyCache
    # The catalog probability of every pattern (used as sampling weights).
    _probabilities: NDArray[np.double]
    # Random source for the weighted sampling.
    _rng: np.random.Generator

    def __init__(
        self,
        wave: WaveGrid,
        entropy_cache: EntropyCache,
        probabilities: NDArray[np.double],
        rng: np.random.Generator,
    ) -> None:
        """Initializes the collapser.

        Args:
            wave: The wave grid whose cells get collapsed.
            entropy_cache: The entropy cache used for picking the cell.
            probabilities: The catalog probability of every pattern.
            rng: Random source for the weighted sampling.
        """
        self._wave = wave
        self._entropy_cache = entropy_cache
        self._probabilities = probabilities
        self._rng = rng

    def collapse_one(self) -> tuple[int, int, int] | None:
        """Collapses the undecided cell with the lowest cached entropy.

        Returns:
            The (x, y) coords of the collapsed cell and the chosen pattern index, or None if every cell of the wave is
                already collapsed.
        """
        index = self._entropy_cache.find_lowest()
        if index is None:
            return None

        x, y = self._wave.coords(index)
        pattern_index = self._choose_pattern_index(self._wave.get_possible_patterns(x, y))

        self._wave.collapse(x, y, pattern_index)
        self._entropy_cache.mark_collapsed(index)
        return x, y, pattern_index

    def _choose_pattern_index(self, possible_patterns: NDArray[np.bool_]) -> int:
        """Randomly picks one of the possible patterns, weighed by pattern probability."""
        candidates = np.flatnonzero(possible_patterns)
        cumulative_weights = np.cumsum(self._probabilities[candidates])

        # The first candidate whose cumulative weight exceeds the sample wins.
        sample = self._rng.uniform(0.0, cumulative_weights[-1])
        position = int(np.searchsorted(cumulative_weights, sample, side="right"))
        return int(candidates[min(position, len(candidates) - 1)])
