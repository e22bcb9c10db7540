"""Tests for tilemap_wfc.model.collapser module."""

import numpy as np
import pytest

from tilemap_wfc.model.collapser import Collapser
from tilemap_wfc.model.wave_grid import EntropyCache, WaveGrid


def _make_collapser(width: int, height: int, probabilities: list[float], seed: int = 0):
    probability_array = np.array(probabilities)
    rng = np.random.default_rng(seed)
    wave = WaveGrid(width, height, len(probabilities))
    entropy_cache = EntropyCache(wave, probability_array, rng)
    return wave, entropy_cache, Collapser(wave, entropy_cache, probability_array, rng)


class TestCollapseOne:
    """Tests for collapsing a single cell."""

    def test_collapses_lowest_entropy_cell(self):
        """Test the cell with the fewest options is collapsed first."""
        wave, entropy_cache, collapser = _make_collapser(3, 3, [0.25, 0.25, 0.25, 0.25])
        wave.restrict(2, 1, np.array([False, True, True, False]))
        entropy_cache.update([wave.index(2, 1)])

        x, y, pattern_index = collapser.collapse_one()
        assert (x, y) == (2, 1)
        assert pattern_index in (1, 2)
        assert wave.get_possible_pattern_indices(2, 1) == [pattern_index]
        assert entropy_cache.get(2, 1) == 0.0

    def test_only_remaining_pattern_is_chosen(self):
        """Test a cell with a single candidate left among several undecided ones."""
        wave, entropy_cache, collapser = _make_collapser(2, 1, [0.5, 0.5])
        wave.collapse(0, 0, 1)
        entropy_cache.mark_collapsed(0)

        assert collapser.collapse_one()[:2] == (1, 0)
        assert wave.is_fully_collapsed()

    def test_returns_none_when_fully_collapsed(self):
        """Test there is nothing to collapse once every cell holds one pattern."""
        wave, _, collapser = _make_collapser(2, 2, [0.5, 0.5])
        for _ in range(4):
            assert collapser.collapse_one() is not None
        assert wave.is_fully_collapsed()
        assert collapser.collapse_one() is None

    def test_every_cell_is_collapsed_once(self):
        """Test repeated calls visit every cell exactly once."""
        wave, _, collapser = _make_collapser(3, 2, [0.5, 0.5])
        collapsed_coords = []
        while (collapsed_cell := collapser.collapse_one()) is not None:
            collapsed_coords.append(collapsed_cell[:2])
        assert sorted(collapsed_coords) == sorted((x, y) for x in range(3) for y in range(2))


class TestPatternSampling:
    """Tests for the weighted choice of the pattern."""

    def test_sampling_follows_probabilities(self):
        """Test a pattern with 90% probability is picked roughly 9 out of 10 times."""
        _, _, collapser = _make_collapser(1, 1, [0.9, 0.1], seed=1234)
        choices = [collapser._choose_pattern_index(np.array([True, True])) for _ in range(2000)]
        share = choices.count(0) / len(choices)
        assert share == pytest.approx(0.9, abs=0.04)

    def test_removed_patterns_are_never_sampled(self):
        """Test only possible patterns are candidates, whatever their probability."""
        _, _, collapser = _make_collapser(1, 1, [0.98, 0.01, 0.01], seed=5)
        choices = {collapser._choose_pattern_index(np.array([False, True, True])) for _ in range(200)}
        assert choices == {1, 2}

    def test_same_seed_same_choices(self):
        """Test the sampling is reproducible through the injected generator."""
        first = _make_collapser(1, 1, [0.3, 0.3, 0.4], seed=99)[2]
        second = _make_collapser(1, 1, [0.3, 0.3, 0.4], seed=99)[2]
        mask = np.array([True, True, True])
        assert [first._choose_pattern_index(mask) for _ in range(50)] == [
            second._choose_pattern_index(mask) for _ in range(50)
        ]
