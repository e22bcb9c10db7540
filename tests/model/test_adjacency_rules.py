"""Tests for tilemap_wfc.model.adjacency_rules module."""

import numpy as np
import pytest

from tilemap_wfc.enums import Direction
from tilemap_wfc.model.adjacency_rules import AdjacencyRules
from tilemap_wfc.model.pattern_catalog import PatternCatalog


class TestOverlapRules:
    """Tests for deriving rules from overlapping pattern regions."""

    def test_stripes_alternate_horizontally(self, stripes_rules: AdjacencyRules):
        """Test each stripe pattern only allows the other one to its left and right."""
        assert stripes_rules.get_compatible_patterns(0, Direction.RIGHT) == [1]
        assert stripes_rules.get_compatible_patterns(0, Direction.LEFT) == [1]
        assert stripes_rules.get_compatible_patterns(1, Direction.RIGHT) == [0]

    def test_stripes_repeat_vertically(self, stripes_rules: AdjacencyRules):
        """Test each stripe pattern only allows itself above and below."""
        assert stripes_rules.get_compatible_patterns(0, Direction.UP) == [0]
        assert stripes_rules.get_compatible_patterns(1, Direction.DOWN) == [1]

    def test_diagonals_compare_single_corner(self, stripes_rules: AdjacencyRules):
        """Test diagonal directions compare the one shared corner tile."""
        # Pattern 0 is [[0, 1], [0, 1]]: its bottom-right tile (1) must be the top-left tile of the neighbor.
        assert stripes_rules.get_compatible_patterns(0, Direction.DOWN_RIGHT) == [1]
        # Its top-left tile (0) must be the bottom-right tile of the neighbor.
        assert stripes_rules.get_compatible_patterns(0, Direction.UP_LEFT) == [1]

    def test_none_direction_only_allows_identical_pattern(self, binary_rules: AdjacencyRules):
        """Test the zero offset compares the whole pattern."""
        for pattern_index in range(binary_rules.pattern_count):
            assert binary_rules.get_compatible_patterns(pattern_index, Direction.NONE) == [pattern_index]

    def test_edge_and_corner_counts_for_binary_patterns(self, binary_rules: AdjacencyRules):
        """Test edge directions fix two tiles (4 of 16 left) and corners fix one (8 of 16 left)."""
        for pattern_index in range(binary_rules.pattern_count):
            for direction in (Direction.UP, Direction.LEFT, Direction.DOWN, Direction.RIGHT):
                assert len(binary_rules.get_compatible_patterns(pattern_index, direction)) == 4
            for direction in (Direction.UP_LEFT, Direction.UP_RIGHT, Direction.DOWN_LEFT, Direction.DOWN_RIGHT):
                assert len(binary_rules.get_compatible_patterns(pattern_index, direction)) == 8

    def test_checkerboard_pattern_cannot_repeat_horizontally(self, checkerboard_grid: np.ndarray):
        """Test a pattern is not its own neighbor if its opposite edges differ."""
        rules = AdjacencyRules(PatternCatalog(checkerboard_grid, 2))
        assert not rules.is_allowed(0, 0, Direction.RIGHT)
        assert rules.is_allowed(0, 0, Direction.DOWN_RIGHT)


class TestRuleSymmetry:
    """Tests for the symmetry of rules in opposite directions."""

    @pytest.mark.parametrize("grid_fixture", ["stripes_grid", "all_binary_patterns_grid", "checkerboard_grid"])
    def test_rules_are_symmetric(self, grid_fixture: str, request: pytest.FixtureRequest):
        """Test B next to A in direction d implies A next to B in the opposite direction."""
        rules = AdjacencyRules(PatternCatalog(request.getfixturevalue(grid_fixture), 2))
        for a in range(rules.pattern_count):
            for b in range(rules.pattern_count):
                for direction in Direction:
                    assert rules.is_allowed(a, b, direction) == rules.is_allowed(b, a, direction.reverse())

    def test_irregular_grid_rules_are_symmetric(self):
        """Test symmetry on a grid with several tile values."""
        grid = np.array(
            [
                [0, 0, 1, 2, 2],
                [0, 1, 1, 2, 3],
                [1, 1, 2, 3, 3],
                [0, 1, 2, 2, 3],
            ]
        )
        rules = AdjacencyRules(PatternCatalog(grid, 2))
        for direction in Direction:
            forward = rules._adjacency_rules[:, :, direction.value]
            backward = rules._adjacency_rules[:, :, direction.reverse().value]
            assert np.array_equal(forward, backward.T)


class TestRuleQueries:
    """Tests for querying and verifying with rules."""

    def test_allowed_union(self, stripes_rules: AdjacencyRules):
        """Test the union over several possible patterns."""
        union = stripes_rules.get_allowed_union(np.array([True, True]), Direction.RIGHT)
        assert list(union) == [True, True]
        union = stripes_rules.get_allowed_union(np.array([True, False]), Direction.RIGHT)
        assert list(union) == [False, True]

    def test_allowed_union_of_nothing_is_empty(self, stripes_rules: AdjacencyRules):
        """Test an empty input mask allows nothing."""
        union = stripes_rules.get_allowed_union(np.array([False, False]), Direction.UP)
        assert not union.any()

    def test_is_consistent(self, stripes_rules: AdjacencyRules):
        """Test verifying complete pattern grids."""
        assert stripes_rules.is_consistent(np.array([[0, 1, 0], [0, 1, 0]]))
        assert not stripes_rules.is_consistent(np.array([[0, 0, 1], [0, 1, 0]]))
        assert not stripes_rules.is_consistent(np.array([[0, 1], [1, 0]]))

    def test_rules_are_read_only(self, stripes_rules: AdjacencyRules):
        """Test the rule table cannot be modified after construction."""
        with pytest.raises(ValueError):
            stripes_rules._adjacency_rules[0, 0, 0] = True

    def test_from_matrix_validates_shape(self):
        """Test a matrix with the wrong number of directions is rejected."""
        with pytest.raises(ValueError):
            AdjacencyRules.from_matrix(np.ones((2, 2, 4), dtype=bool))

    def test_rule_count(self, no_right_neighbor_rules: AdjacencyRules):
        """Test counting the legal triples."""
        assert no_right_neighbor_rules.rule_count == 2 * 2 * (len(Direction) - 1)
