"""Implements the core WFC algorithm that turns a small training grid into a large tilemap."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.constants import (
    EMPTY_TILE_INDEX,
    ENTROPY_NOISE_MAX,
    PATTERN_SIZE_DEFAULT,
    PATTERN_SIZE_SUPPORTED,
    WFC_MAX_ATTEMPTS_DEFAULT,
)
from tilemap_wfc.errors import ContradictionError
from tilemap_wfc.logging_config import get_logger
from tilemap_wfc.model.adjacency_rules import AdjacencyRules
from tilemap_wfc.model.collapser import Collapser
from tilemap_wfc.model.output_streamer import OutputStreamer, get_tile_grid_from_pattern_grid
from tilemap_wfc.model.pattern_catalog import PatternCatalog
from tilemap_wfc.model.propagator import Propagator
from tilemap_wfc.model.wave_grid import EntropyCache, WaveGrid

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = get_logger(__name__)


class WFC:
    """Generates a tilemap that is locally consistent with the patterns of a training grid.

    The patterns and their adjacency rules are derived once on construction. Generation then repeats collapse and
    propagation rounds until every wave cell holds a single pattern: the undecided cell with the lowest entropy is
    collapsed to a pattern sampled by training frequency, and the consequences are propagated to all reachable cells.
    There is no backtracking; a contradiction ends the run with a ContradictionError (see 'generate_with_restarts()'
    for a policy that retries with other seeds).

    The wave is smaller than the output by the pattern margin (pattern size - 1) in each dimension. The result can be
    retrieved all at once ('generate()') or tile by tile while the generation proceeds ('stream()'). Both consume the
    same state, so a partially consumed stream can be finished with 'generate()'.

    Attributes:
        catalog: The unique patterns of the training grid and their probabilities.
        rules: The adjacency rules derived from the catalog.
        random_seed: The seed the random generator was created from (None for fresh OS entropy).
    """

    catalog: PatternCatalog
    rules: AdjacencyRules
    random_seed: int | None

    # The tile index used for output cells that have not been written yet.
    _empty_tile_index: int
    # Random source shared by the entropy noise and the pattern sampling.
    _rng: np.random.Generator

    # The mutable search state and its helpers.
    _wave: WaveGrid
    _entropy_cache: EntropyCache
    _collapser: Collapser
    _propagator: Propagator

    # True once the first round has run.
    _started: bool
    # The contradiction that ended the run, if any.
    _failure: ContradictionError | None

    def __init__(
        self,
        training_grid: ArrayLike,
        output_size: int,
        pattern_size: int = PATTERN_SIZE_DEFAULT,
        random_seed: int | None = None,
        empty_tile_index: int = EMPTY_TILE_INDEX,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Derives patterns and rules from the training grid and sets up the initial wave.

        Args:
            training_grid: The dense 2D grid of tile indices serving as an example of the desired output.
            output_size: Width and height of the output tilemap (in tiles), including the pattern margin.
            pattern_size: The width and height of the square patterns extracted (in tiles). Only 2 is supported.
            random_seed: Seed for the random generator. Two runs with the same inputs and seed produce the same
                tilemap. None draws fresh entropy from the OS.
            empty_tile_index: The tile index marking unknown tiles in the training grid and unwritten output tiles.
            rng: Random generator to use instead of one created from 'random_seed'.

        Raises:
            MalformedTrainingDataError: If the training grid contains no window free of empty tiles.
            ValueError: If the pattern size is not supported or the output is not larger than the pattern margin.
        """
        _validate_pattern_size(pattern_size)
        wave_edge = output_size - (pattern_size - 1)
        if wave_edge < 1:
            raise ValueError(f"output size {output_size} leaves no room for {pattern_size}x{pattern_size} patterns")

        catalog = PatternCatalog(training_grid, pattern_size, empty_tile_index)
        rules = AdjacencyRules(catalog)
        self._setup(catalog, rules, (wave_edge, wave_edge), random_seed, empty_tile_index, rng)

    @classmethod
    def from_rules(
        cls,
        catalog: PatternCatalog,
        rules: AdjacencyRules,
        wave_size: tuple[int, int],
        random_seed: int | None = None,
        empty_tile_index: int = EMPTY_TILE_INDEX,
        rng: np.random.Generator | None = None,
    ) -> WFC:
        """Creates a generator from an existing catalog and rule set instead of a training grid.

        Args:
            catalog: The patterns to place.
            rules: The adjacency rules between the patterns of the catalog.
            wave_size: (width, height) of the wave grid. The output is larger by the pattern margin.
            random_seed: Seed for the random generator (None for fresh OS entropy).
            empty_tile_index: The tile index used for unwritten output tiles.
            rng: Random generator to use instead of one created from 'random_seed'.

        Returns:
            The new generator, ready to run.
        """
        _validate_pattern_size(catalog.pattern_size)
        if rules.pattern_count != catalog.pattern_count:
            raise ValueError(
                f"adjacency rules cover {rules.pattern_count} patterns, the catalog {catalog.pattern_count}"
            )

        wfc = cls.__new__(cls)
        wfc._setup(catalog, rules, wave_size, random_seed, empty_tile_index, rng)
        return wfc

    @property
    def wave_size(self) -> tuple[int, int]:
        """(width, height) of the wave grid."""
        return self._wave.width, self._wave.height

    @property
    def output_shape(self) -> tuple[int, int]:
        """(rows, columns) of the output tilemap."""
        margin = self.catalog.pattern_size - 1
        return self._wave.height + margin, self._wave.width + margin

    @property
    def empty_tile_index(self) -> int:
        """The tile index of output tiles that have not been written."""
        return self._empty_tile_index

    @property
    def wave(self) -> WaveGrid:
        """The search state of the generator (read access for inspection, mutated only by the generator)."""
        return self._wave

    @property
    def entropy_cache(self) -> EntropyCache:
        """The cached entropies used to pick the next cell."""
        return self._entropy_cache

    @property
    def failure(self) -> ContradictionError | None:
        """The contradiction that ended the run, None if there was none (yet)."""
        return self._failure

    def is_finished(self) -> bool:
        """Returns True once every wave cell is collapsed."""
        return self._wave.is_fully_collapsed()

    def step(self) -> list[tuple[int, int, int]] | None:
        """Runs one collapse and propagation round.

        The very first round also reports the cells that were decided from the start (only the case for a catalog
        with a single pattern), since no collapse will ever report them.

        Returns:
            (x, y, pattern index) for every wave cell determined by this round, the explicitly collapsed cell first,
                followed by the cells propagation narrowed down to one pattern. None if the wave was already fully
                collapsed.

        Raises:
            ContradictionError: If the round (or an earlier one) ran into a contradiction.
        """
        if self._failure is not None:
            raise self._failure

        if not self._started:
            self._started = True
            logger.info(
                f"Generating {self.output_shape[1]}x{self.output_shape[0]} tilemap from "
                f"{self.catalog.pattern_count} patterns (seed: {self.random_seed})"
            )
            initially_collapsed = self._wave.get_collapsed_cells()
            if initially_collapsed:
                return initially_collapsed

        collapsed_cell = self._collapser.collapse_one()
        if collapsed_cell is None:
            return None

        x, y, _ = collapsed_cell
        try:
            implicitly_collapsed = self._propagator.propagate((x, y))
        except ContradictionError as exc:
            self._failure = exc
            raise

        if self._wave.is_fully_collapsed():
            logger.info(f"Tilemap generation finished (seed: {self.random_seed})")
        return [collapsed_cell] + implicitly_collapsed

    def run(self) -> None:
        """Runs collapse and propagation rounds until the wave is fully collapsed."""
        while self.step() is not None:
            pass

    def generate(self) -> NDArray[np.int_]:
        """Runs the generation to completion and returns the [y, x] tilemap.

        Raises:
            ContradictionError: If the generation ran into a contradiction.
        """
        self.run()
        return self.assemble_output()

    def stream(self) -> OutputStreamer:
        """Returns a pull-based sequence of (x, y, tile index) triples in the order the tiles get determined."""
        return OutputStreamer(self)

    def assemble_output(self) -> NDArray[np.int_]:
        """Projects the current wave onto the [y, x] tilemap. Tiles of undecided cells hold the empty tile index."""
        return get_tile_grid_from_pattern_grid(self.catalog, self._wave.get_pattern_grid(), self._empty_tile_index)

    def get_pattern_grid(self) -> NDArray[np.int_]:
        """Returns the [y, x] grid of collapsed pattern indices (-1 for undecided cells)."""
        return self._wave.get_pattern_grid()

    def _setup(
        self,
        catalog: PatternCatalog,
        rules: AdjacencyRules,
        wave_size: tuple[int, int],
        random_seed: int | None,
        empty_tile_index: int,
        rng: np.random.Generator | None,
    ) -> None:
        """Creates the wave and the components operating on it."""
        self.catalog = catalog
        self.rules = rules
        self.random_seed = random_seed
        self._empty_tile_index = empty_tile_index
        self._rng = rng if rng is not None else np.random.default_rng(random_seed)

        self._wave = WaveGrid(wave_size[0], wave_size[1], catalog.pattern_count)
        self._entropy_cache = EntropyCache(self._wave, catalog.probabilities, self._rng, ENTROPY_NOISE_MAX)
        self._collapser = Collapser(self._wave, self._entropy_cache, catalog.probabilities, self._rng)
        self._propagator = Propagator(self._wave, self._entropy_cache, rules)

        self._started = False
        self._failure = None


def generate_with_restarts(
    training_grid: ArrayLike,
    output_size: int,
    pattern_size: int = PATTERN_SIZE_DEFAULT,
    random_seed: int | None = None,
    max_attempts: int = WFC_MAX_ATTEMPTS_DEFAULT,
    empty_tile_index: int = EMPTY_TILE_INDEX,
) -> NDArray[np.int_]:
    """Generates a tilemap, starting over with another seed whenever a run ends in a contradiction.

    Attempt n (counting from 0) uses 'random_seed + n', so the outcome stays reproducible for a given seed. Patterns and
    rules are derived only once.

    Args:
        training_grid: The dense 2D grid of tile indices serving as an example of the desired output.
        output_size: Width and height of the output tilemap (in tiles), including the pattern margin.
        pattern_size: The width and height of the square patterns extracted (in tiles).
        random_seed: Seed of the first attempt (None for fresh OS entropy on every attempt).
        max_attempts: Number of complete runs before giving up.
        empty_tile_index: The tile index marking unknown tiles in the training grid and unwritten output tiles.

    Returns:
        The [y, x] tilemap of the first successful run.

    Raises:
        ContradictionError: The contradiction of the last attempt, if every attempt failed.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be positive, got {max_attempts}")

    wfc = WFC(training_grid, output_size, pattern_size, random_seed, empty_tile_index)
    last_error: ContradictionError | None = None

    for attempt in range(max_attempts):
        if attempt > 0:
            attempt_seed = None if random_seed is None else random_seed + attempt
            wfc = WFC.from_rules(wfc.catalog, wfc.rules, wfc.wave_size, attempt_seed, empty_tile_index)
        try:
            return wfc.generate()
        except ContradictionError as exc:
            last_error = exc
            logger.warning(f"Attempt {attempt + 1}/{max_attempts} failed: {exc}")

    assert last_error is not None
    raise last_error


def _validate_pattern_size(pattern_size: int) -> None:
    """Raises a ValueError for pattern sizes the generator does not support."""
    if pattern_size not in PATTERN_SIZE_SUPPORTED:
        raise ValueError(f"pattern size must be one of {PATTERN_SIZE_SUPPORTED}, got {pattern_size}")
