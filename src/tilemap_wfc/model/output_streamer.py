"""Turns collapsed wave cells into output tiles, all at once or one by one."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.errors import WFCError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tilemap_wfc.model.pattern_catalog import PatternCatalog
    from tilemap_wfc.model.wfc import WFC


def get_owned_tiles(
    catalog: PatternCatalog, wave_size: tuple[int, int], x: int, y: int, pattern_index: int
) -> list[tuple[int, int, int]]:
    """Returns the output tiles a collapsed wave cell is responsible for.

    Every wave cell writes the top-left tile of its pattern at its own coords. Cells in the last wave column
    additionally write the remaining columns of their pattern, cells in the last wave row the remaining rows, so the
    output (which is larger than the wave by the pattern margin) gets every tile written exactly once.

    Args:
        catalog: The catalog the pattern index refers to.
        wave_size: (width, height) of the wave grid.
        x: Column of the wave cell.
        y: Row of the wave cell.
        pattern_index: The pattern the cell collapsed to.

    Returns:
        (x, y, tile index) triples in output coords.
    """
    col_offsets = range(catalog.pattern_size) if x == wave_size[0] - 1 else range(1)
    row_offsets = range(catalog.pattern_size) if y == wave_size[1] - 1 else range(1)
    return [
        (x + dx, y + dy, catalog.get_tile_index(pattern_index, dx, dy)) for dy in row_offsets for dx in col_offsets
    ]


def get_tile_grid_from_pattern_grid(
    catalog: PatternCatalog, pattern_grid: NDArray[np.int_], empty_tile_index: int
) -> NDArray[np.int_]:
    """Converts a [y, x] grid of pattern indices into the [y, x] output grid of tile indices.

    Cells of the pattern grid holding -1 (undecided) write nothing, so their output tiles keep the empty tile index.
    """
    wave_height, wave_width = pattern_grid.shape
    margin = catalog.pattern_size - 1
    tile_grid = np.full((wave_height + margin, wave_width + margin), empty_tile_index, dtype=np.int_)

    for y in range(wave_height):
        for x in range(wave_width):
            if pattern_grid[y, x] == -1:
                continue
            for tile_x, tile_y, tile_index in get_owned_tiles(
                catalog, (wave_width, wave_height), x, y, int(pattern_grid[y, x])
            ):
                tile_grid[tile_y, tile_x] = tile_index
    return tile_grid


class OutputStreamer:
    """Finite, pull-based sequence of the output tiles in the order their cells get resolved.

    Each advance either hands out a tile that is already known, or runs exactly one more collapse and propagation round
    of the generator and queues the tiles of all cells that round determined. The sequence ends once the wave is fully
    collapsed. A contradiction is raised to the consumer on the advance that ran into it; the sequence is over after
    that. It cannot be restarted, and consuming it completely yields the same tiles the batch mode would produce.
    """

    # The generator driving the collapse/propagation rounds.
    _wfc: WFC
    # Tiles determined by the last round that have not been handed out yet.
    _pending_tiles: deque[tuple[int, int, int]]
    # True once the wave is fully collapsed or generation failed.
    _exhausted: bool

    def __init__(self, wfc: WFC) -> None:
        """Initializes the stream over the rounds of the given generator."""
        self._wfc = wfc
        self._pending_tiles = deque()
        self._exhausted = False

    def __iter__(self) -> OutputStreamer:
        return self

    def __next__(self) -> tuple[int, int, int]:
        """Returns the next determined (x, y, tile index) triple, running another round if none is pending."""
        while not self._pending_tiles:
            if self._exhausted:
                raise StopIteration

            try:
                determined_cells = self._wfc.step()
            except WFCError:
                self._exhausted = True
                raise

            if determined_cells is None:
                self._exhausted = True
                raise StopIteration

            for x, y, pattern_index in determined_cells:
                self._pending_tiles.extend(
                    get_owned_tiles(self._wfc.catalog, self._wfc.wave_size, x, y, pattern_index)
                )

        return self._pending_tiles.popleft()
