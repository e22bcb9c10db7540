"""Loads training grids from tile editor exports and saves generated tilemaps."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.constants import EMPTY_TILE_INDEX
from tilemap_wfc.enums import TrainingFileFormat
from tilemap_wfc.errors import MalformedTrainingDataError
from tilemap_wfc.logging_config import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)


def load_training_grid(file_path: Path | str, layer_number: int = 0) -> NDArray[np.int_]:
    """Loads a training grid, choosing the reader by file extension.

    Args:
        file_path: Path to a .csv file or a Pyxel Edit .json tilemap export.
        layer_number: The layer to read from a Pyxel Edit export (ignored for .csv files).

    Returns:
        The [y, x] grid of tile indices.
    """
    path = Path(file_path)
    try:
        file_format = TrainingFileFormat(path.suffix.lower())
    except ValueError as exc:
        raise MalformedTrainingDataError(f"unsupported training file format: {path.suffix!r}") from exc

    match file_format:
        case TrainingFileFormat.CSV:
            return load_training_grid_csv(path)
        case TrainingFileFormat.PYXEL_JSON:
            return load_training_grid_pyxel(path, layer_number)


def load_training_grid_csv(file_path: Path | str) -> NDArray[np.int_]:
    """Loads a grid of comma separated tile indices (one grid row per line)."""
    try:
        sample_array = np.genfromtxt(file_path, delimiter=",", dtype=np.int_)
    except (OSError, ValueError) as exc:
        raise MalformedTrainingDataError(f"cannot read training grid from {file_path}: {exc}") from exc

    # A single row (or column) is read as a 1D array.
    sample_array = np.atleast_2d(sample_array)
    if sample_array.ndim != 2 or sample_array.size == 0:
        raise MalformedTrainingDataError(f"{file_path} does not contain a 2D grid of tile indices")

    logger.debug(f"Loaded {sample_array.shape[1]}x{sample_array.shape[0]} training grid from {file_path}")
    return sample_array


def load_training_grid_pyxel(file_path: Path | str, layer_number: int = 0) -> NDArray[np.int_]:
    """Loads one layer of a Pyxel Edit tilemap export as training grid.

    The export lists the tiles of every layer as objects with 'x', 'y' and 'tile' keys, where a tile of -1 is empty. The
    returned grid is cropped to the bounding box of the non-empty tiles; empty tiles inside the box hold the empty tile
    index.

    Args:
        file_path: Path to the .json export.
        layer_number: The 'number' of the layer to read.

    Returns:
        The [y, x] grid of tile indices.
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            pyxel_file = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise MalformedTrainingDataError(f"cannot read Pyxel Edit export {file_path}: {exc}") from exc

    try:
        layer = next(layer for layer in pyxel_file["layers"] if layer["number"] == layer_number)
        tiles = [(int(tile["x"]), int(tile["y"]), int(tile["tile"])) for tile in layer["tiles"]]
    except StopIteration as exc:
        raise MalformedTrainingDataError(f"{file_path} has no layer number {layer_number}") from exc
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedTrainingDataError(f"{file_path} is not a Pyxel Edit tilemap export: {exc}") from exc

    placed_tiles = [(x, y, tile) for x, y, tile in tiles if tile != -1]
    if not placed_tiles:
        raise MalformedTrainingDataError(f"layer {layer_number} of {file_path} contains no tiles")

    min_x = min(x for x, _, _ in placed_tiles)
    min_y = min(y for _, y, _ in placed_tiles)
    max_x = max(x for x, _, _ in placed_tiles)
    max_y = max(y for _, y, _ in placed_tiles)

    sample_array = np.full((max_y - min_y + 1, max_x - min_x + 1), EMPTY_TILE_INDEX, dtype=np.int_)
    for x, y, tile in placed_tiles:
        sample_array[y - min_y, x - min_x] = tile

    logger.debug(
        f"Loaded {sample_array.shape[1]}x{sample_array.shape[0]} training grid from layer {layer_number} of {file_path}"
    )
    return sample_array


def save_tilemap_csv(file_path: Path | str, tilemap: NDArray[np.int_]) -> None:
    """Saves a tilemap as comma separated tile indices."""
    np.savetxt(file_path, tilemap, fmt="%i", delimiter=",")
