"""Tests for tilemap_wfc.model.training_data module."""

import json
from pathlib import Path

import numpy as np
import pytest

from tilemap_wfc.errors import MalformedTrainingDataError
from tilemap_wfc.model.training_data import load_training_grid, save_tilemap_csv


def _write_pyxel_export(path: Path, layers: list[dict]) -> Path:
    path.write_text(json.dumps({"tileswide": 4, "tileshigh": 4, "layers": layers}), encoding="utf-8")
    return path


class TestCsv:
    """Tests for comma separated training grids."""

    def test_load_grid(self, tmp_path: Path):
        """Test each line becomes one row of the grid."""
        path = tmp_path / "sample.csv"
        path.write_text("0,1,2\n3,4,5\n", encoding="utf-8")
        assert load_training_grid(path).tolist() == [[0, 1, 2], [3, 4, 5]]

    def test_load_single_row(self, tmp_path: Path):
        """Test a single line is still read as a 2D grid."""
        path = tmp_path / "row.csv"
        path.write_text("0,1,0,1\n", encoding="utf-8")
        assert load_training_grid(path).shape == (1, 4)

    def test_empty_tiles_are_kept(self, tmp_path: Path):
        """Test empty tiles are passed on to the pattern extraction."""
        path = tmp_path / "sample.CSV"
        path.write_text("-1,0\n0,0\n", encoding="utf-8")
        assert load_training_grid(path).tolist() == [[-1, 0], [0, 0]]

    def test_missing_file(self, tmp_path: Path):
        """Test an unreadable file is reported as malformed training data."""
        with pytest.raises(MalformedTrainingDataError):
            load_training_grid(tmp_path / "missing.csv")

    def test_save_tilemap(self, tmp_path: Path):
        """Test saved tilemaps can be used as training grids again."""
        tilemap = np.array([[3, 1], [2, 0], [1, 1]])
        path = tmp_path / "out.csv"
        save_tilemap_csv(path, tilemap)
        assert path.read_text(encoding="utf-8").splitlines() == ["3,1", "2,0", "1,1"]
        assert np.array_equal(load_training_grid(path), tilemap)


class TestPyxelExport:
    """Tests for Pyxel Edit tilemap exports."""

    def test_grid_is_cropped_to_placed_tiles(self, tmp_path: Path):
        """Test the grid covers the bounding box of all non-empty tiles."""
        tiles = [
            {"x": 1, "y": 1, "tile": 5, "index": 5},
            {"x": 2, "y": 1, "tile": 6, "index": 6},
            {"x": 1, "y": 2, "tile": 7, "index": 9},
            {"x": 3, "y": 3, "tile": -1, "index": 15},
        ]
        path = _write_pyxel_export(tmp_path / "map.json", [{"number": 0, "name": "Layer 0", "tiles": tiles}])
        assert load_training_grid(path).tolist() == [[5, 6], [7, -1]]

    def test_layer_selection(self, tmp_path: Path):
        """Test the requested layer is read."""
        layers = [
            {"number": 0, "tiles": [{"x": 0, "y": 0, "tile": 1}]},
            {"number": 1, "tiles": [{"x": 0, "y": 0, "tile": 2}, {"x": 1, "y": 0, "tile": 3}]},
        ]
        path = _write_pyxel_export(tmp_path / "map.json", layers)
        assert load_training_grid(path, layer_number=1).tolist() == [[2, 3]]

    def test_missing_layer(self, tmp_path: Path):
        """Test asking for a layer the export does not have."""
        path = _write_pyxel_export(tmp_path / "map.json", [{"number": 0, "tiles": [{"x": 0, "y": 0, "tile": 1}]}])
        with pytest.raises(MalformedTrainingDataError):
            load_training_grid(path, layer_number=2)

    def test_layer_without_tiles(self, tmp_path: Path):
        """Test a layer of empty tiles cannot serve as training grid."""
        path = _write_pyxel_export(tmp_path / "map.json", [{"number": 0, "tiles": [{"x": 0, "y": 0, "tile": -1}]}])
        with pytest.raises(MalformedTrainingDataError):
            load_training_grid(path)

    def test_not_a_pyxel_export(self, tmp_path: Path):
        """Test arbitrary JSON is rejected."""
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"foo": "bar"}), encoding="utf-8")
        with pytest.raises(MalformedTrainingDataError):
            load_training_grid(path)

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedTrainingDataError):
            load_training_grid(path)


def test_unsupported_extension(tmp_path: Path):
    """Test files are only read by their known extensions."""
    path = tmp_path / "sample.txt"
    path.write_text("0,1\n1,0\n", encoding="utf-8")
    with pytest.raises(MalformedTrainingDataError):
        load_training_grid(path)
