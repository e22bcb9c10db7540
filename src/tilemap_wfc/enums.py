"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class Direction(Enum):
    """Defines the offsets between a wave cell and its eight surrounding cells (plus the cell itself).

    Vectors are (dx, dy) with x growing to the right and y growing downwards.
    """

    NONE = 0
    """No offset, the cell itself."""
    UP = 1
    """Upward direction."""
    LEFT = 2
    """Left direction."""
    DOWN = 3
    """Downward direction."""
    RIGHT = 4
    """Right direction."""
    UP_LEFT = 5
    """Diagonal direction towards the upper left corner."""
    UP_RIGHT = 6
    """Diagonal direction towards the upper right corner."""
    DOWN_LEFT = 7
    """Diagonal direction towards the lower left corner."""
    DOWN_RIGHT = 8
    """Diagonal direction towards the lower right corner."""

    @classmethod
    def outward(cls) -> tuple[Direction, ...]:
        """Returns the eight directions that point to an actual neighbor cell."""
        return tuple(direction for direction in cls if direction != cls.NONE)

    def reverse(self) -> Direction:
        """Returns the opposite direction of the current direction."""
        match self:
            case Direction.NONE:
                return Direction.NONE
            case Direction.UP:
                return Direction.DOWN
            case Direction.LEFT:
                return Direction.RIGHT
            case Direction.DOWN:
                return Direction.UP
            case Direction.RIGHT:
                return Direction.LEFT
            case Direction.UP_LEFT:
                return Direction.DOWN_RIGHT
            case Direction.UP_RIGHT:
                return Direction.DOWN_LEFT
            case Direction.DOWN_LEFT:
                return Direction.UP_RIGHT
            case Direction.DOWN_RIGHT:
                return Direction.UP_LEFT

    def to_vector(self) -> tuple[int, int]:
        """Returns the (dx, dy) vector representation for the direction."""
        match self:
            case Direction.NONE:
                return (0, 0)
            case Direction.UP:
                return (0, -1)
            case Direction.LEFT:
                return (-1, 0)
            case Direction.DOWN:
                return (0, 1)
            case Direction.RIGHT:
                return (1, 0)
            case Direction.UP_LEFT:
                return (-1, -1)
            case Direction.UP_RIGHT:
                return (1, -1)
            case Direction.DOWN_LEFT:
                return (-1, 1)
            case Direction.DOWN_RIGHT:
                return (1, 1)


class WFCUpdateType(Enum):
    """Defines the types of update messages the WFC worker process sends."""

    OUTPUT_CELL_COLLAPSED = 0
    """Used when the worker has determined the tile of an output cell."""
    FINISHED = 1
    """Used when the worker has finished generating the entire tilemap."""
    FAILED = 2
    """Used when the worker ran into a contradiction and had to abort."""


class TrainingFileFormat(Enum):
    """Defines the file formats training grids can be loaded from."""

    CSV = ".csv"
    """Comma separated tile indices, one grid row per line."""
    PYXEL_JSON = ".json"
    """Tilemap export of the Pyxel Edit tile editor."""
