"""Contains the exception classes raised by the tilemap generator."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tilemap_wfc.enums import Direction


class WFCError(Exception):
    """Base class for all errors raised while preparing or running a generation."""


class MalformedTrainingDataError(WFCError):
    """Raised when the training grid cannot serve as a source of patterns.

    This is the case when the grid is not a dense 2D integer array, when the training file cannot be read, or when no
    window of the pattern size is free of empty tiles.
    """


class ContradictionError(WFCError):
    """Raised when propagation removes the last possible pattern of a wave cell.

    The algorithm never undoes a collapse, so the current generation run cannot be continued. A caller wanting a result
    has to start a new run (preferably with a different seed).

    Attributes:
        x: Column of the wave cell that ran out of possible patterns.
        y: Row of the wave cell that ran out of possible patterns.
        direction: Direction from the source cell to the emptied cell, None if unknown.
        source: (x, y) coords of the cell whose remaining patterns caused the removal, None if unknown.
    """

    x: int
    y: int
    direction: Direction | None
    source: tuple[int, int] | None

    def __init__(
        self, x: int, y: int, direction: Direction | None = None, source: tuple[int, int] | None = None
    ) -> None:
        self.x = x
        self.y = y
        self.direction = direction
        self.source = source

        message = f"contradiction at cell ({x}, {y})"
        if direction is not None and source is not None:
            message += f", reached from cell {source} going {direction.name}"
        super().__init__(message)

    def __reduce__(self) -> tuple:
        # Keeps the error picklable across process boundaries.
        return (type(self), (self.x, self.y, self.direction, self.source))


class GridIndexError(WFCError, IndexError):
    """Raised for any read or write outside the bounds of a grid."""
