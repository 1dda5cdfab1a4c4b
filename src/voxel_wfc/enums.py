"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class Direction(Enum):
    """Defines the six axis-aligned directions used for pattern adjacency.

    The y axis points downwards (towards the floor), so UP decreases the y coordinate and DOWN increases it.
    """

    LEFT = 0
    """Negative x direction."""
    RIGHT = 1
    """Positive x direction."""
    UP = 2
    """Negative y direction (away from the floor)."""
    DOWN = 3
    """Positive y direction (towards the floor)."""
    FRONT = 4
    """Negative z direction."""
    BACK = 5
    """Positive z direction."""

    def reverse(self) -> Direction:
        """Returns the opposite direction of the current direction."""
        match self:
            case Direction.LEFT:
                return Direction.RIGHT
            case Direction.RIGHT:
                return Direction.LEFT
            case Direction.UP:
                return Direction.DOWN
            case Direction.DOWN:
                return Direction.UP
            case Direction.FRONT:
                return Direction.BACK
            case Direction.BACK:
                return Direction.FRONT

    def to_vector(self) -> tuple[int, int, int]:
        """Returns the (x, y, z) offset vector for the direction."""
        match self:
            case Direction.LEFT:
                return (-1, 0, 0)
            case Direction.RIGHT:
                return (1, 0, 0)
            case Direction.UP:
                return (0, -1, 0)
            case Direction.DOWN:
                return (0, 1, 0)
            case Direction.FRONT:
                return (0, 0, -1)
            case Direction.BACK:
                return (0, 0, 1)


class SolverState(Enum):
    """Defines the states the voxel WFC solver goes through during a single solve() call."""

    INITIALIZING = "Initializing"
    """The wave is being (re)initialized; forced floor and padding cells are pending."""
    COLLAPSING = "Collapsing"
    """Cells are being collapsed and propagated."""
    RETRYING = "Retrying"
    """The last step ran into a contradiction and the wave was restored from the last snapshot."""
    SUCCESS = "Success"
    """Every cell of the wave has been collapsed to a single pattern."""
    FAILED = "Failed"
    """The maximum number of full restarts has been reached without collapsing the wave."""
