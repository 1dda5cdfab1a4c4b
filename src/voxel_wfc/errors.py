"""Contains the exception classes raised by the voxel WFC solver."""

from __future__ import annotations


class VoxelWFCError(Exception):
    """Base class of all errors raised by this project."""

    pass


class ConfigurationError(VoxelWFCError, ValueError):
    """Raised when the solver is configured with invalid parameters.

    This is always raised before any solving starts, never in the middle of a solve() call.
    """

    pass


class VolumeFormatError(VoxelWFCError):
    """Raised when a voxel volume file does not contain a 3D integer array."""

    pass


class ContradictionError(VoxelWFCError):
    """Raised when constraint propagation eliminates every possible pattern of a cell.

    Only the solver's main loop handles this error (by restoring a snapshot or restarting), so it never reaches
    the caller of solve().

    Attributes:
        cell_index: The flat index of the cell whose domain became empty.
        position: The (x, y, z) position of that cell in the padded wave grid.
    """

    cell_index: int
    position: tuple[int, int, int]

    def __init__(self, cell_index: int, position: tuple[int, int, int]) -> None:
        super().__init__(f"Contradiction at cell {cell_index} {position}: no possible pattern left.")
        self.cell_index = cell_index
        self.position = position


class ExhaustedAttemptsError(VoxelWFCError):
    """Raised when a result without a volume is unwrapped after the solver ran out of restarts."""

    tries: int

    def __init__(self, tries: int) -> None:
        super().__init__(f"No solution found after {tries} tries.")
        self.tries = tries
