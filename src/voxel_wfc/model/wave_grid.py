"""Contains the mutable cell state ("wave") of the voxel WFC algorithm."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from voxel_wfc.constants import EMPTY_PATTERN_INDEX, ENTROPY_NOISE_SCALE, FLOOR_PATTERN_INDEX
from voxel_wfc.enums import Direction

if TYPE_CHECKING:
    import random

    from numpy.typing import NDArray


class WaveGrid:
    """Stores the still possible patterns and the cached entropy of every cell of the padded output grid.

    Each cell's possibilities are a row of a boolean coefficient matrix with one column per pattern plus a last
    column for the floor sentinel, so pattern index -1 addresses the floor column directly. Cells are addressed by
    the flat index x + y * width + z * width * height.

    The grid is padded by one cell on every side: the bottom layer (y == height - 1) is the floor, the other border
    cells are filled with the empty pattern.

    Attributes:
        size: The (width, height, depth) of the padded grid (in cells).
        pattern_count: The number of patterns of the catalog (without the floor sentinel).
        cell_count: The total number of cells of the padded grid.
    """

    size: tuple[int, int, int]
    pattern_count: int
    cell_count: int

    # Boolean matrix of shape (cell_count, pattern_count + 1): True for each pattern still possible in a cell.
    _coefficients: NDArray[np.bool_]
    # The cached entropy of every cell (0 for collapsed cells).
    _entropies: NDArray[np.float64]
    # The weight of every pattern, used for the entropy calculation.
    _frequencies: NDArray[np.float64]
    # The flat index of each cell's neighbor per direction, -1 where the neighbor lies outside the grid.
    _neighbors: NDArray[np.int_]
    # Random number generator used for the entropy noise that breaks ties between cells.
    _rng: random.Random

    def __init__(self, size: tuple[int, int, int], frequencies: NDArray[np.float64], rng: random.Random) -> None:
        """Allocates an empty wave; call initialize() before using it.

        Args:
            size: The (width, height, depth) of the padded grid (in cells).
            frequencies: The weight of every pattern of the catalog.
            rng: Random number generator used for the entropy noise.
        """
        self.size = size
        self.pattern_count = len(frequencies)
        self.cell_count = size[0] * size[1] * size[2]

        self._frequencies = np.asarray(frequencies, dtype=np.float64)
        self._rng = rng

        self._coefficients = np.full((self.cell_count, self.pattern_count + 1), False, dtype=bool)
        self._entropies = np.zeros(self.cell_count, dtype=np.float64)
        self._neighbors = self._determine_neighbors()

    def initialize(self) -> list[int]:
        """Resets every cell and returns the cells with a forced pattern.

        Floor cells (the bottom layer) get the floor sentinel, the remaining border cells get the empty pattern and
        all other cells may hold any pattern of the catalog.

        Returns:
            The flat indices of all floor cells followed by those of all padding cells.
        """
        width, height, depth = self.size
        self._coefficients[:] = False

        floor_cells = []
        padding_cells = []
        for x in range(width):
            for y in range(height):
                for z in range(depth):
                    index = self.index_of(x, y, z)
                    if y == height - 1:
                        self._coefficients[index, FLOOR_PATTERN_INDEX] = True
                        floor_cells.append(index)
                    elif x == 0 or x == width - 1 or y == 0 or z == 0 or z == depth - 1:
                        self._coefficients[index, EMPTY_PATTERN_INDEX] = True
                        padding_cells.append(index)
                    else:
                        self._coefficients[index, : self.pattern_count] = True

        return floor_cells + padding_cells

    def index_of(self, x: int, y: int, z: int) -> int:
        """Returns the flat index of the cell at (x, y, z)."""
        return x + y * self.size[0] + z * self.size[0] * self.size[1]

    def position_of(self, index: int) -> tuple[int, int, int]:
        """Returns the (x, y, z) position of the cell with the given flat index."""
        x = index % self.size[0]
        y = (index // self.size[0]) % self.size[1]
        z = index // (self.size[0] * self.size[1])
        return x, y, z

    def neighbor_index(self, index: int, direction: Direction) -> int | None:
        """Returns the flat index of a cell's neighbor, or None if it lies outside the grid."""
        neighbor = int(self._neighbors[index, direction.value])
        return neighbor if neighbor >= 0 else None

    def get_coefficients(self, index: int) -> NDArray[np.bool_]:
        """Returns the coefficient row of a cell (a view, do not modify it)."""
        return self._coefficients[index]

    def set_coefficients(self, index: int, coefficients: NDArray[np.bool_]) -> None:
        """Replaces the possible patterns of a cell and updates its cached entropy."""
        self._coefficients[index] = coefficients
        self.update_entropy(index)

    def get_domain(self, index: int) -> list[int]:
        """Returns the indices of all patterns still possible in a cell (-1 for the floor sentinel)."""
        return [
            int(i) if i < self.pattern_count else FLOOR_PATTERN_INDEX
            for i in np.flatnonzero(self._coefficients[index])
        ]

    def domain_size(self, index: int) -> int:
        """Returns the number of patterns still possible in a cell."""
        return int(np.count_nonzero(self._coefficients[index]))

    def is_floor_cell(self, index: int) -> bool:
        """Returns True if the cell is a frozen floor cell (holding only the floor sentinel)."""
        return bool(self._coefficients[index, FLOOR_PATTERN_INDEX]) and self.domain_size(index) == 1

    def get_pattern_index(self, index: int) -> int:
        """Returns the pattern of a collapsed cell (-1 for the floor sentinel).

        Raises:
            ValueError: If the cell is not collapsed.
        """
        domain = self.get_domain(index)
        if len(domain) != 1:
            raise ValueError(f"Cell {index} is not collapsed, {len(domain)} patterns are still possible.")
        return domain[0]

    def collapse(self, index: int, pattern_index: int) -> None:
        """Collapses a cell to a single pattern and updates its cached entropy (to 0)."""
        self._coefficients[index] = False
        self._coefficients[index, pattern_index] = True
        self.update_entropy(index)

    def get_entropy(self, index: int) -> float:
        """Returns the cached entropy of a cell."""
        return float(self._entropies[index])

    def update_entropy(self, index: int) -> None:
        """Recomputes the cached entropy of a cell."""
        self._entropies[index] = self._calculate_entropy(index)

    def update_all_entropies(self) -> None:
        """Recomputes the cached entropy of every cell."""
        for index in range(self.cell_count):
            self._entropies[index] = self._calculate_entropy(index)

    def get_lowest_entropy_cell(self) -> int | None:
        """Returns the uncollapsed cell with the lowest entropy, or None if every cell's entropy is 0."""
        positive = self._entropies > 0
        if not positive.any():
            return None
        return int(np.argmin(np.where(positive, self._entropies, np.inf)))

    def get_weights(self, index: int) -> tuple[list[int], NDArray[np.float64]]:
        """Returns the patterns still possible in an uncollapsed cell together with their weights."""
        pattern_indices = np.flatnonzero(self._coefficients[index, : self.pattern_count])
        return [int(i) for i in pattern_indices], self._frequencies[pattern_indices]

    def count_collapsed_cells(self) -> int:
        """Returns the number of cells holding exactly one pattern."""
        return int(np.count_nonzero(self._coefficients.sum(axis=1) == 1))

    def snapshot(self) -> NDArray[np.bool_]:
        """Returns a full copy of the coefficient matrix."""
        return self._coefficients.copy()

    def restore(self, snapshot: NDArray[np.bool_]) -> None:
        """Restores the coefficient matrix from a snapshot and recomputes every entropy."""
        self._coefficients[:] = snapshot
        self.update_all_entropies()

    def _calculate_entropy(self, index: int) -> float:
        """Calculates the Shannon entropy of a cell, plus a tiny random noise to break ties."""
        coefficients = self._coefficients[index]
        if np.count_nonzero(coefficients) <= 1:
            return 0.0

        weights = self._frequencies[coefficients[: self.pattern_count]]
        sum_of_weights = float(weights.sum())
        sum_of_weight_log_weights = float((weights * np.log2(weights)).sum())
        # Using math.log2() instead of numpy.log2() here because it is faster for single values.
        entropy = math.log2(sum_of_weights) - sum_of_weight_log_weights / sum_of_weights
        return entropy + ENTROPY_NOISE_SCALE * self._rng.random()

    def _determine_neighbors(self) -> NDArray[np.int_]:
        """Precalculates the flat neighbor index of every cell in every direction."""
        neighbors = np.full((self.cell_count, len(Direction)), -1, dtype=np.int_)
        for index in range(self.cell_count):
            x, y, z = self.position_of(index)
            for direction in Direction:
                vector = direction.to_vector()
                neighbor_x = x + vector[0]
                neighbor_y = y + vector[1]
                neighbor_z = z + vector[2]
                if (
                    0 <= neighbor_x < self.size[0]
                    and 0 <= neighbor_y < self.size[1]
                    and 0 <= neighbor_z < self.size[2]
                ):
                    neighbors[index, direction.value] = self.index_of(neighbor_x, neighbor_y, neighbor_z)
        return neighbors
