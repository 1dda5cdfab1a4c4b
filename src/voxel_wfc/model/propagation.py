"""Implements the constraint propagation of the voxel WFC algorithm."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

import numpy as np

from voxel_wfc.enums import Direction
from voxel_wfc.errors import ContradictionError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from voxel_wfc.model.adjacency_model import AdjacencyModel
    from voxel_wfc.model.wave_grid import WaveGrid


class PropagationEngine:
    """Restores local consistency of a wave after some of its cells have changed.

    Starting from the changed cells, every neighbor's possible patterns are reduced to those compatible (in the
    matching direction) with at least one pattern still possible in the changed cell. Every neighbor that shrinks
    is propagated in turn, breadth-first, until nothing changes anymore. Frozen floor cells are never touched.

    The engine performs no rollback: when a contradiction is found, the wave is left in its partially propagated
    state and the caller has to restore it.
    """

    # The wave whose cells are propagated.
    _wave_grid: WaveGrid
    # The adjacency rules deciding which patterns may be placed next to each other.
    _adjacency_model: AdjacencyModel

    def __init__(self, wave_grid: WaveGrid, adjacency_model: AdjacencyModel) -> None:
        self._wave_grid = wave_grid
        self._adjacency_model = adjacency_model

    def propagate(self, cell_indices: Iterable[int]) -> int:
        """Propagates the possible patterns of the given cells through the wave.

        Args:
            cell_indices: Flat indices of the cells that have changed.

        Returns:
            The number of times a cell's possible patterns were reduced.

        Raises:
            ContradictionError: If the possible patterns of a cell became empty.
        """
        wave_grid = self._wave_grid
        cells_to_propagate = deque(cell_indices)
        reductions = 0

        while cells_to_propagate:
            current_cell = cells_to_propagate.popleft()
            current_coefficients = wave_grid.get_coefficients(current_cell)

            for direction in Direction:
                neighbor_cell = wave_grid.neighbor_index(current_cell, direction)
                if neighbor_cell is None or wave_grid.is_floor_cell(neighbor_cell):
                    continue

                neighbor_coefficients = wave_grid.get_coefficients(neighbor_cell)
                allowed = self._adjacency_model.get_allowed_neighbors(current_coefficients, direction)
                new_coefficients = allowed & neighbor_coefficients

                new_count = np.count_nonzero(new_coefficients)
                if new_count == 0:
                    raise ContradictionError(neighbor_cell, wave_grid.position_of(neighbor_cell))

                if new_count < np.count_nonzero(neighbor_coefficients):
                    wave_grid.set_coefficients(neighbor_cell, new_coefficients)
                    cells_to_propagate.append(neighbor_cell)
                    reductions += 1

        return reductions
