"""Turns a fully collapsed wave back into a dense voxel volume."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from voxel_wfc.model.pattern_catalog import PatternCatalog
    from voxel_wfc.model.wave_grid import WaveGrid


class OutputAssembler:
    """Expands the pattern of every collapsed interior cell into its NxNxN voxel block.

    The padding cells on the x and z sides, the empty top layer and the floor layer are not part of the output,
    so a padded wave of (ox + 2, oy + 2, oz + 2) cells yields a volume of (ox * N, oy * N, oz * N) voxels.
    """

    # The catalog providing the voxel blocks of the patterns.
    _catalog: PatternCatalog

    def __init__(self, catalog: PatternCatalog) -> None:
        self._catalog = catalog

    def get_output_shape(self, grid_size: tuple[int, int, int]) -> tuple[int, int, int]:
        """Returns the (x, y, z) shape of the volume assembled from a padded wave of the given size."""
        pattern_size = self._catalog.pattern_size
        return (
            (grid_size[0] - 2) * pattern_size,
            (grid_size[1] - 2) * pattern_size,
            (grid_size[2] - 2) * pattern_size,
        )

    def assemble(self, wave_grid: WaveGrid) -> NDArray[np.int_]:
        """Assembles the output volume from a fully collapsed wave.

        Args:
            wave_grid: The collapsed wave. Every interior cell must hold exactly one pattern.

        Returns:
            The output volume (indexed [x, y, z]). Cells holding the floor sentinel are written as empty space.
        """
        pattern_size = self._catalog.pattern_size
        width, height, depth = wave_grid.size
        volume = np.zeros(self.get_output_shape(wave_grid.size), dtype=np.int_)

        for x in range(1, width - 1):
            for y in range(1, height - 1):
                for z in range(1, depth - 1):
                    pattern_index = wave_grid.get_pattern_index(wave_grid.index_of(x, y, z))
                    # get_pattern_voxels() returns the empty pattern for the (negative) floor sentinel.
                    voxels = self._catalog.get_pattern_voxels(pattern_index)

                    min_x = (x - 1) * pattern_size
                    min_y = (y - 1) * pattern_size
                    min_z = (z - 1) * pattern_size
                    volume[
                        min_x : min_x + pattern_size,
                        min_y : min_y + pattern_size,
                        min_z : min_z + pattern_size,
                    ] = voxels

        return volume
