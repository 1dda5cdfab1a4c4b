"""Derives the adjacency rules between the patterns of a pattern catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from voxel_wfc.constants import FLOOR_PATTERN_INDEX
from voxel_wfc.enums import Direction

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from voxel_wfc.model.pattern_catalog import PatternCatalog


class AdjacencyModel:
    """Stores which patterns may be placed next to each other in each of the six directions.

    The rules are derived purely from evidence: pattern p2 may sit next to pattern p1 in direction d only if p2 was
    found next to p1 in direction d in at least one orientation of the sample volume. Patterns without a neighbor
    below them in the sample volume are additionally allowed to stand on the floor, and the floor allows exactly
    those patterns above it. Missing neighbors in any other direction produce no rule.

    The floor sentinel (pattern index -1) is stored in the last row/column of the rules array, so it can be
    addressed with numpy's negative indexing.

    Attributes:
        pattern_count: The number of patterns of the catalog (without the floor sentinel).
    """

    pattern_count: int

    # The 3D boolean array defining compatibility: [p1, p2, direction] is True exactly if pattern p2 can be placed next
    # to pattern p1 in the specified direction. Shape: (pattern_count + 1, pattern_count + 1, len(Direction)).
    _adjacency_rules: NDArray[np.bool_]

    def __init__(self, catalog: PatternCatalog) -> None:
        """Derives the adjacency rules from the position maps of the given catalog.

        Args:
            catalog: The pattern catalog holding the patterns and their per-orientation position maps.
        """
        self.pattern_count = catalog.pattern_count
        self._determine_adjacency_rules(catalog.patterns_by_position)

    def is_compatible(self, pattern_index: int, other_pattern_index: int, direction: Direction) -> bool:
        """Returns True if other_pattern_index may be placed next to pattern_index in the given direction."""
        return bool(self._adjacency_rules[pattern_index, other_pattern_index, direction.value])

    def get_compatible_patterns(self, pattern_index: int, direction: Direction) -> list[int]:
        """Returns all compatible pattern indices for a pattern and direction.

        Args:
            pattern_index: The index of the pattern to check compatibility for (-1 for the floor sentinel).
            direction: The direction to check compatibility for.

        Returns:
            A list of all pattern indices that can legally be placed adjacent to the pattern with the specified
                index in the specified direction. The floor sentinel is reported as -1.
        """
        compatible_patterns = []
        for other_pattern_index in np.flatnonzero(self._adjacency_rules[pattern_index, :, direction.value]):
            if other_pattern_index == self.pattern_count:
                compatible_patterns.append(FLOOR_PATTERN_INDEX)
            else:
                compatible_patterns.append(int(other_pattern_index))
        return compatible_patterns

    def get_allowed_neighbors(self, coefficients: NDArray[np.bool_], direction: Direction) -> NDArray[np.bool_]:
        """Returns the union of the compatible patterns of all patterns still possible in a cell.

        Args:
            coefficients: Boolean array of length pattern_count + 1, True for each pattern still possible in the
                cell (the last entry stands for the floor sentinel).
            direction: The direction of the neighbor cell.

        Returns:
            Boolean array of length pattern_count + 1, True for each pattern the neighbor cell may still hold.
        """
        return self._adjacency_rules[coefficients, :, direction.value].any(axis=0)

    def _determine_adjacency_rules(self, patterns_by_position: list[dict[tuple[int, int, int], int]]) -> None:
        """Scans the neighborhood of every pattern position of every orientation."""
        rules_size = self.pattern_count + 1
        self._adjacency_rules = np.full((rules_size, rules_size, len(Direction)), False, dtype=bool)

        for position_map in patterns_by_position:
            for position, pattern_index in position_map.items():
                for direction in Direction:
                    vector = direction.to_vector()
                    neighbor_position = (
                        position[0] + vector[0],
                        position[1] + vector[1],
                        position[2] + vector[2],
                    )

                    if neighbor_position in position_map:
                        neighbor_pattern_index = position_map[neighbor_position]
                        self._adjacency_rules[pattern_index, neighbor_pattern_index, direction.value] = True
                    elif direction == Direction.DOWN:
                        # The pattern lies at the bottom of the sample volume, so it may stand on the floor.
                        self._adjacency_rules[pattern_index, FLOOR_PATTERN_INDEX, direction.value] = True
                        self._adjacency_rules[FLOOR_PATTERN_INDEX, pattern_index, direction.reverse().value] = True
