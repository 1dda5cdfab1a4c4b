"""Extracts and weights the voxel patterns of a sample volume for the voxel WFC algorithm."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from voxel_wfc.constants import (
    EMPTY_PATTERN_INITIAL_COUNT,
    EMPTY_PATTERN_MIN_WEIGHT,
    EMPTY_VOXEL_VALUE,
    ROTATION_COUNT,
)
from voxel_wfc.errors import ConfigurationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


class PatternCatalog:
    """Extracts, deduplicates and weights the NxNxN patterns of a sample volume.

    The sample volume is tiled with non-overlapping, N-aligned windows. Every distinct window becomes a pattern of
    the catalog, and the number of windows showing it becomes its weight. When rotation is enabled, three copies
    of the sample volume rotated by 90 degree steps around the vertical axis are scanned as well, sharing the
    same catalog. Pattern index 0 is always the empty pattern, even if it does not occur in the sample volume.

    Attributes:
        pattern_size: The edge length N of the cubic patterns (in voxels).
        pattern_count: The total number of unique patterns, including the empty pattern.
        rotation: Whether rotated copies of the sample volume were scanned.
        avoid_empty_pattern: How much the empty pattern is down-weighted (0.0 = not at all, 1.0 = as much as
            possible while keeping it selectable).
    """

    pattern_size: int
    pattern_count: int
    rotation: bool
    avoid_empty_pattern: float

    # The 3D sample voxel volume (indexed [x, y, z]) which is used for pattern extraction.
    _sample_volume: NDArray[np.int_]

    # The unique patterns, where the list index corresponds to the pattern index.
    _patterns: list[Pattern]

    # The relative weight of each pattern, indexed by pattern index.
    _frequencies: NDArray[np.float64]

    # One dict per scanned orientation, mapping a pattern-grid position to the index of the pattern found there.
    _patterns_by_position: list[dict[tuple[int, int, int], int]]

    def __init__(
        self,
        sample_volume: NDArray[np.int_],
        pattern_size: int,
        rotation: bool = False,
        avoid_empty_pattern: float = 0.0,
    ) -> None:
        """Validates the parameters, then extracts and weights all patterns.

        Args:
            sample_volume: The 3D sample voxel volume (indexed [x, y, z]) which is used for pattern extraction.
            pattern_size: The edge length N of the cubic patterns (in voxels).
            rotation: If True, three rotated copies of the sample volume are scanned as well.
            avoid_empty_pattern: How much the empty pattern is down-weighted, in the range [0.0, 1.0].

        Raises:
            ConfigurationError: If any of the parameters is invalid.
        """
        self._sample_volume = validate_sample_volume(sample_volume)

        if isinstance(pattern_size, bool) or not isinstance(pattern_size, (int, np.integer)) or pattern_size < 1:
            raise ConfigurationError(f"Pattern size must be a positive integer, got {pattern_size!r}.")
        if (
            isinstance(avoid_empty_pattern, bool)
            or not isinstance(avoid_empty_pattern, (int, float, np.integer, np.floating))
            or not 0.0 <= avoid_empty_pattern <= 1.0
        ):
            raise ConfigurationError(f"avoid_empty_pattern must lie in [0.0, 1.0], got {avoid_empty_pattern!r}.")

        self.pattern_size = int(pattern_size)
        self.rotation = rotation
        self.avoid_empty_pattern = float(avoid_empty_pattern)

        if any(extent % self.pattern_size for extent in self._sample_volume.shape):
            logger.warning(
                f"Sample volume extents {self._sample_volume.shape} are not multiples of the pattern size "
                f"{self.pattern_size}; the remainder is ignored."
            )

        self._extract_and_count_patterns()
        self._frequencies = np.array([pattern.count for pattern in self._patterns], dtype=np.float64)
        self._correct_empty_pattern_frequency()
        self._normalize_frequencies()

        logger.debug(f"Extracted {self.pattern_count} unique patterns from {self.orientation_count} orientations.")

    @property
    def input_size(self) -> tuple[int, int, int]:
        """The (x, y, z) extent of the sample volume (in voxels)."""
        shape = self._sample_volume.shape
        return shape[0], shape[1], shape[2]

    @property
    def orientation_count(self) -> int:
        """The number of orientations of the sample volume that were scanned."""
        return len(self._patterns_by_position)

    @property
    def patterns(self) -> list[Pattern]:
        """The unique patterns, where the list index corresponds to the pattern index."""
        return list(self._patterns)

    @property
    def frequencies(self) -> NDArray[np.float64]:
        """A read-only view of the relative weight of each pattern, indexed by pattern index."""
        frequencies = self._frequencies.view()
        frequencies.flags.writeable = False
        return frequencies

    @property
    def patterns_by_position(self) -> list[dict[tuple[int, int, int], int]]:
        """The pattern-grid position to pattern index maps, one per scanned orientation."""
        return [dict(position_map) for position_map in self._patterns_by_position]

    def get_pattern_voxels(self, pattern_index: int) -> NDArray[np.int_]:
        """Returns the NxNxN voxel block of a pattern.

        Args:
            pattern_index: The index of the pattern. Negative indices (the floor sentinel) yield the empty pattern.

        Returns:
            The read-only voxel block of the pattern (indexed [x, y, z]).
        """
        if pattern_index < 0:
            return self._patterns[0].voxels
        return self._patterns[pattern_index].voxels

    def _extract_and_count_patterns(self) -> None:
        """Scans every orientation of the sample volume and counts all unique patterns."""
        self._patterns = []
        self._patterns_by_position = []
        patterns_by_key: dict[bytes, Pattern] = {}

        # The empty pattern always gets index 0 because it is needed for the padding of the output.
        empty_pattern = Pattern(
            0,
            np.full((self.pattern_size,) * 3, EMPTY_VOXEL_VALUE, dtype=np.int_),
            EMPTY_PATTERN_INITIAL_COUNT,
        )
        self._patterns.append(empty_pattern)
        patterns_by_key[empty_pattern.key] = empty_pattern

        orientations = [self._sample_volume]
        if self.rotation:
            for _ in range(ROTATION_COUNT):
                orientations.append(rotate_around_vertical_axis(orientations[-1]))

        for volume in orientations:
            position_map: dict[tuple[int, int, int], int] = {}
            self._patterns_by_position.append(position_map)

            for x in range(0, volume.shape[0] + 1, self.pattern_size):
                for y in range(0, volume.shape[1] + 1, self.pattern_size):
                    for z in range(0, volume.shape[2] + 1, self.pattern_size):
                        voxels = get_pattern_at_position(volume, (x, y, z), self.pattern_size)
                        if voxels is None:
                            continue

                        key = voxels.tobytes()
                        if key not in patterns_by_key:
                            pattern = Pattern(len(self._patterns), voxels)
                            self._patterns.append(pattern)
                            patterns_by_key[key] = pattern
                        else:
                            pattern = patterns_by_key[key]
                            pattern.count += 1

                        position = (x // self.pattern_size, y // self.pattern_size, z // self.pattern_size)
                        position_map[position] = pattern.index

        self.pattern_count = len(self._patterns)

    def _correct_empty_pattern_frequency(self) -> None:
        """Removes the estimated count of empty windows caused by the sample volume's own border.

        Sample volumes are expected to contain a model surrounded by empty space on the x and z sides and on top,
        so a part of the empty windows found is border filler rather than part of the model. The remaining count
        is scaled down by avoid_empty_pattern.
        """
        grid_x, grid_y, grid_z = (extent // self.pattern_size for extent in self.input_size)
        padding = grid_x * grid_y * grid_z - (grid_x - 2) * (grid_y - 1) * (grid_z - 2)
        if self.rotation:
            padding *= ROTATION_COUNT + 1

        count_without_padding = self._frequencies[0] - padding
        if count_without_padding > 0:
            corrected = count_without_padding * (1.0 - self.avoid_empty_pattern)
        else:
            corrected = 0.0
        # The empty pattern always has to stay selectable.
        self._frequencies[0] = corrected if corrected > 0 else EMPTY_PATTERN_MIN_WEIGHT

    def _normalize_frequencies(self) -> None:
        """Divides all pattern counts by the number of windows of the sample volume."""
        grid_x, grid_y, grid_z = (extent // self.pattern_size for extent in self.input_size)
        total_pattern_count = grid_x * grid_y * grid_z * self.orientation_count
        if total_pattern_count > 0:
            self._frequencies /= total_pattern_count


class Pattern:
    """Represents a single unique NxNxN voxel pattern.

    Patterns compare equal (and hash equally) if and only if their voxel blocks are equal.

    Attributes:
        index: The unique integer ID of the pattern within its catalog.
        voxels: The read-only NxNxN block of voxel values (indexed [x, y, z]).
        count: The number of windows of the sample volume (over all orientations) showing this pattern.
    """

    index: int
    voxels: NDArray[np.int_]
    count: float

    def __init__(self, index: int, voxels: NDArray[np.int_], count: float = 1) -> None:
        """Initializes a pattern object with a private, read-only copy of the voxel block."""
        self.index = index
        self.voxels = np.array(voxels, dtype=np.int_, copy=True)
        self.voxels.flags.writeable = False
        self.count = count

    @property
    def key(self) -> bytes:
        """A bytes representation of the voxel block usable as a dict key."""
        return self.voxels.tobytes()

    @property
    def size(self) -> int:
        """The edge length of the pattern (in voxels)."""
        return self.voxels.shape[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pattern):
            return NotImplemented
        return self.voxels.shape == other.voxels.shape and bool(np.array_equal(self.voxels, other.voxels))

    def __hash__(self) -> int:
        return hash((self.voxels.shape, self.key))

    def __repr__(self) -> str:
        return f"Pattern(index={self.index}, size={self.size}, count={self.count})"


def validate_sample_volume(sample_volume: NDArray[np.int_]) -> NDArray[np.int_]:
    """Checks that a sample volume is a non-empty 3D integer array and returns it as a np.int_ array.

    Raises:
        ConfigurationError: If the sample volume is not a non-empty 3D integer array.
    """
    volume = np.asarray(sample_volume)
    if volume.ndim != 3:
        raise ConfigurationError(f"Sample volume must be a 3D array, got {volume.ndim} dimensions.")
    if volume.size == 0:
        raise ConfigurationError("Sample volume must not be empty.")
    if not (np.issubdtype(volume.dtype, np.integer) or np.issubdtype(volume.dtype, np.bool_)):
        raise ConfigurationError(f"Sample volume must contain integer voxel values, got dtype {volume.dtype}.")
    return volume.astype(np.int_)


def get_pattern_at_position(
    volume: NDArray[np.int_], position: tuple[int, int, int], pattern_size: int
) -> NDArray[np.int_] | None:
    """Returns the NxNxN block starting at position, or None if the block exceeds the volume's bounds."""
    x, y, z = position
    if min(position) < 0:
        return None
    if x + pattern_size > volume.shape[0] or y + pattern_size > volume.shape[1] or z + pattern_size > volume.shape[2]:
        return None
    return volume[x : x + pattern_size, y : y + pattern_size, z : z + pattern_size]


def rotate_around_vertical_axis(volume: NDArray[np.int_]) -> NDArray[np.int_]:
    """Rotates a volume by 90 degrees around its vertical (y) axis."""
    return np.ascontiguousarray(np.rot90(volume, k=1, axes=(0, 2)))
