"""Implements the main loop of the voxel WFC algorithm."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import TYPE_CHECKING

import numpy as np

from voxel_wfc.constants import MAX_PROPAGATION_TRIES_DEFAULT, MAX_TRIES_DEFAULT
from voxel_wfc.enums import SolverState
from voxel_wfc.errors import ConfigurationError, ContradictionError, ExhaustedAttemptsError
from voxel_wfc.model.adjacency_model import AdjacencyModel
from voxel_wfc.model.output_assembler import OutputAssembler
from voxel_wfc.model.pattern_catalog import PatternCatalog
from voxel_wfc.model.propagation import PropagationEngine
from voxel_wfc.model.wave_grid import WaveGrid

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from voxel_wfc.model.pattern_catalog import Pattern

logger = logging.getLogger(__name__)


class VoxelWFC:
    """Generates a new voxel volume that locally resembles a sample volume.

    The sample volume is cut into NxNxN patterns whose observed neighborhoods define the adjacency rules. The
    output grid is padded with empty cells on the x and z sides and on top and with floor cells at the bottom.
    After the padding has been propagated, the cell with the lowest entropy is repeatedly collapsed to a pattern
    chosen randomly (weighted by pattern frequency) and the choice is propagated to the rest of the grid.

    Before each step a snapshot of the wave is taken. When a step runs into a contradiction, the snapshot is
    restored and the step is tried again with new random choices. After max_propagation_tries consecutive failed
    steps, the wave is reset completely and generation starts over. After max_tries such restarts, the solver
    gives up and returns a failed result.

    The random number generator is reseeded at the start of every solve() call, so identical parameters always
    produce identical results.

    Attributes:
        pattern_size: The edge length N of the cubic patterns (in voxels).
        output_size: The requested (x, y, z) output size (in patterns), without padding.
        rotation: Whether rotated copies of the sample volume are used for pattern extraction.
        avoid_empty_pattern: How much the empty pattern is down-weighted, in the range [0.0, 1.0].
        random_seed: Seed used for random number generation.
        max_tries: Maximum number of full restarts before giving up.
        max_propagation_tries: Maximum number of consecutive snapshot restores before a full restart.
    """

    pattern_size: int
    output_size: tuple[int, int, int]
    rotation: bool
    avoid_empty_pattern: float
    random_seed: int
    max_tries: int
    max_propagation_tries: int

    # The unique patterns of the sample volume and their weights.
    _catalog: PatternCatalog
    # The rules defining which patterns may be placed next to each other.
    _adjacency_model: AdjacencyModel
    # Expands the collapsed wave into the output volume.
    _output_assembler: OutputAssembler
    # The (width, height, depth) of the padded wave grid (in cells).
    _grid_size: tuple[int, int, int]
    # The state of the current (or last) solve() call.
    _state: SolverState

    def __init__(
        self,
        sample_volume: NDArray[np.int_],
        pattern_size: int,
        output_size: tuple[int, int, int],
        rotation: bool = False,
        avoid_empty_pattern: float = 0.0,
        random_seed: int = 0,
        max_tries: int = MAX_TRIES_DEFAULT,
        max_propagation_tries: int = MAX_PROPAGATION_TRIES_DEFAULT,
    ) -> None:
        """Validates the parameters, then extracts the patterns and derives the adjacency rules.

        Args:
            sample_volume: The 3D sample voxel volume (indexed [x, y, z]) which is used for pattern extraction.
            pattern_size: The edge length N of the cubic patterns (in voxels).
            output_size: The requested (x, y, z) output size (in patterns), without padding.
            rotation: If True, rotated copies of the sample volume are used for pattern extraction as well.
            avoid_empty_pattern: How much the empty pattern is down-weighted, in the range [0.0, 1.0].
            random_seed: Seed used for random number generation.
            max_tries: Maximum number of full restarts before giving up.
            max_propagation_tries: Maximum number of consecutive snapshot restores before a full restart.

        Raises:
            ConfigurationError: If any of the parameters is invalid.
        """
        self.output_size = _validate_output_size(output_size)
        if max_tries < 1:
            raise ConfigurationError(f"max_tries must be at least 1, got {max_tries}.")
        if max_propagation_tries < 0:
            raise ConfigurationError(f"max_propagation_tries must not be negative, got {max_propagation_tries}.")

        self._catalog = PatternCatalog(sample_volume, pattern_size, rotation, avoid_empty_pattern)
        self._adjacency_model = AdjacencyModel(self._catalog)
        self._output_assembler = OutputAssembler(self._catalog)

        self.pattern_size = self._catalog.pattern_size
        self.rotation = rotation
        self.avoid_empty_pattern = self._catalog.avoid_empty_pattern
        self.random_seed = random_seed
        self.max_tries = max_tries
        self.max_propagation_tries = max_propagation_tries

        # + 2 because of the padding on both sides.
        self._grid_size = (self.output_size[0] + 2, self.output_size[1] + 2, self.output_size[2] + 2)
        self._state = SolverState.INITIALIZING

    @property
    def state(self) -> SolverState:
        """The state of the current (or last) solve() call."""
        return self._state

    @property
    def input_size(self) -> tuple[int, int, int]:
        """The (x, y, z) extent of the sample volume (in voxels)."""
        return self._catalog.input_size

    @property
    def patterns(self) -> list[Pattern]:
        """The unique patterns of the sample volume, where the list index corresponds to the pattern index."""
        return self._catalog.patterns

    @property
    def pattern_count(self) -> int:
        """The number of unique patterns, including the empty pattern."""
        return self._catalog.pattern_count

    @property
    def patterns_by_position(self) -> list[dict[tuple[int, int, int], int]]:
        """The pattern-grid position to pattern index maps, one per scanned orientation."""
        return self._catalog.patterns_by_position

    @property
    def catalog(self) -> PatternCatalog:
        """The catalog of unique patterns and their weights."""
        return self._catalog

    @property
    def adjacency_model(self) -> AdjacencyModel:
        """The adjacency rules derived from the sample volume."""
        return self._adjacency_model

    @property
    def output_shape(self) -> tuple[int, int, int]:
        """The (x, y, z) shape of the generated volume (in voxels)."""
        return self._output_assembler.get_output_shape(self._grid_size)

    def solve(self) -> SolveResult:
        """Generates a new volume.

        Returns:
            A successful result holding the generated volume, or a failed result without a volume if no solution
                was found within max_tries restarts.
        """
        rng = random.Random(self.random_seed)
        wave_grid = WaveGrid(self._grid_size, self._catalog.frequencies, rng)
        propagation_engine = PropagationEngine(wave_grid, self._adjacency_model)
        progress = _SolveProgress()

        self._initialize_wave(wave_grid, progress)
        collapsed_cells = wave_grid.count_collapsed_cells()

        while (collapsed_cells < wave_grid.cell_count or progress.pending_cells) and progress.tries < self.max_tries:
            progress.iterations += 1

            # Create a backup to return to if propagation fails.
            snapshot = wave_grid.snapshot()

            try:
                if progress.pending_cells:
                    # Floor and padding cells need to be propagated before any free choice is made.
                    propagation_engine.propagate(progress.pending_cells)
                    progress.pending_cells = []
                else:
                    self._state = SolverState.COLLAPSING
                    cell_index = self._choose_next_cell(wave_grid)
                    wave_grid.collapse(cell_index, self._choose_pattern_index(wave_grid, cell_index, rng))
                    propagation_engine.propagate([cell_index])
            except ContradictionError as contradiction:
                logger.debug(str(contradiction))
                if progress.propagation_tries >= self.max_propagation_tries:
                    progress.tries += 1
                    logger.debug(f"Attempt number: {progress.tries}")
                    self._initialize_wave(wave_grid, progress)
                else:
                    self._state = SolverState.RETRYING
                    wave_grid.restore(snapshot)
                    progress.propagation_tries += 1
                    progress.backtracks += 1
            else:
                progress.propagation_tries = 0

            collapsed_cells = wave_grid.count_collapsed_cells()

        if progress.tries >= self.max_tries:
            self._state = SolverState.FAILED
            logger.warning(f"No solution after {progress.tries} tries.")
            return SolveResult(self._state, None, progress.tries, progress.backtracks, progress.iterations)

        self._state = SolverState.SUCCESS
        logger.info(f"Success after {progress.tries} tries ({progress.iterations} iterations).")
        volume = self._output_assembler.assemble(wave_grid)
        return SolveResult(self._state, volume, progress.tries, progress.backtracks, progress.iterations)

    def _initialize_wave(self, wave_grid: WaveGrid, progress: _SolveProgress) -> None:
        """Resets the wave and queues its floor and padding cells for propagation."""
        self._state = SolverState.INITIALIZING
        progress.pending_cells = wave_grid.initialize()
        wave_grid.update_all_entropies()

    def _choose_next_cell(self, wave_grid: WaveGrid) -> int:
        """Returns the uncollapsed cell with the lowest entropy."""
        cell_index = wave_grid.get_lowest_entropy_cell()
        if cell_index is None:
            # TODO: Find out whether this can still be reached now that pending cells keep the loop running.
            logger.warning("No uncollapsed cell with positive entropy found, falling back to cell 0.")
            return 0
        return cell_index

    def _choose_pattern_index(self, wave_grid: WaveGrid, cell_index: int, rng: random.Random) -> int:
        """Randomly picks one of a cell's possible patterns, weighted by pattern frequency."""
        pattern_indices, weights = wave_grid.get_weights(cell_index)
        remaining = rng.random() * float(weights.sum())
        for pattern_index, weight in zip(pattern_indices, weights):
            if remaining >= weight:
                remaining -= weight
            else:
                return pattern_index
        # Floating point rounding can leave a tiny remainder after the last pattern.
        return pattern_indices[-1]


@dataclass(frozen=True)
class SolveResult:
    """The outcome of a single VoxelWFC.solve() call.

    Attributes:
        state: SolverState.SUCCESS or SolverState.FAILED.
        volume: The generated volume (indexed [x, y, z]), or None if no solution was found.
        tries: The number of full restarts that were needed.
        backtracks: The number of times a snapshot was restored.
        iterations: The number of collapse/propagation steps performed.
    """

    state: SolverState
    volume: NDArray[np.int_] | None
    tries: int
    backtracks: int
    iterations: int

    @property
    def succeeded(self) -> bool:
        """True if a volume was generated."""
        return self.state == SolverState.SUCCESS

    def volume_or_raise(self) -> NDArray[np.int_]:
        """Returns the generated volume.

        Raises:
            ExhaustedAttemptsError: If no solution was found.
        """
        if self.volume is None:
            raise ExhaustedAttemptsError(self.tries)
        return self.volume


@dataclass
class _SolveProgress:
    """Control-flow counters of a single solve() call."""

    # Number of full restarts so far.
    tries: int = 0
    # Number of consecutive failed steps since the last successful one.
    propagation_tries: int = 0
    # Total number of snapshot restores.
    backtracks: int = 0
    # Total number of steps.
    iterations: int = 0
    # Forced cells that still have to be propagated before free collapsing starts.
    pending_cells: list[int] = field(default_factory=list)


def _validate_output_size(output_size: tuple[int, int, int]) -> tuple[int, int, int]:
    """Checks that the output size consists of three positive integers."""
    try:
        size = tuple(output_size)
    except TypeError:
        raise ConfigurationError(f"Output size must be a sequence of three integers, got {output_size!r}.") from None
    if len(size) != 3 or any(
        isinstance(extent, bool) or not isinstance(extent, (int, np.integer)) or extent < 1 for extent in size
    ):
        raise ConfigurationError(f"Output size must consist of three positive integers, got {output_size!r}.")
    return int(size[0]), int(size[1]), int(size[2])
