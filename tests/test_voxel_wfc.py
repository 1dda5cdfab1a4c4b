"""Tests for the main solver loop."""

from __future__ import annotations

import logging
import random

import numpy as np
import pytest

from voxel_wfc.enums import Direction, SolverState
from voxel_wfc.errors import ConfigurationError, ExhaustedAttemptsError
from voxel_wfc.model.voxel_wfc import SolveResult, VoxelWFC
from voxel_wfc.model.wave_grid import WaveGrid
from conftest import scale_volume


def make_empty_margin_sample() -> np.ndarray:
    """A 4x3x4 sample: a 2x2 block of value 1 on the floor, with empty space around and above it."""
    volume = np.zeros((4, 3, 4), dtype=np.int_)
    volume[1:3, 2, 1:3] = 1
    return volume


def assert_rules_hold(solver: VoxelWFC, volume: np.ndarray) -> None:
    """Checks every pair of neighboring voxels of a pattern size 1 output against the adjacency rules."""
    model = solver.adjacency_model
    # With pattern size 1, every voxel value equals its pattern index in these samples.
    padded = np.zeros((volume.shape[0] + 2, volume.shape[1] + 2, volume.shape[2] + 2), dtype=np.int_)
    padded[1:-1, 1:-1, 1:-1] = volume
    padded[:, -1, :] = -1

    width, height, depth = padded.shape
    for x in range(width):
        for y in range(height - 1):
            for z in range(depth):
                for direction in Direction:
                    dx, dy, dz = direction.to_vector()
                    nx, ny, nz = x + dx, y + dy, z + dz
                    if not (0 <= nx < width and 0 <= ny < height and 0 <= nz < depth):
                        continue
                    assert model.is_compatible(int(padded[x, y, z]), int(padded[nx, ny, nz]), direction), (
                        f"{padded[nx, ny, nz]} next to {padded[x, y, z]} at {(x, y, z)} in {direction.name}"
                    )


class TestSolve:
    """Tests for successful generation."""

    def test_single_layer_on_the_floor(self, ground_sample: np.ndarray) -> None:
        solver = VoxelWFC(ground_sample, 1, (2, 1, 2), random_seed=3)

        result = solver.solve()

        assert result.succeeded
        assert result.state == SolverState.SUCCESS
        assert solver.state == SolverState.SUCCESS
        assert result.volume is not None
        assert result.volume.shape == (2, 1, 2)
        assert set(np.unique(result.volume)) <= {0, 1}

    def test_output_shape_scales_with_pattern_size(self, ground_sample: np.ndarray) -> None:
        solver = VoxelWFC(scale_volume(ground_sample, 2), 2, (2, 1, 2), random_seed=5)

        volume = solver.solve().volume_or_raise()

        assert solver.output_shape == (4, 2, 4)
        assert volume.shape == (4, 2, 4)

    def test_nothing_is_placed_on_top_of_a_ground_pattern(self, ground_sample: np.ndarray) -> None:
        """Pattern 1 only stands on the floor, so every layer above the bottom one stays empty."""
        for seed in range(5):
            volume = VoxelWFC(ground_sample, 1, (2, 2, 2), random_seed=seed).solve().volume_or_raise()

            assert volume.shape == (2, 2, 2)
            assert np.all(volume[:, 0, :] == 0)

    @pytest.mark.parametrize("rotation", [False, True])
    def test_adjacency_rules_hold_in_the_output(self, rotation: bool) -> None:
        solver = VoxelWFC(make_empty_margin_sample(), 1, (3, 2, 3), rotation=rotation, random_seed=11)

        volume = solver.solve().volume_or_raise()

        assert volume.shape == (3, 2, 3)
        assert_rules_hold(solver, volume)

    def test_same_seed_same_volume(self) -> None:
        first = VoxelWFC(make_empty_margin_sample(), 1, (4, 2, 4), random_seed=42).solve()
        second = VoxelWFC(make_empty_margin_sample(), 1, (4, 2, 4), random_seed=42).solve()

        assert first.volume is not None and second.volume is not None
        assert np.array_equal(first.volume, second.volume)
        assert (first.tries, first.backtracks, first.iterations) == (second.tries, second.backtracks, second.iterations)

    def test_repeated_solve_calls_reseed(self) -> None:
        solver = VoxelWFC(make_empty_margin_sample(), 1, (4, 2, 4), random_seed=7)

        assert np.array_equal(solver.solve().volume_or_raise(), solver.solve().volume_or_raise())

    def test_success_is_logged(self, ground_sample: np.ndarray, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="voxel_wfc"):
            VoxelWFC(ground_sample, 1, (2, 1, 2)).solve()

        assert "Success after" in caplog.text


class TestFailure:
    """Unsatisfiable inputs end in a failed result after max_tries restarts."""

    def test_catalog_without_rules_fails(self) -> None:
        """A pattern larger than the sample volume leaves only the empty pattern, which has no rules at all."""
        solver = VoxelWFC(np.ones((2, 2, 2), dtype=np.int_), 3, (2, 2, 2), max_tries=3, max_propagation_tries=0)

        result = solver.solve()

        assert result.state == SolverState.FAILED
        assert solver.state == SolverState.FAILED
        assert not result.succeeded
        assert result.volume is None
        assert result.tries == 3
        assert result.backtracks == 0

    def test_snapshot_restores_before_restart(self) -> None:
        solver = VoxelWFC(np.ones((2, 2, 2), dtype=np.int_), 3, (1, 1, 1), max_tries=2, max_propagation_tries=2)

        result = solver.solve()

        assert result.tries == 2
        assert result.backtracks == 2

    def test_column_without_lateral_evidence_fails(self, stacked_column: np.ndarray) -> None:
        """The empty padding next to the output has no lateral rule towards any pattern."""
        result = VoxelWFC(stacked_column, 1, (1, 2, 1), max_tries=2, max_propagation_tries=1).solve()

        assert result.volume is None
        assert result.tries == 2

    def test_volume_or_raise(self) -> None:
        result = VoxelWFC(np.ones((2, 2, 2), dtype=np.int_), 3, (1, 1, 1), max_tries=1).solve()

        with pytest.raises(ExhaustedAttemptsError) as exc_info:
            result.volume_or_raise()

        assert exc_info.value.tries == 1

    def test_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="voxel_wfc"):
            VoxelWFC(np.ones((2, 2, 2), dtype=np.int_), 3, (1, 1, 1), max_tries=1).solve()

        assert "No solution after 1 tries" in caplog.text


class TestConfiguration:
    """Invalid parameters are rejected by the constructor."""

    @pytest.mark.parametrize("output_size", [(0, 1, 1), (1, 1), (1, -2, 1), (1.5, 1, 1), "abc", 5])
    def test_invalid_output_size(self, ground_sample: np.ndarray, output_size: object) -> None:
        with pytest.raises(ConfigurationError):
            VoxelWFC(ground_sample, 1, output_size)  # type: ignore[arg-type]

    def test_invalid_pattern_size(self, ground_sample: np.ndarray) -> None:
        with pytest.raises(ConfigurationError):
            VoxelWFC(ground_sample, 0, (1, 1, 1))

    def test_invalid_avoid_empty_pattern(self, ground_sample: np.ndarray) -> None:
        with pytest.raises(ConfigurationError):
            VoxelWFC(ground_sample, 1, (1, 1, 1), avoid_empty_pattern=2.0)

    def test_invalid_tries(self, ground_sample: np.ndarray) -> None:
        with pytest.raises(ConfigurationError):
            VoxelWFC(ground_sample, 1, (1, 1, 1), max_tries=0)
        with pytest.raises(ConfigurationError):
            VoxelWFC(ground_sample, 1, (1, 1, 1), max_propagation_tries=-1)

    def test_accessors(self, ground_sample: np.ndarray) -> None:
        solver = VoxelWFC(ground_sample, 1, (3, 2, 1))

        assert solver.state == SolverState.INITIALIZING
        assert solver.input_size == (4, 2, 4)
        assert solver.pattern_count == 2
        assert len(solver.patterns) == 2
        assert solver.patterns_by_position == solver.catalog.patterns_by_position
        assert solver.output_shape == (3, 2, 1)


class TestCellAndPatternChoice:
    """Tests for picking the next cell and its pattern."""

    def test_pattern_shares_follow_the_weights_of_the_domain(self, ground_sample: np.ndarray) -> None:
        """Patterns outside the cell's domain are never drawn; the others are drawn proportionally to weight."""
        solver = VoxelWFC(ground_sample, 1, (1, 1, 1))
        weights = np.array([0.375, 0.125, 0.5, 2.0])
        grid = WaveGrid((3, 3, 3), weights, random.Random(0))
        grid.initialize()
        index = grid.index_of(1, 1, 1)
        grid.set_coefficients(index, np.array([True, True, True, False, False]))
        rng = random.Random(1234)

        draws = 30000
        counts = [0] * len(weights)
        for _ in range(draws):
            counts[solver._choose_pattern_index(grid, index, rng)] += 1

        assert counts[3] == 0
        expected_shares = weights[:3] / weights[:3].sum()
        for pattern_index, expected_share in enumerate(expected_shares):
            assert counts[pattern_index] / draws == pytest.approx(expected_share, abs=0.02)

    def test_floored_empty_weight_is_still_drawn(self, ground_sample: np.ndarray) -> None:
        solver = VoxelWFC(ground_sample, 1, (1, 1, 1), avoid_empty_pattern=1.0)
        grid = WaveGrid((3, 3, 3), solver.catalog.frequencies, random.Random(0))
        grid.initialize()
        index = grid.index_of(1, 1, 1)
        rng = random.Random(99)

        drawn = {solver._choose_pattern_index(grid, index, rng) for _ in range(20000)}

        assert drawn == {0, 1}

    def test_fully_collapsed_wave_falls_back_to_cell_zero(
        self, ground_sample: np.ndarray, caplog: pytest.LogCaptureFixture
    ) -> None:
        solver = VoxelWFC(ground_sample, 1, (1, 1, 1))
        grid = WaveGrid((3, 3, 3), solver.catalog.frequencies, random.Random(0))
        grid.initialize()
        grid.collapse(grid.index_of(1, 1, 1), 1)

        with caplog.at_level(logging.WARNING, logger="voxel_wfc"):
            assert solver._choose_next_cell(grid) == 0

        assert "falling back to cell 0" in caplog.text


class TestSolveResult:
    def test_successful_result_unwraps(self) -> None:
        volume = np.zeros((1, 1, 1), dtype=np.int_)
        result = SolveResult(SolverState.SUCCESS, volume, 0, 0, 1)

        assert result.succeeded
        assert result.volume_or_raise() is volume
