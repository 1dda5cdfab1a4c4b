"""Tests for the command line interface."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from voxel_wfc.main_app import EXIT_INVALID_INPUT, EXIT_NO_SOLUTION, EXIT_SUCCESS, build_parser, main


@pytest.fixture
def sample_path(tmp_path: Path, ground_sample: np.ndarray) -> Path:
    path = tmp_path / "sample.npy"
    np.save(path, ground_sample)
    return path


class TestParser:
    def test_defaults(self) -> None:
        args = build_parser().parse_args(["in.npy", "out.npy"])

        assert args.pattern_size == 1
        assert args.output_size == [10, 5, 10]
        assert args.rotation is False
        assert args.avoid_empty_pattern == 0.0
        assert args.seed == 0
        assert args.max_tries == 500
        assert args.max_propagation_tries == 10
        assert args.batch == 1

    def test_options(self) -> None:
        args = build_parser().parse_args(["in.npy", "out.npy", "-n", "2", "-s", "3", "4", "5", "-r", "-e", "0.5"])

        assert args.pattern_size == 2
        assert args.output_size == [3, 4, 5]
        assert args.rotation is True
        assert args.avoid_empty_pattern == 0.5


class TestMain:
    def test_generates_volume(self, tmp_path: Path, sample_path: Path) -> None:
        output_path = tmp_path / "out.npy"

        exit_code = main([str(sample_path), str(output_path), "-s", "3", "1", "2", "--seed", "1"])

        assert exit_code == EXIT_SUCCESS
        assert np.load(output_path).shape == (3, 1, 2)

    def test_writes_preview(self, tmp_path: Path, sample_path: Path) -> None:
        preview_path = tmp_path / "preview.png"

        exit_code = main([str(sample_path), str(tmp_path / "out.npy"), "-s", "2", "1", "2", "--preview", str(preview_path)])

        assert exit_code == EXIT_SUCCESS
        assert preview_path.exists()

    def test_batch_appends_seed_to_file_names(self, tmp_path: Path, sample_path: Path) -> None:
        exit_code = main(
            [str(sample_path), str(tmp_path / "out.npy"), "-s", "2", "1", "2", "--seed", "3", "--batch", "2"]
            + ["--workers", "2"]
        )

        assert exit_code == EXIT_SUCCESS
        assert (tmp_path / "out_3.npy").exists()
        assert (tmp_path / "out_4.npy").exists()
        assert not (tmp_path / "out.npy").exists()

    def test_no_solution(self, tmp_path: Path) -> None:
        sample_path = tmp_path / "ones.npy"
        np.save(sample_path, np.ones((2, 2, 2), dtype=np.int_))
        output_path = tmp_path / "out.npy"

        exit_code = main([str(sample_path), str(output_path), "-n", "3", "-s", "1", "1", "1", "--max-tries", "1"])

        assert exit_code == EXIT_NO_SOLUTION
        assert not output_path.exists()

    def test_missing_input(self, tmp_path: Path) -> None:
        assert main([str(tmp_path / "missing.npy"), str(tmp_path / "out.npy")]) == EXIT_INVALID_INPUT

    def test_invalid_parameters(self, tmp_path: Path, sample_path: Path) -> None:
        assert main([str(sample_path), str(tmp_path / "out.npy"), "-n", "0"]) == EXIT_INVALID_INPUT
        assert main([str(sample_path), str(tmp_path / "out.npy"), "--batch", "0"]) == EXIT_INVALID_INPUT

    def test_log_file(self, tmp_path: Path, sample_path: Path) -> None:
        log_file = tmp_path / "run.log"

        main([str(sample_path), str(tmp_path / "out.npy"), "-s", "1", "1", "1", "--log-file", str(log_file)])

        assert "Loaded voxel volume" in log_file.read_text(encoding="utf-8")
