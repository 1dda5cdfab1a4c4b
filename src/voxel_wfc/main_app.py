"""Serves as the command line entry point of the voxel generator."""

from __future__ import annotations

import argparse
import logging
import multiprocessing
from pathlib import Path
import sys
from typing import TYPE_CHECKING

from voxel_wfc import constants
from voxel_wfc.errors import VoxelWFCError
from voxel_wfc.logging_config import setup_logging
from voxel_wfc.model.batch_manager import BatchManager
from voxel_wfc.model.volume_io import load_volume, save_volume
from voxel_wfc.model.volume_renderer import VolumeRenderer
from voxel_wfc.model.voxel_wfc import VoxelWFC

if TYPE_CHECKING:
    from voxel_wfc.model.voxel_wfc import SolveResult

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_NO_SOLUTION = 1
EXIT_INVALID_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    """Creates the argument parser of the command line interface."""
    parser = argparse.ArgumentParser(
        prog="voxel-wfc",
        description="Generate a voxel volume that locally resembles a sample volume (3D Wave Function Collapse).",
    )
    parser.add_argument("input", type=Path, help="Sample volume (.npy file holding a 3D integer array [x, y, z]).")
    parser.add_argument("output", type=Path, help="Destination .npy file of the generated volume.")
    parser.add_argument(
        "-n",
        "--pattern-size",
        type=int,
        default=constants.PATTERN_SIZE_DEFAULT,
        help=f"Edge length of the cubic patterns in voxels (default: {constants.PATTERN_SIZE_DEFAULT}).",
    )
    parser.add_argument(
        "-s",
        "--output-size",
        type=int,
        nargs=3,
        metavar=("X", "Y", "Z"),
        default=list(constants.OUTPUT_SIZE_DEFAULT),
        help="Output size in patterns, without padding (default: %(default)s).",
    )
    parser.add_argument(
        "-r", "--rotation", action="store_true", help="Also extract patterns rotated around the vertical axis."
    )
    parser.add_argument(
        "-e",
        "--avoid-empty-pattern",
        type=float,
        default=constants.AVOID_EMPTY_PATTERN_DEFAULT,
        help="How much empty space is avoided, between 0.0 and 1.0 (default: %(default)s).",
    )
    parser.add_argument(
        "--seed", type=int, default=constants.RANDOM_SEED_DEFAULT, help="Random seed (default: %(default)s)."
    )
    parser.add_argument(
        "--max-tries",
        type=int,
        default=constants.MAX_TRIES_DEFAULT,
        help="Full restarts before giving up (default: %(default)s).",
    )
    parser.add_argument(
        "--max-propagation-tries",
        type=int,
        default=constants.MAX_PROPAGATION_TRIES_DEFAULT,
        help="Consecutive backtracks before a full restart (default: %(default)s).",
    )
    parser.add_argument(
        "--batch",
        type=int,
        default=1,
        metavar="COUNT",
        help="Generate COUNT volumes for the seeds SEED..SEED+COUNT-1 in parallel processes.",
    )
    parser.add_argument("--workers", type=int, default=None, help="Maximum number of parallel worker processes.")
    parser.add_argument("--preview", type=Path, default=None, help="Also render the layers of the output as a PNG.")
    parser.add_argument("--log-file", type=Path, default=None, help="Additionally write the log to this file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Runs the command line interface and returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else constants.LOG_LEVEL_DEFAULT, args.log_file)

    try:
        sample_volume = load_volume(args.input)
        if args.batch < 1:
            raise VoxelWFCError(f"--batch must be at least 1, got {args.batch}.")

        if args.batch == 1:
            solver = VoxelWFC(
                sample_volume,
                args.pattern_size,
                tuple(args.output_size),
                rotation=args.rotation,
                avoid_empty_pattern=args.avoid_empty_pattern,
                random_seed=args.seed,
                max_tries=args.max_tries,
                max_propagation_tries=args.max_propagation_tries,
            )
            logger.info(f"Found {solver.pattern_count} patterns in {args.input}.")
            results = {args.seed: solver.solve()}
        else:
            batch_manager = BatchManager(
                sample_volume,
                args.pattern_size,
                tuple(args.output_size),
                rotation=args.rotation,
                avoid_empty_pattern=args.avoid_empty_pattern,
                max_tries=args.max_tries,
                max_propagation_tries=args.max_propagation_tries,
                max_workers=args.workers,
            )
            results = batch_manager.generate(range(args.seed, args.seed + args.batch))
    except VoxelWFCError as error:
        logger.error(str(error))
        return EXIT_INVALID_INPUT

    return _write_results(results, args.output, args.preview, suffix_seeds=args.batch > 1)


def _write_results(
    results: dict[int, SolveResult], output_path: Path, preview_path: Path | None, suffix_seeds: bool
) -> int:
    """Saves every successful result (and its preview) and returns the exit code."""
    renderer = VolumeRenderer() if preview_path is not None else None
    exit_code = EXIT_SUCCESS

    for seed, result in sorted(results.items()):
        if result.volume is None:
            logger.error(f"No solution found for seed {seed} after {result.tries} tries.")
            exit_code = EXIT_NO_SOLUTION
            continue

        save_volume(result.volume, _with_seed_suffix(output_path, seed) if suffix_seeds else output_path)
        if renderer is not None and preview_path is not None:
            target = _with_seed_suffix(preview_path, seed) if suffix_seeds else preview_path
            renderer.save_volume_img(renderer.get_volume_img(result.volume), target)

    return exit_code


def _with_seed_suffix(path: Path, seed: int) -> Path:
    """Inserts the seed before the file extension, e.g. out.npy -> out_7.npy."""
    return path.with_name(f"{path.stem}_{seed}{path.suffix}")


if __name__ == "__main__":
    multiprocessing.freeze_support()

    sys.exit(main())
