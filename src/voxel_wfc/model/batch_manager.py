"""Contains the class that generates several volumes in parallel worker processes."""

from __future__ import annotations

import logging
from multiprocessing import Process, Queue
import queue
from typing import Any, TYPE_CHECKING

import psutil

from voxel_wfc.constants import MAX_PROPAGATION_TRIES_DEFAULT, MAX_TRIES_DEFAULT, WORKER_POLL_INTERVAL
from voxel_wfc.errors import ConfigurationError, VoxelWFCError
from voxel_wfc.model.voxel_wfc import VoxelWFC

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np
    from numpy.typing import NDArray

    from voxel_wfc.model.voxel_wfc import SolveResult

logger = logging.getLogger(__name__)


class BatchManager:
    """Manages creation and execution of generation worker processes.

    The manager generates one volume per random seed, each in its own worker process, using the same sample volume
    and solver parameters. At most max_workers workers (by default the number of physical CPU cores) run at the
    same time; the remaining ones wait until a running worker has delivered its result.
    """

    # The 3D sample voxel volume (indexed [x, y, z]) which is used for pattern extraction.
    _sample_volume: NDArray[np.int_]
    # The solver parameters shared by all workers (everything except the random seed).
    _solver_kwargs: dict[str, Any]
    # Maximum number of concurrent workers.
    _max_active_worker_count: int

    def __init__(
        self,
        sample_volume: NDArray[np.int_],
        pattern_size: int,
        output_size: tuple[int, int, int],
        rotation: bool = False,
        avoid_empty_pattern: float = 0.0,
        max_tries: int = MAX_TRIES_DEFAULT,
        max_propagation_tries: int = MAX_PROPAGATION_TRIES_DEFAULT,
        max_workers: int | None = None,
    ) -> None:
        """Validates the solver parameters and determines the number of concurrent workers.

        Args:
            sample_volume: The 3D sample voxel volume (indexed [x, y, z]) which is used for pattern extraction.
            pattern_size: The edge length N of the cubic patterns (in voxels).
            output_size: The requested (x, y, z) output size (in patterns), without padding.
            rotation: If True, rotated copies of the sample volume are used for pattern extraction as well.
            avoid_empty_pattern: How much the empty pattern is down-weighted, in the range [0.0, 1.0].
            max_tries: Maximum number of full restarts before a worker gives up.
            max_propagation_tries: Maximum number of consecutive snapshot restores before a full restart.
            max_workers: Maximum number of concurrent workers. Defaults to the number of physical CPU cores.

        Raises:
            ConfigurationError: If any of the parameters is invalid.
        """
        self._solver_kwargs = {
            "pattern_size": pattern_size,
            "output_size": output_size,
            "rotation": rotation,
            "avoid_empty_pattern": avoid_empty_pattern,
            "max_tries": max_tries,
            "max_propagation_tries": max_propagation_tries,
        }
        # Building a solver once makes invalid parameters fail here instead of inside the workers.
        VoxelWFC(sample_volume, **self._solver_kwargs)
        self._sample_volume = sample_volume

        if max_workers is not None and max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}.")
        self._max_active_worker_count = max_workers or psutil.cpu_count(logical=False) or 1

    @property
    def max_active_worker_count(self) -> int:
        """Maximum number of concurrent workers."""
        return self._max_active_worker_count

    def generate(self, random_seeds: Iterable[int]) -> dict[int, SolveResult]:
        """Generates one volume per random seed in parallel worker processes.

        Args:
            random_seeds: The seeds to generate volumes for. Duplicates are generated once.

        Returns:
            The result of every seed, keyed by seed.

        Raises:
            VoxelWFCError: If a worker process failed with an unexpected error or exited without sending a result.
        """
        seeds = list(dict.fromkeys(random_seeds))
        results: dict[int, SolveResult] = {}
        if not seeds:
            return results

        update_queue: Queue[Any] = Queue()
        workers_waiting_for_execution = [
            GenerationWorker(seed, self._sample_volume, self._solver_kwargs, update_queue) for seed in seeds
        ]
        started_workers: list[GenerationWorker] = []
        # Seeds of workers found dead without a result at the last poll timeout.
        exited_worker_seeds: set[int] = set()

        # Start only min(max_workers, number_of_seeds) workers.
        for _ in range(min(self._max_active_worker_count, len(workers_waiting_for_execution))):
            worker = workers_waiting_for_execution.pop(0)
            worker.start()
            started_workers.append(worker)

        try:
            while len(results) < len(seeds):
                try:
                    seed, result, error_message = update_queue.get(timeout=WORKER_POLL_INTERVAL)
                except queue.Empty:
                    for worker in started_workers:
                        if worker.random_seed in results or worker.is_alive():
                            continue
                        if worker.random_seed in exited_worker_seeds:
                            raise VoxelWFCError(
                                f"Worker for seed {worker.random_seed} exited with code {worker.exitcode} "
                                "without sending a result."
                            )
                        # A result sent right before the exit may still be in the queue's pipe.
                        exited_worker_seeds.add(worker.random_seed)
                    continue

                if error_message is not None:
                    raise VoxelWFCError(f"Worker for seed {seed} failed: {error_message}")

                results[seed] = result
                logger.info(f"Seed {seed} finished ({len(results)}/{len(seeds)}): {result.state.value}.")

                if workers_waiting_for_execution:
                    worker = workers_waiting_for_execution.pop(0)
                    worker.start()
                    started_workers.append(worker)
        finally:
            for worker in started_workers:
                if worker.is_alive() and len(results) < len(seeds):
                    worker.terminate()
                worker.join()

        return results


class GenerationWorker(Process):
    """Worker process that generates a single volume for one random seed.

    The result is sent back to the main process via a multiprocessing Queue as a (seed, result, error_message)
    triple, where error_message is None unless the solver raised an unexpected error.
    """

    # The seed used by the solver of this worker.
    _random_seed: int
    # The 3D sample voxel volume (indexed [x, y, z]) which is used for pattern extraction.
    _sample_volume: NDArray[np.int_]
    # The remaining solver parameters.
    _solver_kwargs: dict[str, Any]
    # Queue used to send the result back to the main process.
    _update_queue: Queue[Any]

    def __init__(
        self,
        random_seed: int,
        sample_volume: NDArray[np.int_],
        solver_kwargs: dict[str, Any],
        update_queue: Queue[Any],
    ) -> None:
        super().__init__(daemon=True)

        self._random_seed = random_seed
        self._sample_volume = sample_volume
        self._solver_kwargs = solver_kwargs
        self._update_queue = update_queue

    @property
    def random_seed(self) -> int:
        """The seed used by the solver of this worker."""
        return self._random_seed

    def run(self) -> None:
        """The main entry point for the process, overriding 'multiprocessing.Process.run()'."""
        try:
            solver = VoxelWFC(self._sample_volume, random_seed=self._random_seed, **self._solver_kwargs)
            result = solver.solve()
        except Exception as error:
            # Forward the error instead of leaving the main process waiting for a result forever.
            self._update_queue.put((self._random_seed, None, repr(error)))
            raise
        self._update_queue.put((self._random_seed, result, None))
