"""Loads and saves voxel volumes as numpy .npy files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from voxel_wfc.errors import VolumeFormatError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def load_volume(file_path: str | Path) -> NDArray[np.int_]:
    """Loads a 3D integer voxel volume (indexed [x, y, z]) from a .npy file.

    Raises:
        VolumeFormatError: If the file cannot be read as a numpy array or does not hold a 3D integer array.
    """
    path = Path(file_path)
    try:
        volume = np.load(path, allow_pickle=False)
    except (OSError, ValueError) as error:
        raise VolumeFormatError(f"Cannot read voxel volume from {path}: {error}") from error

    if not isinstance(volume, np.ndarray) or volume.ndim != 3:
        raise VolumeFormatError(f"{path} does not contain a 3D array.")
    if not (np.issubdtype(volume.dtype, np.integer) or np.issubdtype(volume.dtype, np.bool_)):
        raise VolumeFormatError(f"{path} contains {volume.dtype} values instead of integer voxel values.")

    logger.info(f"Loaded voxel volume {path} with shape {volume.shape}.")
    return volume.astype(np.int_)


def save_volume(volume: NDArray[np.int_], file_path: str | Path) -> Path:
    """Saves a voxel volume to a .npy file and returns the path that was written."""
    path = Path(file_path)
    if path.suffix != ".npy":
        # numpy.save() would append the suffix itself, so the returned path has to include it.
        path = path.with_name(path.name + ".npy")
    path.parent.mkdir(parents=True, exist_ok=True)
    np.save(path, np.asarray(volume, dtype=np.int_), allow_pickle=False)
    logger.info(f"Saved voxel volume with shape {volume.shape} to {path}.")
    return path
