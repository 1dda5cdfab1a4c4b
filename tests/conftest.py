from __future__ import annotations

from collections.abc import Iterator
import logging

import numpy as np
import pytest

from voxel_wfc.constants import LOGGER_NAME


def make_ground_sample() -> np.ndarray:
    """Create a small sample volume: a 2x2 slab of value 1 lying on the floor, surrounded by empty space.

    The volume is indexed [x, y, z] with y pointing downwards, so y=1 is the bottom layer:

        y=0 (top):     all empty
        y=1 (bottom):  empty margin with a 2x2 block of 1 in the middle (x, z in {1, 2})

    The derived rules are small enough to reason about by hand:
    - pattern 1 only ever stands on the floor and only has empty space above it,
    - the empty pattern only has empty space above it,
    - the floor supports both patterns.
    """
    volume = np.zeros((4, 2, 4), dtype=np.int_)
    volume[1:3, 1, 1:3] = 1
    return volume


def make_stacked_column() -> np.ndarray:
    """Create a 1x2x1 column: value 1 on top (y=0) of value 2 (y=1)."""
    volume = np.zeros((1, 2, 1), dtype=np.int_)
    volume[0, 0, 0] = 1
    volume[0, 1, 0] = 2
    return volume


def scale_volume(volume: np.ndarray, factor: int) -> np.ndarray:
    """Scale every voxel of a volume up to a factor x factor x factor block."""
    return np.repeat(np.repeat(np.repeat(volume, factor, axis=0), factor, axis=1), factor, axis=2)


@pytest.fixture
def ground_sample() -> np.ndarray:
    return make_ground_sample()


@pytest.fixture
def stacked_column() -> np.ndarray:
    return make_stacked_column()


@pytest.fixture(autouse=True)
def reset_voxel_wfc_logger() -> Iterator[None]:
    """Undo handler changes made by setup_logging() so that caplog keeps working."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
