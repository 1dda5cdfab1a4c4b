"""Contains global constants and default values used throughout the project."""

import logging


# === PATTERN CONSTANTS ===

EMPTY_VOXEL_VALUE: int = 0

EMPTY_PATTERN_INDEX: int = 0
FLOOR_PATTERN_INDEX: int = -1

# Occurrence count the empty pattern starts with before any window of the sample volume has been scanned.
EMPTY_PATTERN_INITIAL_COUNT: float = 0.000001
# Weight the empty pattern falls back to when its corrected count is not positive.
EMPTY_PATTERN_MIN_WEIGHT: float = 0.01

# Number of additional 90 degree rotations around the vertical axis used when rotation is enabled.
ROTATION_COUNT: int = 3

# === MODEL CONSTANTS ===

MAX_TRIES_DEFAULT: int = 500
MAX_PROPAGATION_TRIES_DEFAULT: int = 10

ENTROPY_NOISE_SCALE: float = 2e-10

# Seconds the batch manager waits for a worker result before checking whether its workers are still alive.
WORKER_POLL_INTERVAL: float = 0.5

PATTERN_SIZE_DEFAULT: int = 1

OUTPUT_SIZE_DEFAULT: tuple[int, int, int] = (10, 5, 10)

AVOID_EMPTY_PATTERN_DEFAULT: float = 0.0

RANDOM_SEED_DEFAULT: int = 0

# === RENDERER CONSTANTS ===

VOXEL_SIZE_DEFAULT: int = 8
LAYER_SPACING_DEFAULT: int = 4

# Colors of the most common voxel values; any other value gets a color derived from the value itself.
VOXEL_PALETTE_DEFAULT: dict[int, tuple[int, int, int]] = {
    0: (0, 0, 0),
    1: (120, 120, 120),
    2: (139, 90, 43),
    3: (34, 139, 34),
    4: (30, 144, 255),
    5: (220, 20, 60),
    6: (255, 215, 0),
    7: (238, 238, 238),
}

# === LOGGING CONSTANTS ===

LOGGER_NAME: str = "voxel_wfc"
LOG_LEVEL_DEFAULT: int = logging.INFO
LOG_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
LOG_MAX_FILE_SIZE: int = 10 * 1024 * 1024
LOG_BACKUP_COUNT: int = 3
