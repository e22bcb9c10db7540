"""Contains global constants and default values used throughout the project."""

# === TILE CONSTANTS ===

# Tile index marking an unknown/empty cell, both in training grids and in not yet written output cells.
EMPTY_TILE_INDEX: int = -1

# === MODEL CONSTANTS ===

PATTERN_SIZE_DEFAULT: int = 2
# Only 2x2 patterns are fully constrained by the eight neighbor directions the propagation looks at.
PATTERN_SIZE_SUPPORTED: tuple[int, ...] = (2,)

OUTPUT_SIZE_DEFAULT: int = 32
OUTPUT_SIZE_MIN_LIMIT: int = 2
OUTPUT_SIZE_MAX_LIMIT: int = 500

RANDOM_SEED_MAX: int = 999999999

# Upper bound (exclusive) of the random value subtracted from a cell's entropy to break ties.
ENTROPY_NOISE_MAX: float = 0.1

# Number of complete generation runs attempted (with different seeds) before a contradiction is reported.
WFC_MAX_ATTEMPTS_DEFAULT: int = 10

# === STREAMING CONSTANTS ===

# Maximum number of collapsed cell updates a consumer drains per tick.
STREAM_DRAIN_LIMIT_DEFAULT: int = 64
# Seconds the listener waits for the worker process to shut down before terminating it.
WORKER_JOIN_TIMEOUT: float = 1.0

# === LOGGING CONSTANTS ===

LOGGER_NAME: str = "tilemap_wfc"
LOG_FILE_NAME: str = "tilemap_wfc.log"
MAX_LOG_SIZE: int = 5 * 1024 * 1024
LOG_BACKUP_COUNT: int = 3
