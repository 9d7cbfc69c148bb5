GRID_ROWS = 8
GRID_COLS = 8
TILE_TYPES = 6

# Session defaults.
INITIAL_MOVES = 30
TARGET_SCORE = 1000
LEVEL_BONUS_MOVES = 5

# Initial fill retries per cell before falling back to DEFAULT_TILE_TYPE.
MAX_FILL_ATTEMPTS = 20
DEFAULT_TILE_TYPE = 1

# ============================================================================
# SCORING
# ============================================================================
BASE_TILE_SCORE = 10
SPECIAL_TILE_MULTIPLIER = 3
MAX_COMBO_MULTIPLIER = 5
SPECIAL_MATCH_BONUS = 20          # evaluate_move: per already-special tile in the match set
CASCADE_NEIGHBOUR_BONUS = 5       # per same-type neighbour at a falling tile's landing cell

# Group sizes that promote a surviving tile to a special.
ROW_CLEAR_SIZE = 4
BOMB_SIZE = 5
COLOR_CLEAR_SIZE = 6
BOMB_RADIUS = 2

# ============================================================================
# SEARCH
# ============================================================================
DEFAULT_SEARCH_DEPTH = 3
TIME_BUDGET_MS = 2000.0
MAX_NODES = 50_000
MAX_TABLE_SIZE = 1000
CASCADE_BONUS = 50
MAX_COUNTED_MOVES = 30
CENTER_RADIUS = 2
CENTER_CELL_VALUE = 10
T_SHAPE_BONUS = 30
L_SHAPE_BONUS = 25
SQUARE_BONUS = 20

# Auto-solve switches from greedy hints to minimax at this depth.
MINIMAX_FIRST_DEPTH = 5
MAX_SIMULATED_CASCADES = 5

SNAPSHOT_VERSION = "1.0.0"
