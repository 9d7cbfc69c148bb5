from blinker import Signal
from typing import Dict

class EventBus:
    """Simple event bus leveraging blinker Signal objects."""
    def __init__(self):
        self._signals: Dict[str, Signal] = {}

    def subscribe(self, name: str, fn):
        sig = self._signals.setdefault(name, Signal(name))
        # Use weak=False to retain strong reference to bound methods so systems not kept in a variable still receive events.
        sig.connect(fn, weak=False)

    def emit(self, name: str, **payload):
        sig = self._signals.get(name)
        if sig:
            sig.send(self, **payload)


# ============================================================================
# INPUT & INTERACTION
# ============================================================================
EVENT_TILE_CLICK = "tile_click"                    # payload: row, col


# ============================================================================
# TILE & BOARD MECHANICS
# ============================================================================
EVENT_TILE_SELECTED = "tile_selected"              # payload: row, col
EVENT_TILE_DESELECTED = "tile_deselected"          # payload: reason=str
EVENT_TILE_SWAP_REQUEST = "tile_swap_request"      # payload: src=(r,c), dst=(r,c), origin=str
EVENT_TILE_SWAP_VALID = "tile_swap_valid"          # payload: src=(r,c), dst=(r,c)
EVENT_TILE_SWAP_INVALID = "tile_swap_invalid"      # payload: src=(r,c), dst=(r,c), reason=str
EVENT_TILE_SWAP_FINALIZE = "tile_swap_finalize"    # payload: src=(r,c), dst=(r,c), origin=str
EVENT_SPECIAL_ACTIVATED = "special_activated"      # payload: position=(r,c), kind=str, affected=[(r,c),...]
EVENT_SPECIAL_CREATED = "special_created"          # payload: position=(r,c), kind=str, group_size=int
EVENT_MATCH_FOUND = "match_found"                  # payload: positions=[(r,c),...], size=int
EVENT_MATCH_CLEARED = "match_cleared"              # payload: positions=[(r,c),...], types=[(r,c,type),...], score=int
EVENT_GRAVITY_APPLIED = "gravity_applied"          # payload: moved=bool, falls=[{from,to,type}], spawned=[(r,c),...]
EVENT_CASCADE_STEP = "cascade_step"                # payload: depth=int, positions=[(r,c),...]
EVENT_CASCADE_COMPLETE = "cascade_complete"        # payload: depth=int, score=int
EVENT_BOARD_RESET = "board_reset"                  # payload: reason=str


# ============================================================================
# ANIMATION
# ============================================================================
EVENT_ANIMATION_START = "animation_start"          # payload: kind=str, items=list


# ============================================================================
# SCORE & SESSION
# ============================================================================
EVENT_SCORE_CHANGED = "score_changed"              # payload: score=int, delta=int, moves=int
EVENT_MOVES_CHANGED = "moves_changed"              # payload: moves=int, origin=str
EVENT_GAME_STATUS_CHANGED = "game_status_changed"  # payload: previous=GameStatus, status=GameStatus
EVENT_GAME_RESTARTED = "game_restarted"            # payload: None


# ============================================================================
# AI ADVISORY
# ============================================================================
EVENT_HINT_REQUEST = "hint_request"                        # payload: None
EVENT_HINT_READY = "hint_ready"                            # payload: hint=Hint
EVENT_HINT_UNAVAILABLE = "hint_unavailable"                # payload: reason=str
EVENT_AUTO_SOLVE_REQUEST = "auto_solve_request"            # payload: None
EVENT_AUTO_SOLVE_APPLIED = "auto_solve_applied"            # payload: outcome=AutoSolveOutcome
EVENT_AUTO_SOLVE_FAILED = "auto_solve_failed"              # payload: reason=str
EVENT_SEARCH_COMPLETED = "search_completed"                # payload: report=SearchReport
