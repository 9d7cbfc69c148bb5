"""Save-state payloads for the session layer.

The payload is plain JSON-compatible data; where it is stored is up to the
caller. A board that cannot be restored is replaced by a fresh one so the
session always ends up playable.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict

from esper import World

from gemcrush import constants
from gemcrush.components.game_state import GameStatus
from gemcrush.config import GameConfig
from gemcrush.errors import BoardInvariantError
from gemcrush.systems.board_ops import load_board, reset_board, serialize_board
from gemcrush.systems.game_flow_system import get_game_state

logger = logging.getLogger(__name__)

_TERMINAL = {GameStatus.WON, GameStatus.GAME_OVER, GameStatus.NO_MOVES}


def _int_field(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Save field %r has unusable value %r; using %d", key, value, default)
        return default


def build_save_state(world: World) -> Dict[str, Any]:
    state = get_game_state(world)
    config = getattr(world, "config", None)
    return {
        "version": constants.SNAPSHOT_VERSION,
        "timestamp": time.time(),
        "score": state.score,
        "moves": state.moves,
        "level": state.level,
        "status": state.status.value,
        "session": dict(state.session),
        "board": serialize_board(world),
        "config": config.to_dict() if config is not None else {},
    }


def restore_save_state(world: World, data: Dict[str, Any]) -> bool:
    """Apply a saved payload. Returns False when the board had to be regenerated."""
    if not isinstance(data, dict):
        logger.warning("Ignoring save state of type %s", type(data).__name__)
        reset_board(world)
        return False

    if isinstance(data.get("config"), dict):
        setattr(world, "config", GameConfig.from_dict(data["config"]))
    config = getattr(world, "config", None) or GameConfig()

    state = get_game_state(world)
    state.score = _int_field(data, "score", 0)
    state.moves = _int_field(data, "moves", config.initial_moves)
    state.level = _int_field(data, "level", 1)
    state.target_score = config.target_score
    try:
        status = GameStatus(data.get("status") or GameStatus.PLAYING.value)
    except ValueError:
        status = GameStatus.PLAYING
    # A finished game resumes as a fresh round on the saved board.
    state.status = GameStatus.PLAYING if status in _TERMINAL else status
    session = data.get("session")
    if isinstance(session, dict):
        for key in session:
            if key in state.session:
                state.session[key] = _int_field(session, key, 0)

    try:
        load_board(world, data.get("board"))
    except BoardInvariantError as exc:
        logger.warning("Saved board is invalid (%s); generating a new one", exc)
        reset_board(world)
        return False
    logger.info("Restored save: score=%d moves=%d level=%d", state.score, state.moves, state.level)
    return True
