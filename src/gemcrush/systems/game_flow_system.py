"""Session bookkeeping: score, remaining moves, end-of-game checks and restarts."""
from __future__ import annotations

import logging
from typing import Optional

from esper import World

from gemcrush import constants
from gemcrush.components.game_state import GameState, GameStatus
from gemcrush.events.bus import (
    EVENT_AUTO_SOLVE_APPLIED,
    EVENT_BOARD_RESET,
    EVENT_CASCADE_COMPLETE,
    EVENT_GAME_RESTARTED,
    EVENT_GAME_STATUS_CHANGED,
    EVENT_HINT_READY,
    EVENT_MATCH_CLEARED,
    EVENT_MOVES_CHANGED,
    EVENT_SCORE_CHANGED,
    EVENT_TILE_SWAP_VALID,
    EventBus,
)
from gemcrush.systems.board_ops import has_possible_moves, reset_board

logger = logging.getLogger(__name__)


def get_game_state(world: World) -> GameState:
    """Return the session resource, creating it from the world config when missing."""
    for _, state in world.get_component(GameState):
        return state
    config = getattr(world, "config", None)
    state = GameState(
        moves=config.initial_moves if config else constants.INITIAL_MOVES,
        target_score=config.target_score if config else constants.TARGET_SCORE,
    )
    world.create_entity(state)
    return state


class GameFlowSystem:
    """Tracks the running session and decides when it ends."""

    def __init__(self, world: World, event_bus: EventBus) -> None:
        self.world = world
        self.event_bus = event_bus
        get_game_state(world)
        self.event_bus.subscribe(EVENT_TILE_SWAP_VALID, self._on_swap_valid)
        self.event_bus.subscribe(EVENT_MATCH_CLEARED, self._on_match_cleared)
        self.event_bus.subscribe(EVENT_CASCADE_COMPLETE, self._on_cascade_complete)
        self.event_bus.subscribe(EVENT_HINT_READY, self._on_hint_ready)
        self.event_bus.subscribe(EVENT_AUTO_SOLVE_APPLIED, self._on_auto_solve_applied)

    @property
    def state(self) -> GameState:
        return get_game_state(self.world)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_swap_valid(self, sender, **payload) -> None:
        state = self.state
        if state.status is not GameStatus.PLAYING:
            return
        state.moves = max(0, state.moves - 1)
        state.session["total_moves"] += 1
        self.event_bus.emit(EVENT_MOVES_CHANGED, moves=state.moves, origin="swap")

    def _on_match_cleared(self, sender, **payload) -> None:
        gained = int(payload.get("score", 0) or 0)
        if gained <= 0:
            return
        state = self.state
        state.score += gained
        state.session["total_score"] = state.score
        self.event_bus.emit(EVENT_SCORE_CHANGED, score=state.score, delta=gained, moves=state.moves)

    def _on_cascade_complete(self, sender, **payload) -> None:
        depth = int(payload.get("depth", 0) or 0)
        if depth > 1:
            self.state.session["cascades_triggered"] += depth - 1
        self.check_game_end()

    def _on_hint_ready(self, sender, **payload) -> None:
        self.state.session["hints_used"] += 1

    def _on_auto_solve_applied(self, sender, **payload) -> None:
        self.state.session["auto_solves_used"] += 1

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def check_game_end(self) -> GameStatus:
        state = self.state
        if state.status is not GameStatus.PLAYING:
            return state.status
        if state.moves <= 0:
            won = state.score >= state.target_score
            self.set_status(GameStatus.WON if won else GameStatus.GAME_OVER)
        elif not has_possible_moves(self.world):
            self.set_status(GameStatus.NO_MOVES)
        return state.status

    def set_status(self, status: GameStatus) -> None:
        state = self.state
        previous = state.status
        if previous is status:
            return
        state.status = status
        logger.info("Game status %s -> %s (score=%d, moves=%d)", previous.value, status.value, state.score, state.moves)
        self.event_bus.emit(EVENT_GAME_STATUS_CHANGED, previous=previous, status=status)

    def next_level(self) -> int:
        """Advance the level and grant bonus moves, capped at the starting allowance."""
        state = self.state
        config = getattr(self.world, "config", None)
        cap = config.initial_moves if config else constants.INITIAL_MOVES
        state.level += 1
        state.moves = min(cap, state.moves + constants.LEVEL_BONUS_MOVES)
        self.event_bus.emit(EVENT_MOVES_CHANGED, moves=state.moves, origin="level_up")
        return state.level

    def restart(self, *, moves: Optional[int] = None) -> None:
        state = self.state
        config = getattr(self.world, "config", None)
        previous = state.status
        state.score = 0
        state.level = 1
        state.moves = moves if moves is not None else (config.initial_moves if config else constants.INITIAL_MOVES)
        state.status = GameStatus.PLAYING
        for key in state.session:
            state.session[key] = 0
        reset_board(self.world)
        self.event_bus.emit(EVENT_BOARD_RESET, reason="restart")
        if previous is not GameStatus.PLAYING:
            self.event_bus.emit(EVENT_GAME_STATUS_CHANGED, previous=previous, status=GameStatus.PLAYING)
        self.event_bus.emit(EVENT_GAME_RESTARTED)
