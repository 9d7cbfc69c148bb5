from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from esper import World

from gemcrush import constants
from gemcrush.ai.minimax import MinimaxSolver, SearchReport
from gemcrush.config import GameConfig
from gemcrush.events.bus import (
    EVENT_AUTO_SOLVE_APPLIED,
    EVENT_AUTO_SOLVE_FAILED,
    EVENT_AUTO_SOLVE_REQUEST,
    EVENT_SEARCH_COMPLETED,
    EVENT_TILE_SWAP_FINALIZE,
    EVENT_TILE_SWAP_REQUEST,
    EventBus,
)
from gemcrush.systems.board_ops import Move, find_all_possible_moves
from gemcrush.systems.hint_system import HintSystem

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AutoSolveOutcome:
    success: bool
    method: str = ""
    move: Optional[Move] = None
    score: float = 0
    nodes_explored: int = 0
    elapsed_ms: float = 0.0
    depth: int = 0


class AutoSolveSystem:
    """Plays one move on the player's behalf.

    Deep configurations (depth >= 5) ask the minimax solver first; shallower
    ones use the greedy hint. Either way a failed or aborted primary choice
    falls back to minimax, then to the best enumerated move.
    """

    def __init__(
        self,
        world: World,
        event_bus: EventBus,
        *,
        solver: MinimaxSolver | None = None,
        hint_system: HintSystem | None = None,
    ):
        self.world = world
        self.event_bus = event_bus
        config: GameConfig = getattr(world, "config", None) or GameConfig()
        self.config = config
        self.solver = solver or MinimaxSolver(
            config.ai_depth,
            time_budget_ms=config.time_budget_ms,
            max_nodes=config.max_nodes,
            max_table_size=config.max_table_size,
            weights=config.search_weights,
        )
        # A private bus keeps the advisor from answering player hint requests twice.
        self.hint_system = hint_system or HintSystem(world, EventBus())
        self._swap_accepted = False
        self.event_bus.subscribe(EVENT_AUTO_SOLVE_REQUEST, self.on_auto_solve_request)
        self.event_bus.subscribe(EVENT_TILE_SWAP_FINALIZE, self.on_swap_finalize)

    def on_auto_solve_request(self, sender, **kwargs):
        self.request_auto_solve()

    def on_swap_finalize(self, sender, **kwargs):
        if kwargs.get("origin") == "auto_solve":
            self._swap_accepted = True

    def choose_move(self) -> AutoSolveOutcome:
        depth = self.config.ai_depth
        outcome = AutoSolveOutcome(success=False, depth=depth)
        if depth >= constants.MINIMAX_FIRST_DEPTH:
            self._try_minimax(outcome, depth, f"minimax (depth={depth})")
        else:
            hint = self.hint_system.suggest_move(self.world)
            if hint is not None:
                outcome.success = True
                outcome.move = hint.move
                outcome.score = hint.match_info.estimated_score or hint.evaluation_score
                outcome.method = "greedy"
        if not outcome.success:
            self._try_minimax(outcome, depth, "minimax (fallback)")
        if not outcome.success:
            moves = find_all_possible_moves(self.world)
            if moves:
                outcome.success = True
                outcome.move = moves[0]
                outcome.score = moves[0].score
                outcome.method = "fallback"
        return outcome

    def request_auto_solve(self) -> AutoSolveOutcome:
        if not self.config.enable_ai:
            self.event_bus.emit(EVENT_AUTO_SOLVE_FAILED, reason="ai disabled")
            return AutoSolveOutcome(success=False)
        outcome = self.choose_move()
        if not outcome.success or outcome.move is None:
            logger.info("Auto-solve found no move")
            self.event_bus.emit(EVENT_AUTO_SOLVE_FAILED, reason="no good move")
            return outcome
        logger.info(
            "Auto-solve via %s: %s<->%s (expected %.0f)",
            outcome.method,
            outcome.move.first,
            outcome.move.second,
            outcome.score,
        )
        self._swap_accepted = False
        self.event_bus.emit(
            EVENT_TILE_SWAP_REQUEST,
            src=outcome.move.first,
            dst=outcome.move.second,
            origin="auto_solve",
        )
        if not self._swap_accepted:
            logger.info("Auto-solve swap was rejected by the board")
            outcome.success = False
            self.event_bus.emit(EVENT_AUTO_SOLVE_FAILED, reason="swap rejected")
            return outcome
        self.event_bus.emit(EVENT_AUTO_SOLVE_APPLIED, outcome=outcome)
        return outcome

    def _try_minimax(self, outcome: AutoSolveOutcome, depth: int, method: str) -> None:
        report: SearchReport = self.solver.find_best_move(self.world, depth)
        self.event_bus.emit(EVENT_SEARCH_COMPLETED, report=report)
        outcome.nodes_explored = report.nodes_explored
        outcome.elapsed_ms = report.elapsed_ms
        if report.move is not None and not report.aborted:
            outcome.success = True
            outcome.move = report.move
            outcome.score = report.score
            outcome.method = method
