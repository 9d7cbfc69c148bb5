from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from esper import World

from gemcrush import constants
from gemcrush.ai.heuristics import (
    confidence,
    estimate_cascade_potential,
    exact_cascade_score,
    match_size_score,
    position_value,
    special_bonus,
)
from gemcrush.ai.simulation import CascadeResult, CascadeSimulator
from gemcrush.config import HintWeights
from gemcrush.events.bus import EVENT_HINT_READY, EVENT_HINT_REQUEST, EVENT_HINT_UNAVAILABLE, EventBus
from gemcrush.systems.board_ops import (
    Move,
    board_dimensions,
    find_all_possible_moves,
    find_matches,
    group_matches,
    swapped,
    tile_grid,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MatchInfo:
    total_matches: int = 0
    matched_tiles: List[Tuple[int, int, int]] = field(default_factory=list)
    tile_types: List[int] = field(default_factory=list)
    estimated_score: int = 0
    match_sizes: List[int] = field(default_factory=list)


@dataclass(slots=True)
class Hint:
    move: Move
    evaluation_score: float
    confidence: float
    match_info: MatchInfo
    reason: str


def describe(info: MatchInfo) -> str:
    """Short player-facing explanation of a suggested move."""
    if info.total_matches == 0:
        return "No match created"
    reason = f"Creates {info.total_matches} matched tiles"
    largest = max(info.match_sizes) if info.match_sizes else 0
    if largest >= constants.ROW_CLEAR_SIZE:
        reason += f" (including a {largest}-tile match!)"
    if len(info.tile_types) == 1:
        reason += f" of type {info.tile_types[0]}"
    return reason + f" for ~{info.estimated_score} points"


class HintSystem:
    """Greedy move advisor.

    Scores every legal move once and suggests the best. Cascade value is
    either estimated from the landing cells of falling tiles (fast) or, with
    cascade prediction on, measured by playing the move out on a clone.
    """

    def __init__(
        self,
        world: World,
        event_bus: EventBus,
        *,
        weights: HintWeights | None = None,
        cascade_prediction: bool | None = None,
        simulator: CascadeSimulator | None = None,
    ):
        self.world = world
        self.event_bus = event_bus
        config = getattr(world, "config", None)
        self.weights = weights or (config.hint_weights if config else HintWeights())
        if cascade_prediction is None:
            cascade_prediction = config.cascade_prediction if config else False
        self.cascade_prediction = cascade_prediction
        self.simulator = simulator or CascadeSimulator()
        self.last_cascade: Optional[CascadeResult] = None
        self.event_bus.subscribe(EVENT_HINT_REQUEST, self.on_hint_request)

    def on_hint_request(self, sender, **kwargs):
        hint = self.suggest_move(self.world)
        if hint is None:
            self.event_bus.emit(EVENT_HINT_UNAVAILABLE, reason="no good move")
            return
        self.event_bus.emit(EVENT_HINT_READY, hint=hint)

    def set_cascade_prediction(self, enabled: bool) -> None:
        self.cascade_prediction = enabled
        logger.info("Cascade prediction %s", "on" if enabled else "off")

    def suggest_move(self, world: World) -> Hint | None:
        moves = find_all_possible_moves(world)
        if not moves:
            return None
        best = moves[0]
        best_score = self.evaluate_move(world, best)
        for move in moves[1:]:
            score = self.evaluate_move(world, move)
            if score > best_score:
                best, best_score = move, score
        info = self.match_info(world, best)
        return Hint(
            move=best,
            evaluation_score=best_score,
            confidence=confidence(best_score, len(moves)),
            match_info=info,
            reason=describe(info),
        )

    def evaluate_move(self, world: World, move: Move) -> float:
        weights = self.weights
        with swapped(world, move.first, move.second) as did_swap:
            if not did_swap:
                return 0
            matches = find_matches(world)
            sizes = [len(group) for group in group_matches(world, matches)]
            score = match_size_score(len(matches), weights)
            score += special_bonus(sizes, weights)
            if not self.cascade_prediction:
                score += estimate_cascade_potential(world, cleared=matches) * weights.cascade_potential
        if self.cascade_prediction:
            result = self.simulator.simulate(world, move, constants.MAX_SIMULATED_CASCADES)
            self.last_cascade = result
            score += exact_cascade_score(result, weights)
        rows, cols = board_dimensions(world) or (constants.GRID_ROWS, constants.GRID_COLS)
        score += position_value(move, rows, cols) * weights.position
        return score

    def match_info(self, world: World, move: Move) -> MatchInfo:
        info = MatchInfo()
        with swapped(world, move.first, move.second) as did_swap:
            if not did_swap:
                return info
            matches = find_matches(world)
            cells = tile_grid(world)
            info.total_matches = len(matches)
            types = set()
            for pos in matches:
                tile = cells.get(pos)
                if tile is None:
                    continue
                info.matched_tiles.append((pos[0], pos[1], tile.type))
                types.add(tile.type)
            info.tile_types = sorted(types)
            info.match_sizes = [len(group) for group in group_matches(world, matches)]
            info.estimated_score = sum(size * constants.BASE_TILE_SCORE for size in info.match_sizes)
        return info

    def compare_cascade_modes(self, world: World) -> Dict[str, Any]:
        """Run the advisor with and without cascade prediction and report the difference."""
        previous = self.cascade_prediction
        try:
            self.cascade_prediction = False
            start = time.perf_counter()
            without = self.suggest_move(world)
            time_without = (time.perf_counter() - start) * 1000

            self.cascade_prediction = True
            start = time.perf_counter()
            with_prediction = self.suggest_move(world)
            time_with = (time.perf_counter() - start) * 1000
        finally:
            self.cascade_prediction = previous

        cascade = None
        if with_prediction is not None:
            cascade = self.simulator.simulate(world, with_prediction.move, constants.MAX_SIMULATED_CASCADES)
        same_move = (
            without is not None
            and with_prediction is not None
            and without.move.same_pair(with_prediction.move)
        )
        return {
            "without": {
                "hint": without,
                "score": without.evaluation_score if without else 0,
                "time_ms": time_without,
                "method": "estimate",
            },
            "with": {
                "hint": with_prediction,
                "score": with_prediction.evaluation_score if with_prediction else 0,
                "time_ms": time_with,
                "method": "simulate",
                "cascade_count": cascade.cascade_count if cascade else 0,
                "cascade_score": cascade.total_score if cascade else 0,
            },
            "comparison": {
                "same_move": same_move,
                "score_difference": (
                    with_prediction.evaluation_score - without.evaluation_score
                    if with_prediction and without
                    else 0
                ),
                "time_difference_ms": time_with - time_without,
            },
        }
