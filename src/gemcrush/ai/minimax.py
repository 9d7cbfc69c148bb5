from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional

from esper import World

from gemcrush import constants
from gemcrush.ai.heuristics import center_control, count_special_tiles, pattern_score
from gemcrush.ai.simulation import clone_board, fast_simulate
from gemcrush.ai.transposition import TranspositionTable
from gemcrush.config import SearchWeights
from gemcrush.systems.board_ops import (
    Move,
    board_hash,
    count_possible_moves,
    find_all_possible_moves,
    get_simulation_stats,
    swap_tiles,
)

logger = logging.getLogger(__name__)

DIFFICULTY_DEPTHS: Dict[str, int] = {"easy": 2, "medium": 3, "hard": 4}


@dataclass(slots=True)
class NodeResult:
    score: float
    move: Optional[Move] = None
    aborted: bool = False


@dataclass(slots=True)
class SearchReport:
    move: Optional[Move]
    score: float
    nodes_explored: int
    elapsed_ms: float
    depth_used: int
    aborted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "move": self.move.to_dict() if self.move is not None else None,
            "score": self.score,
            "nodes_explored": self.nodes_explored,
            "elapsed_ms": self.elapsed_ms,
            "depth_used": self.depth_used,
            "aborted": self.aborted,
        }


_ABORTED = NodeResult(score=0, aborted=True)


class MinimaxSolver:
    """Depth-limited minimax with alpha-beta pruning over cloned boards.

    Each child is a clone with the move swapped in and one resolve/gravity
    cycle applied (``fast_simulate``). The search stops early when either
    the wall-clock budget or the node budget runs out; the abort travels
    back up as ``NodeResult.aborted`` and ``find_best_move`` falls back to
    the best-scored enumerated move.
    """

    def __init__(
        self,
        max_depth: int = constants.DEFAULT_SEARCH_DEPTH,
        *,
        time_budget_ms: float = constants.TIME_BUDGET_MS,
        max_nodes: int = constants.MAX_NODES,
        max_table_size: int = constants.MAX_TABLE_SIZE,
        weights: SearchWeights | None = None,
    ) -> None:
        self.max_depth = max_depth
        self.time_budget_ms = time_budget_ms
        self.max_nodes = max_nodes
        self.weights = weights or SearchWeights()
        self.table: TranspositionTable[NodeResult] = TranspositionTable(max_table_size)
        self.node_count = 0
        self.evaluation_time = 0.0
        self._start = 0.0

    def find_best_move(self, world: World, depth: int | None = None, maximizing: bool = True) -> SearchReport:
        self._start = time.perf_counter()
        self.node_count = 0
        self.table.clear()
        search_depth = depth if depth is not None else self.max_depth
        logger.debug(
            "Minimax start: depth=%d budget=%.0fms max_nodes=%d",
            search_depth,
            self.time_budget_ms,
            self.max_nodes,
        )
        outcome = self.minimax(world, search_depth, -math.inf, math.inf, maximizing)
        if outcome.aborted:
            fallback = find_all_possible_moves(world)
            outcome = NodeResult(score=0, move=fallback[0] if fallback else None, aborted=True)
        self.evaluation_time = self._elapsed_ms()
        aborted = (
            outcome.aborted
            or self.evaluation_time > self.time_budget_ms
            or self.node_count >= self.max_nodes
        )
        if aborted:
            logger.warning(
                "Minimax aborted after %d nodes in %.0fms; using fallback move",
                self.node_count,
                self.evaluation_time,
            )
        else:
            logger.info(
                "Minimax done: depth=%d nodes=%d %.0fms score=%.1f",
                search_depth,
                self.node_count,
                self.evaluation_time,
                outcome.score,
            )
        return SearchReport(
            move=outcome.move,
            score=outcome.score,
            nodes_explored=self.node_count,
            elapsed_ms=self.evaluation_time,
            depth_used=search_depth,
            aborted=aborted,
        )

    def minimax(self, world: World, depth: int, alpha: float, beta: float, maximizing: bool) -> NodeResult:
        if self._elapsed_ms() > self.time_budget_ms:
            return _ABORTED
        self.node_count += 1
        if self.node_count >= self.max_nodes:
            return _ABORTED

        key = self._table_key(world, depth, maximizing)
        cached = self.table.get(key)
        if cached is not None:
            return cached

        if depth <= 0:
            return self._store(key, NodeResult(score=self.evaluate_board(world)))
        moves = find_all_possible_moves(world)
        if not moves:
            return self._store(key, NodeResult(score=self.evaluate_board(world)))

        best_move: Optional[Move] = None
        best_score = -math.inf if maximizing else math.inf
        for move in moves:
            child = clone_board(world)
            swap_tiles(child, move.first, move.second)
            fast_simulate(child)
            result = self.minimax(child, depth - 1, alpha, beta, not maximizing)
            if result.aborted:
                return result
            if maximizing:
                if result.score > best_score:
                    best_score = result.score
                    best_move = move
                alpha = max(alpha, result.score)
            else:
                if result.score < best_score:
                    best_score = result.score
                    best_move = move
                beta = min(beta, result.score)
            if beta <= alpha:
                break
        # Pruned nodes are memoized too; their score is a bound, not exact.
        return self._store(key, NodeResult(score=best_score, move=best_move))

    def evaluate_board(self, world: World) -> float:
        """Leaf heuristic: simulated gain, mobility, specials, centrality and shapes."""
        stats = get_simulation_stats(world)
        weights = self.weights
        score = stats.score_gained * weights.score
        score += stats.cascade_count * constants.CASCADE_BONUS * weights.score
        try:
            move_count = count_possible_moves(world)
        except Exception:
            logger.debug("Move enumeration failed during leaf evaluation", exc_info=True)
            move_count = 0
        score += min(move_count, constants.MAX_COUNTED_MOVES) * weights.possible_moves
        score += count_special_tiles(world) * weights.special_tiles
        score += center_control(world) * weights.center_control
        score += pattern_score(world)
        return score

    def set_difficulty(self, difficulty: str) -> int:
        self.max_depth = DIFFICULTY_DEPTHS.get(difficulty, constants.DEFAULT_SEARCH_DEPTH)
        return self.max_depth

    def performance_stats(self) -> Dict[str, float]:
        return {
            "nodes_explored": self.node_count,
            "evaluation_time_ms": self.evaluation_time,
            "max_depth": self.max_depth,
            "avg_time_per_node_ms": self.evaluation_time / self.node_count if self.node_count else 0,
        }

    def _table_key(self, world: World, depth: int, maximizing: bool) -> Hashable:
        stats = get_simulation_stats(world)
        return (board_hash(world), stats.score_gained, stats.cascade_count, depth, maximizing)

    def _store(self, key: Hashable, result: NodeResult) -> NodeResult:
        self.table.store(key, result)
        return result

    def _elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000
