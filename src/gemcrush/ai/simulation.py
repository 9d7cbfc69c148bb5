from __future__ import annotations

import logging
import random
from copy import deepcopy
from dataclasses import dataclass, field, replace
from typing import List

from esper import World

from gemcrush import constants
from gemcrush.components.board import Board
from gemcrush.components.match_cache import MatchCache
from gemcrush.components.simulation_stats import SimulationStats
from gemcrush.components.tile import Tile
from gemcrush.systems.board_ops import (
    Move,
    find_matches,
    get_simulation_stats,
    resolve_match_groups,
    settle_board,
    swap_tiles,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CascadeResult:
    """Outcome of playing one move to quiescence on a clone."""

    total_score: int = 0
    cascade_count: int = 0
    specials_created: int = 0
    passes: List[int] = field(default_factory=list)


def clone_board(world: World, *, rng: random.Random | None = None) -> World:
    """Copy the board and its tiles into a fresh world in simulation mode.

    The clone gets its own RNG (a copy of the source world's unless ``rng``
    is given) so refills during simulation never advance the live generator.
    """
    clone = World()
    for _, board in world.get_component(Board):
        board_copy = deepcopy(board)
        board_copy.simulation_mode = True
        clone.create_entity(board_copy, MatchCache(), SimulationStats())
        break
    else:
        raise RuntimeError("Board entity not found")
    for _, tile in world.get_component(Tile):
        clone.create_entity(replace(tile))
    if rng is None:
        source = getattr(world, "random", None)
        rng = deepcopy(source) if isinstance(source, random.Random) else random.Random()
    setattr(clone, "random", rng)
    return clone


def fast_simulate(world: World) -> SimulationStats:
    """Exactly one match, removal and gravity cycle; records the result in SimulationStats."""
    stats = get_simulation_stats(world)
    matches = find_matches(world)
    if not matches:
        stats.score_gained = 0
        stats.cascade_count = 0
        return stats
    resolution = resolve_match_groups(world, matches)
    settle_board(world)
    stats.score_gained = resolution.score
    stats.cascade_count = 1
    return stats


class CascadeSimulator:
    """Plays a move on a disposable clone until no matches remain or the cap is hit."""

    def __init__(self, max_cascades: int = constants.MAX_SIMULATED_CASCADES) -> None:
        self.max_cascades = max_cascades

    def simulate(self, world: World, move: Move, max_cascades: int | None = None) -> CascadeResult:
        limit = self.max_cascades if max_cascades is None else max_cascades
        result = CascadeResult()
        clone = clone_board(world)
        if not swap_tiles(clone, move.first, move.second):
            return result
        passes = 0
        while passes <= limit:
            matches = find_matches(clone)
            if not matches:
                break
            resolution = resolve_match_groups(clone, matches)
            result.total_score += resolution.score
            result.specials_created += resolution.large_groups
            result.passes.append(resolution.score)
            settle_board(clone)
            passes += 1
        result.cascade_count = max(0, passes - 1)
        if result.cascade_count:
            logger.debug(
                "Simulated %s<->%s: %d cascades, %d points",
                move.first,
                move.second,
                result.cascade_count,
                result.total_score,
            )
        return result
