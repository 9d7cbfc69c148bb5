from __future__ import annotations

import logging
from typing import List, Tuple

from esper import World

from gemcrush.events.bus import (
    EVENT_ANIMATION_START,
    EVENT_CASCADE_COMPLETE,
    EVENT_CASCADE_STEP,
    EVENT_GRAVITY_APPLIED,
    EVENT_MATCH_CLEARED,
    EVENT_MATCH_FOUND,
    EVENT_SPECIAL_ACTIVATED,
    EVENT_SPECIAL_CREATED,
    EVENT_TILE_SWAP_FINALIZE,
    EventBus,
)
from gemcrush.systems.board_ops import (
    activate_special,
    clear_tiles,
    find_matches,
    group_matches,
    resolve_match_groups,
    settle_board,
    tile_at,
)

logger = logging.getLogger(__name__)

Position = Tuple[int, int]

# Live play has no cascade cap of its own; this only guards against a degenerate RNG.
MAX_LIVE_CASCADES = 100


class MatchResolutionSystem:
    """Plays out a finalized swap: specials, matches, gravity and cascades, all announced on the bus."""

    def __init__(self, world: World, event_bus: EventBus):
        self.world = world
        self.event_bus = event_bus
        self.last_cascade_depth = 0
        self.event_bus.subscribe(EVENT_TILE_SWAP_FINALIZE, self.on_swap_finalize)

    def on_swap_finalize(self, sender, **kwargs):
        src = kwargs.get("src")
        dst = kwargs.get("dst")
        if not src or not dst:
            return
        gained = self.activate_swapped_specials([tuple(src), tuple(dst)])
        self.resolve_until_stable(initial_score=gained)

    def activate_swapped_specials(self, positions: List[Position]) -> int:
        gained = 0
        for pos in positions:
            tile = tile_at(self.world, *pos)
            if tile is None or not tile.is_special:
                continue
            kind = tile.special_kind.value
            affected = activate_special(self.world, pos)
            self.event_bus.emit(EVENT_SPECIAL_ACTIVATED, position=pos, kind=kind, affected=affected)
            self.event_bus.emit(EVENT_ANIMATION_START, kind="fade", items=affected)
            resolution = clear_tiles(self.world, affected)
            gained += resolution.score
            self.event_bus.emit(
                EVENT_MATCH_CLEARED,
                positions=resolution.removed,
                types=resolution.removed_types,
                score=resolution.score,
            )
        if gained:
            self._apply_gravity()
        return gained

    def resolve_until_stable(self, initial_score: int = 0) -> int:
        """Resolve matches and refill until the board is quiet; returns the points scored."""
        total = initial_score
        depth = 0
        while depth < MAX_LIVE_CASCADES:
            matches = find_matches(self.world)
            if not matches:
                break
            depth += 1
            self.event_bus.emit(EVENT_CASCADE_STEP, depth=depth, positions=matches)
            self.event_bus.emit(EVENT_MATCH_FOUND, positions=matches, size=len(matches))
            self.event_bus.emit(EVENT_ANIMATION_START, kind="fade", items=matches)
            sizes = {pos: len(group) for group in group_matches(self.world, matches) for pos in group}
            resolution = resolve_match_groups(self.world, matches)
            for pos, kind in resolution.promoted:
                self.event_bus.emit(
                    EVENT_SPECIAL_CREATED, position=pos, kind=kind.value, group_size=sizes.get(pos, 0)
                )
            self.event_bus.emit(
                EVENT_MATCH_CLEARED,
                positions=resolution.removed,
                types=resolution.removed_types,
                score=resolution.score,
            )
            total += resolution.score
            self._apply_gravity()
        else:
            logger.warning("Stopped resolving after %d cascade steps", depth)
        self.last_cascade_depth = depth
        self.event_bus.emit(EVENT_CASCADE_COMPLETE, depth=depth, score=total)
        return total

    def _apply_gravity(self) -> None:
        report = settle_board(self.world)
        falls = [{"from": fall.source, "to": fall.target, "type": fall.type} for fall in report.falls]
        self.event_bus.emit(EVENT_GRAVITY_APPLIED, moved=report.moved, falls=falls, spawned=report.spawned)
        if falls:
            self.event_bus.emit(EVENT_ANIMATION_START, kind="fall", items=falls)
        if report.spawned:
            self.event_bus.emit(EVENT_ANIMATION_START, kind="refill", items=report.spawned)
