from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from esper import World

from gemcrush import constants
from gemcrush.components.board import Board
from gemcrush.components.game_state import GameState, GameStatus
from gemcrush.components.tile import SpecialKind
from gemcrush.errors import BoardInvariantError
from gemcrush.events.bus import (
    EVENT_BOARD_RESET,
    EVENT_TILE_CLICK,
    EVENT_TILE_DESELECTED,
    EVENT_TILE_SELECTED,
    EVENT_TILE_SWAP_FINALIZE,
    EVENT_TILE_SWAP_INVALID,
    EVENT_TILE_SWAP_REQUEST,
    EVENT_TILE_SWAP_VALID,
    EventBus,
)
from gemcrush.systems.board_ops import (
    can_swap,
    create_board,
    generate_initial_board,
    get_board_entity,
    is_adjacent,
    load_board,
    reset_board,
    swap_tiles,
    tile_at,
    tile_grid,
)

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


class BoardSystem:
    """Owns the board entity and turns clicks and swap requests into validated swaps."""

    def __init__(
        self,
        world: World,
        event_bus: EventBus,
        rows: int | None = None,
        cols: int | None = None,
        tile_types: int | None = None,
    ):
        self.world = world
        self.event_bus = event_bus
        config = getattr(world, "config", None)
        rows = rows or (config.grid_rows if config else constants.GRID_ROWS)
        cols = cols or (config.grid_cols if config else constants.GRID_COLS)
        tile_types = tile_types or (config.tile_types if config else constants.TILE_TYPES)
        try:
            self.board_entity = get_board_entity(world)
        except RuntimeError:
            self.board_entity = create_board(world, rows, cols, tile_types)
        self.selected: Optional[Position] = None
        self.event_bus.subscribe(EVENT_TILE_CLICK, self.on_tile_click)
        self.event_bus.subscribe(EVENT_TILE_SWAP_REQUEST, self.on_swap_request)
        if not tile_grid(world):
            generate_initial_board(world)

    @property
    def board(self) -> Board:
        return self.world.component_for_entity(self.board_entity, Board)

    def on_tile_click(self, sender, **kwargs):
        row = kwargs.get("row")
        col = kwargs.get("col")
        if row is None or col is None or not self._accepting_input():
            return
        if tile_at(self.world, row, col) is None:
            return
        clicked = (row, col)
        if self.selected is None:
            self._select(clicked)
        elif self.selected == clicked:
            self._clear_selection(reason="same_tile")
        elif is_adjacent(self.selected, clicked):
            src = self.selected
            self._clear_selection(reason="swap")
            self.event_bus.emit(EVENT_TILE_SWAP_REQUEST, src=src, dst=clicked, origin="player")
        else:
            self._clear_selection(reason="reselect")
            self._select(clicked)

    def on_swap_request(self, sender, **kwargs):
        src = kwargs.get("src")
        dst = kwargs.get("dst")
        origin = kwargs.get("origin", "player")
        if not src or not dst:
            return
        src, dst = tuple(src), tuple(dst)
        reason = self._rejection_reason(src, dst)
        if reason is not None:
            logger.debug("Swap %s<->%s rejected: %s", src, dst, reason)
            self.event_bus.emit(EVENT_TILE_SWAP_INVALID, src=src, dst=dst, reason=reason)
            return
        self.event_bus.emit(EVENT_TILE_SWAP_VALID, src=src, dst=dst)
        # After the swap each cell holds the other tile, whose partner was the original occupant.
        partner_types = {src: tile_at(self.world, *src).type, dst: tile_at(self.world, *dst).type}
        swap_tiles(self.world, src, dst)
        for pos, partner_type in partner_types.items():
            tile = tile_at(self.world, *pos)
            if tile is not None and tile.special_kind is SpecialKind.COLOR_CLEAR:
                tile.color_target = partner_type
        self.event_bus.emit(EVENT_TILE_SWAP_FINALIZE, src=src, dst=dst, origin=origin)

    def reset(self, reason: str = "restart") -> None:
        self._clear_selection(reason="reset")
        reset_board(self.world)
        self.event_bus.emit(EVENT_BOARD_RESET, reason=reason)

    def load(self, data: Dict[str, Any]) -> bool:
        """Load a saved board; a malformed one is discarded and replaced by a fresh board."""
        try:
            load_board(self.world, data)
        except BoardInvariantError as exc:
            logger.warning("Discarding saved board: %s", exc)
            self.reset(reason="invalid_snapshot")
            return False
        self._clear_selection(reason="load")
        self.event_bus.emit(EVENT_BOARD_RESET, reason="restored")
        return True

    def _rejection_reason(self, src: Position, dst: Position) -> str | None:
        if not self._accepting_input():
            return "not_playing"
        if not is_adjacent(src, dst):
            return "not_adjacent"
        if tile_at(self.world, *src) is None or tile_at(self.world, *dst) is None:
            return "empty_cell"
        if not can_swap(self.world, src, dst):
            return "no_match"
        return None

    def _accepting_input(self) -> bool:
        for _, state in self.world.get_component(GameState):
            return state.status is GameStatus.PLAYING
        return True

    def _select(self, pos: Position) -> None:
        tile = tile_at(self.world, *pos)
        if tile is not None:
            tile.selected = True
        self.selected = pos
        self.event_bus.emit(EVENT_TILE_SELECTED, row=pos[0], col=pos[1])

    def _clear_selection(self, reason: str) -> None:
        prev = self.selected
        if prev is None:
            return
        self.selected = None
        tile = tile_at(self.world, *prev)
        if tile is not None:
            tile.selected = False
        self.event_bus.emit(EVENT_TILE_DESELECTED, reason=reason, prev_row=prev[0], prev_col=prev[1])
