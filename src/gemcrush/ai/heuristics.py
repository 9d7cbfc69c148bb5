"""Stateless move and board scoring primitives.

Shared by the greedy hint evaluator, ``board_ops.evaluate_move`` and the
minimax leaf evaluation. Functions here only read the world; none of them
swap, clone or resolve anything.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Tuple

from esper import World

from gemcrush import constants
from gemcrush.components.board import Board
from gemcrush.components.tile import Tile
from gemcrush.config import HintWeights

Position = Tuple[int, int]

_DEFAULT_HINT_WEIGHTS = HintWeights()
_NEIGHBOURS = ((-1, 0), (1, 0), (0, -1), (0, 1))
_L_ARMS = (
    ((0, 1), (1, 0)),
    ((0, -1), (1, 0)),
    ((0, 1), (-1, 0)),
    ((0, -1), (-1, 0)),
)


def _dims(world: World) -> Tuple[int, int]:
    for _, board in world.get_component(Board):
        return board.rows, board.cols
    return 0, 0


def _types(world: World) -> Dict[Position, int]:
    return {(tile.row, tile.col): tile.type for _, tile in world.get_component(Tile)}


def match_size_score(match_count: int, weights: HintWeights | None = None) -> float:
    weights = weights or _DEFAULT_HINT_WEIGHTS
    return match_count * weights.match_size


def special_bonus(group_sizes: Iterable[int], weights: HintWeights | None = None) -> float:
    """Bonus for every matched group large enough to create a special tile."""
    weights = weights or _DEFAULT_HINT_WEIGHTS
    return sum(weights.special_bonus for size in group_sizes if size >= constants.ROW_CLEAR_SIZE)


def estimate_cascade_potential(
    world: World,
    cleared: Iterable[Position] = (),
    types: Dict[Position, int] | None = None,
) -> int:
    """Cheap cascade estimate without running gravity.

    Walks each column bottom-to-top; a tile with ``k`` empty cells below it
    is checked at its landing row ``row + k`` for same-type neighbours, each
    worth a fixed bonus. Positions in ``cleared`` count as already vacated.
    ``types`` replaces the world's own tiles, e.g. with a trial swap applied.
    """
    rows, cols = _dims(world)
    vacated = set(cleared)
    source = types if types is not None else _types(world)
    occupied = {pos: tile_type for pos, tile_type in source.items() if pos not in vacated}
    potential = 0
    for col in range(cols):
        empty = 0
        for row in range(rows - 1, -1, -1):
            tile_type = occupied.get((row, col))
            if tile_type is None:
                empty += 1
                continue
            if empty == 0:
                continue
            landing = row + empty
            for dr, dc in _NEIGHBOURS:
                neighbour = (landing + dr, col + dc)
                if neighbour == (row, col):
                    continue
                if occupied.get(neighbour) == tile_type:
                    potential += constants.CASCADE_NEIGHBOUR_BONUS
    return potential


def exact_cascade_score(result: Any, weights: HintWeights | None = None) -> float:
    """Score a simulated cascade (anything with cascade_count and specials_created)."""
    weights = weights or _DEFAULT_HINT_WEIGHTS
    return result.cascade_count * weights.cascade_actual + result.specials_created * weights.special_bonus


def position_value(move: Any, rows: int = constants.GRID_ROWS, cols: int = constants.GRID_COLS) -> int:
    """Centrality of a swap: 16 - d1 - d2 on the standard 8x8 board."""
    center = (rows // 2, cols // 2)
    reach = (rows + cols) // 2
    d1 = abs(move.first[0] - center[0]) + abs(move.first[1] - center[1])
    d2 = abs(move.second[0] - center[0]) + abs(move.second[1] - center[1])
    return 2 * reach - d1 - d2


def confidence(best_score: float, choices: int) -> float:
    """Display-only confidence in a suggestion, 0..100."""
    if choices <= 0:
        return 0
    base = min(best_score / 50, 1) * 100
    choice = max(0, 100 - (choices - 1) * 5)
    return min(base * 0.7 + choice * 0.3, 100)


def count_special_tiles(world: World) -> int:
    return sum(1 for _, tile in world.get_component(Tile) if tile.is_special)


def center_control(world: World) -> int:
    rows, cols = _dims(world)
    center_row, center_col = rows // 2, cols // 2
    radius = constants.CENTER_RADIUS
    value = 0
    for _, tile in world.get_component(Tile):
        distance = abs(tile.row - center_row) + abs(tile.col - center_col)
        if distance <= radius:
            value += (radius - distance + 1) * constants.CENTER_CELL_VALUE
    return value


def is_t_shape(types: Dict[Position, int], row: int, col: int) -> bool:
    tile_type = types.get((row, col))
    if tile_type is None:
        return False
    if types.get((row - 1, col)) != tile_type or types.get((row + 1, col)) != tile_type:
        return False
    return types.get((row, col - 1)) == tile_type or types.get((row, col + 1)) == tile_type


def is_l_shape(types: Dict[Position, int], row: int, col: int) -> bool:
    tile_type = types.get((row, col))
    if tile_type is None:
        return False
    for (r1, c1), (r2, c2) in _L_ARMS:
        if types.get((row + r1, col + c1)) == tile_type and types.get((row + r2, col + c2)) == tile_type:
            return True
    return False


def is_square(types: Dict[Position, int], row: int, col: int) -> bool:
    tile_type = types.get((row, col))
    if tile_type is None:
        return False
    return all(
        types.get(pos) == tile_type for pos in ((row, col + 1), (row + 1, col), (row + 1, col + 1))
    )


def pattern_score(world: World) -> int:
    """Flat awards for T, L and 2x2 same-type shapes anchored at each tile."""
    types = _types(world)
    score = 0
    for row, col in types:
        if is_t_shape(types, row, col):
            score += constants.T_SHAPE_BONUS
        if is_l_shape(types, row, col):
            score += constants.L_SHAPE_BONUS
        if is_square(types, row, col):
            score += constants.SQUARE_BONUS
    return score
