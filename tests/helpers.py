from __future__ import annotations

import random
from typing import List, Optional, Sequence

from esper import World

from gemcrush.components.board import Board
from gemcrush.config import GameConfig
from gemcrush.systems.board_ops import fill_from_types, serialize_board
from gemcrush.world import create_world


class ConstantRandom(random.Random):
    """RNG whose integer draws always return the same value, so refills repeat forever."""

    def __init__(self, value: int = 1):
        self.value = value
        super().__init__(0)

    def randint(self, a, b):
        return self.value

    def choice(self, seq):
        return seq[0]

    def __reduce__(self):
        return self.__class__, (self.value,)


def background(rows: int, cols: int) -> List[List[int]]:
    """Types 1-4 laid out so no run of three exists and no swap creates one."""
    return [[(c + 2 * r) % 4 + 1 for c in range(cols)] for r in range(rows)]


def make_world(
    layout: Sequence[Sequence[Optional[int]]],
    *,
    tile_types: int = 6,
    rng: random.Random | None = None,
    simulation_mode: bool = False,
) -> World:
    rows = len(layout)
    cols = len(layout[0]) if rows else 0
    config = GameConfig(grid_rows=rows, grid_cols=cols, tile_types=tile_types)
    world = create_world(config, rng=rng or random.Random(7), populate=False)
    for _, board in world.get_component(Board):
        board.simulation_mode = simulation_mode
    fill_from_types(world, layout)
    return world


def types_of(world: World) -> List[List[Optional[int]]]:
    return [
        [cell["type"] if cell is not None else None for cell in row]
        for row in serialize_board(world)["tiles"]
    ]


def cascade_board() -> List[List[int]]:
    """4x4 board where swapping (0,2)<->(1,2) completes a row of four 5s."""
    layout = background(4, 4)
    layout[0] = [5, 5, 6, 5]
    layout[1][2] = 5
    return layout
