import random

from esper import World

from gemcrush.components.game_state import GameState
from gemcrush.config import GameConfig
from gemcrush.systems.board_ops import create_board, generate_initial_board


def create_world(
    config: GameConfig | None = None,
    *,
    rng: random.Random | None = None,
    populate: bool = True,
) -> World:
    """Build the application context: a world carrying its RNG, config, session and board."""
    config = config or GameConfig()
    world = World()
    setattr(world, "random", rng or random.Random())
    setattr(world, "config", config)

    world.create_entity(
        GameState(moves=config.initial_moves, target_score=config.target_score)
    )
    create_board(world, config.grid_rows, config.grid_cols, config.tile_types)
    if populate:
        generate_initial_board(world)
    return world
