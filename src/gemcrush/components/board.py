from dataclasses import dataclass

@dataclass(slots=True)
class Board:
    """Board dimensions and mode flags stored on the single board entity.

    simulation_mode: True on lookahead clones. Suppresses special-tile creation
    and presentation state so the same resolution path runs synchronously.
    """
    rows: int
    cols: int
    tile_types: int = 6
    simulation_mode: bool = False
    last_move_score: int = 0
