"""Session resource describing score, remaining moves and game status."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict


class GameStatus(Enum):
    PLAYING = "playing"
    WON = "won"
    GAME_OVER = "game_over"
    NO_MOVES = "no_moves"


@dataclass
class GameState:
    """Singleton component holding the running session."""
    score: int = 0
    moves: int = 30
    level: int = 1
    target_score: int = 1000
    status: GameStatus = GameStatus.PLAYING
    session: Dict[str, int] = field(default_factory=lambda: {
        "total_score": 0,
        "total_moves": 0,
        "hints_used": 0,
        "auto_solves_used": 0,
        "cascades_triggered": 0,
    })
