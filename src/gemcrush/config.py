"""Tunable settings shared by the board engine, the advisors and the session."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict

from gemcrush import constants


@dataclass(slots=True)
class SearchWeights:
    """Leaf evaluation weights for the minimax solver."""
    score: float = 1.0
    possible_moves: float = 0.3
    special_tiles: float = 2.0
    center_control: float = 0.2


@dataclass(slots=True)
class HintWeights:
    """Greedy hint weights: how much each move feature is worth."""
    match_size: float = 10
    cascade_potential: float = 5
    cascade_actual: float = 25
    special_bonus: float = 15
    position: float = 2


DIFFICULTY_DEPTHS: Dict[str, int] = {"easy": 2, "medium": 3, "hard": 10}


@dataclass
class GameConfig:
    grid_rows: int = constants.GRID_ROWS
    grid_cols: int = constants.GRID_COLS
    tile_types: int = constants.TILE_TYPES
    initial_moves: int = constants.INITIAL_MOVES
    target_score: int = constants.TARGET_SCORE
    enable_ai: bool = True
    ai_difficulty: str = "medium"
    ai_depth: int = constants.DEFAULT_SEARCH_DEPTH
    time_budget_ms: float = constants.TIME_BUDGET_MS
    max_nodes: int = constants.MAX_NODES
    max_table_size: int = constants.MAX_TABLE_SIZE
    cascade_prediction: bool = False
    search_weights: SearchWeights = field(default_factory=SearchWeights)
    hint_weights: HintWeights = field(default_factory=HintWeights)

    def set_ai_difficulty(self, difficulty: str) -> int:
        self.ai_difficulty = difficulty
        self.ai_depth = DIFFICULTY_DEPTHS.get(difficulty, constants.DEFAULT_SEARCH_DEPTH)
        return self.ai_depth

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "GameConfig":
        """Build a config from saved data, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        search = values.pop("search_weights", None)
        hint = values.pop("hint_weights", None)
        config = cls(**values)
        if isinstance(search, dict):
            config.search_weights = SearchWeights(
                **{k: v for k, v in search.items() if k in SearchWeights.__dataclass_fields__}
            )
        if isinstance(hint, dict):
            config.hint_weights = HintWeights(
                **{k: v for k, v in hint.items() if k in HintWeights.__dataclass_fields__}
            )
        return config
