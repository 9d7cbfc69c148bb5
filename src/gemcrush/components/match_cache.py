from dataclasses import dataclass
from typing import List, Optional, Tuple

@dataclass(slots=True)
class MatchCache:
    """Last find_matches result, valid only while board_hash is unchanged."""
    board_hash: Optional[str] = None
    matches: Optional[List[Tuple[int, int]]] = None

    def invalidate(self) -> None:
        self.board_hash = None
        self.matches = None
