from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from gemcrush.errors import BoardInvariantError


class SpecialKind(Enum):
    """What a special tile clears when it is activated."""
    NONE = "none"
    ROW_CLEAR = "row_clear"
    BOMB = "bomb"
    COLOR_CLEAR = "color_clear"


@dataclass(slots=True)
class Tile:
    """One occupied board cell.

    row/col always mirror the slot the tile occupies; swaps and gravity move
    the coordinates, never the type. selected/matched/falling/spawn_offset are
    presentation flags the engine toggles for whoever draws the board.
    """
    row: int
    col: int
    type: int
    special_kind: SpecialKind = SpecialKind.NONE
    selected: bool = False
    matched: bool = False
    falling: bool = False
    spawn_offset: int = 0
    color_target: Optional[int] = None

    @property
    def is_special(self) -> bool:
        return self.special_kind is not SpecialKind.NONE

    @property
    def position(self) -> tuple[int, int]:
        return self.row, self.col

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "row": self.row,
            "col": self.col,
            "is_special": self.is_special,
            "special_kind": self.special_kind.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tile":
        try:
            row = int(data["row"])
            col = int(data["col"])
            tile_type = int(data["type"])
            kind = SpecialKind(data.get("special_kind") or SpecialKind.NONE.value)
        except (KeyError, TypeError, ValueError) as exc:
            raise BoardInvariantError(f"Malformed tile payload: {data!r}") from exc
        if data.get("is_special") and kind is SpecialKind.NONE:
            # Older saves only carried the flag; treat them as the weakest special.
            kind = SpecialKind.ROW_CLEAR
        return cls(row=row, col=col, type=tile_type, special_kind=kind)
