from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from esper import World

from gemcrush.components.board import Board
from gemcrush.components.tile import Tile
from gemcrush.systems.board_ops import Move, find_all_possible_moves, find_matches, swapped

logger = logging.getLogger(__name__)

Position = Tuple[int, int]
Matrix = List[List[int]]

# Suggestions for moves that merely create shapes need at least this much value.
POTENTIAL_PATTERN_THRESHOLD = 20
NEAR_PATTERN_DISTANCE = 2

DEFAULT_TEMPLATES: Tuple[Tuple[str, Matrix, int], ...] = (
    ("horizontal_3", [[1, 1, 1]], 10),
    ("vertical_3", [[1], [1], [1]], 10),
    ("horizontal_4", [[1, 1, 1, 1]], 25),
    ("vertical_4", [[1], [1], [1], [1]], 25),
    ("t_shape_1", [[0, 1, 0], [1, 1, 1]], 50),
    ("t_shape_2", [[1, 0], [1, 1], [1, 0]], 50),
    ("l_shape_1", [[1, 1], [1, 0], [1, 0]], 30),
    ("l_shape_2", [[1, 1, 1], [1, 0, 0]], 30),
    ("cross", [[0, 1, 0], [1, 1, 1], [0, 1, 0]], 75),
    ("square_2x2", [[1, 1], [1, 1]], 40),
)


def rotate(matrix: Matrix) -> Matrix:
    """Rotate a 0/1 template 90 degrees clockwise."""
    rows, cols = len(matrix), len(matrix[0])
    rotated = [[0] * rows for _ in range(cols)]
    for i in range(rows):
        for j in range(cols):
            rotated[j][rows - 1 - i] = matrix[i][j]
    return rotated


def rotations(matrix: Matrix) -> List[Matrix]:
    result = [matrix]
    current = matrix
    for _ in range(3):
        current = rotate(current)
        result.append(current)
    return result


@dataclass(slots=True)
class PatternTemplate:
    name: str
    matrix: Matrix
    value: int
    rotations: List[Matrix] = field(default_factory=list)


@dataclass(slots=True)
class PatternMatch:
    name: str
    rotation: int
    position: Position
    value: int
    tile_type: int
    cells: List[Position]

    def key(self) -> Tuple[str, Tuple[Position, ...]]:
        return self.name, tuple(sorted(self.cells))


@dataclass(slots=True)
class PatternSuggestion:
    move: Move
    pattern_value: int
    kind: str
    pattern: Optional[str] = None


class PatternRecognizer:
    """Finds same-type shape templates (in all four rotations) on the board."""

    def __init__(self, templates: Sequence[Tuple[str, Matrix, int]] = DEFAULT_TEMPLATES):
        self.templates: Dict[str, PatternTemplate] = {}
        for name, matrix, value in templates:
            self.add_template(name, matrix, value)

    def add_template(self, name: str, matrix: Matrix, value: int) -> None:
        self.templates[name] = PatternTemplate(name=name, matrix=matrix, value=value, rotations=rotations(matrix))

    def recognize_patterns(self, world: World) -> List[PatternMatch]:
        """Every template placement whose cells share one type, best value first."""
        rows, cols = _dims(world)
        types = {(tile.row, tile.col): tile.type for _, tile in world.get_component(Tile)}
        found: List[PatternMatch] = []
        for row in range(rows):
            for col in range(cols):
                for template in self.templates.values():
                    for index, matrix in enumerate(template.rotations):
                        match = _match_template(types, rows, cols, row, col, matrix)
                        if match is None:
                            continue
                        tile_type, cells = match
                        found.append(
                            PatternMatch(
                                name=template.name,
                                rotation=index,
                                position=(row, col),
                                value=template.value,
                                tile_type=tile_type,
                                cells=cells,
                            )
                        )
        unique: Dict[Tuple[str, Tuple[Position, ...]], PatternMatch] = {}
        for match in found:
            key = match.key()
            if key not in unique or unique[key].value < match.value:
                unique[key] = match
        return sorted(unique.values(), key=lambda m: m.value, reverse=True)

    def evaluate_move_for_patterns(self, world: World, move: Move) -> int:
        """Total template value present on the board after the swap."""
        with swapped(world, move.first, move.second) as did_swap:
            if not did_swap:
                return 0
            return sum(match.value for match in self.recognize_patterns(world))

    def analyze_board(self, world: World) -> List[PatternSuggestion]:
        suggestions: List[PatternSuggestion] = []
        moves = find_all_possible_moves(world)
        active = set(find_matches(world))
        for pattern in self.recognize_patterns(world):
            if any(cell in active for cell in pattern.cells):
                continue
            for move in moves:
                if _near(move, pattern.cells):
                    suggestions.append(
                        PatternSuggestion(
                            move=move,
                            pattern_value=pattern.value,
                            kind="activate_pattern",
                            pattern=pattern.name,
                        )
                    )
        for move in moves:
            value = self.evaluate_move_for_patterns(world, move)
            if value > POTENTIAL_PATTERN_THRESHOLD:
                suggestions.append(PatternSuggestion(move=move, pattern_value=value, kind="potential_pattern"))
        suggestions.sort(key=lambda s: s.pattern_value, reverse=True)
        logger.debug("Pattern analysis produced %d suggestions", len(suggestions))
        return suggestions

    def stats(self) -> Dict[str, object]:
        return {
            "total_patterns": len(self.templates),
            "patterns": {name: template.value for name, template in self.templates.items()},
        }

    def export_templates(self) -> str:
        return json.dumps(
            {name: {"matrix": t.matrix, "value": t.value} for name, t in self.templates.items()}
        )

    def import_templates(self, payload: str) -> int:
        """Replace templates from an export_templates payload; returns how many were loaded."""
        data = json.loads(payload)
        self.templates.clear()
        for name, entry in data.items():
            self.add_template(name, entry["matrix"], int(entry["value"]))
        return len(self.templates)


def _dims(world: World) -> Tuple[int, int]:
    for _, board in world.get_component(Board):
        return board.rows, board.cols
    return 0, 0


def _match_template(
    types: Dict[Position, int],
    rows: int,
    cols: int,
    start_row: int,
    start_col: int,
    matrix: Matrix,
) -> Tuple[int, List[Position]] | None:
    if start_row + len(matrix) > rows or start_col + len(matrix[0]) > cols:
        return None
    reference: Optional[int] = None
    cells: List[Position] = []
    for dr, line in enumerate(matrix):
        for dc, flag in enumerate(line):
            if not flag:
                continue
            pos = (start_row + dr, start_col + dc)
            tile_type = types.get(pos)
            if tile_type is None:
                return None
            if reference is None:
                reference = tile_type
            elif tile_type != reference:
                return None
            cells.append(pos)
    if reference is None:
        return None
    return reference, cells


def _near(move: Move, cells: Sequence[Position]) -> bool:
    for row, col in cells:
        for end in move.positions:
            if abs(end[0] - row) + abs(end[1] - col) <= NEAR_PATTERN_DISTANCE:
                return True
    return False
