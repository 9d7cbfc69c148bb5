from __future__ import annotations

import math
import random
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from esper import World

from gemcrush import constants
from gemcrush.ai.heuristics import estimate_cascade_potential
from gemcrush.components.board import Board
from gemcrush.components.match_cache import MatchCache
from gemcrush.components.simulation_stats import SimulationStats
from gemcrush.components.tile import SpecialKind, Tile
from gemcrush.errors import BoardInvariantError

Position = Tuple[int, int]
TypeEntry = Tuple[int, int, int]

_SPECIAL_CODES = {
    SpecialKind.NONE: "",
    SpecialKind.ROW_CLEAR: "r",
    SpecialKind.BOMB: "b",
    SpecialKind.COLOR_CLEAR: "c",
}


@dataclass(slots=True)
class Move:
    """An adjacent pair of cells to swap, with its evaluation score."""
    first: Position
    second: Position
    score: float = 0

    @property
    def positions(self) -> Tuple[Position, Position]:
        return self.first, self.second

    def same_pair(self, other: "Move") -> bool:
        return {self.first, self.second} == {other.first, other.second}

    def to_dict(self) -> Dict[str, Any]:
        return {"first": list(self.first), "second": list(self.second), "score": self.score}


@dataclass(slots=True)
class GravityMove:
    source: Position
    target: Position
    type: int


@dataclass(slots=True)
class GravityReport:
    moved: bool = False
    falls: List[GravityMove] = field(default_factory=list)
    spawned: List[Position] = field(default_factory=list)


@dataclass(slots=True)
class MatchResolution:
    score: int = 0
    removed: List[Position] = field(default_factory=list)
    removed_types: List[TypeEntry] = field(default_factory=list)
    promoted: List[Tuple[Position, SpecialKind]] = field(default_factory=list)
    group_sizes: List[int] = field(default_factory=list)

    @property
    def large_groups(self) -> int:
        """Groups big enough to earn a special tile (created or not)."""
        return sum(1 for size in self.group_sizes if size >= constants.ROW_CLEAR_SIZE)


# ---------------------------------------------------------------------------
# Board entity access
# ---------------------------------------------------------------------------

def create_board(
    world: World,
    rows: int,
    cols: int,
    tile_types: int = constants.TILE_TYPES,
    *,
    simulation_mode: bool = False,
) -> int:
    """Register the board entity. Tiles are added by generate_initial_board or load_board."""
    return world.create_entity(
        Board(rows=rows, cols=cols, tile_types=tile_types, simulation_mode=simulation_mode),
        MatchCache(),
        SimulationStats(),
    )


def get_board_entity(world: World) -> int:
    for entity, _ in world.get_component(Board):
        return entity
    raise RuntimeError("Board entity not found")


def get_board(world: World) -> Board:
    for _, board in world.get_component(Board):
        return board
    raise RuntimeError("Board entity not found")


def board_dimensions(world: World) -> Tuple[int, int] | None:
    for _, board in world.get_component(Board):
        return board.rows, board.cols
    return None


def get_simulation_stats(world: World) -> SimulationStats:
    entity = get_board_entity(world)
    try:
        return world.component_for_entity(entity, SimulationStats)
    except KeyError:
        stats = SimulationStats()
        world.add_component(entity, stats)
        return stats


def _match_cache(world: World) -> MatchCache:
    entity = get_board_entity(world)
    try:
        return world.component_for_entity(entity, MatchCache)
    except KeyError:
        cache = MatchCache()
        world.add_component(entity, cache)
        return cache


def invalidate_match_cache(world: World) -> None:
    for _, cache in world.get_component(MatchCache):
        cache.invalidate()


def world_rng(world: World, rng: random.Random | None = None) -> random.Random:
    if rng is not None:
        return rng
    candidate = getattr(world, "random", None)
    if isinstance(candidate, random.Random):
        return candidate
    fresh = random.Random()
    setattr(world, "random", fresh)
    return fresh


def tile_grid(world: World) -> Dict[Position, Tile]:
    """Mapping of occupied positions to their tiles."""
    return {(tile.row, tile.col): tile for _, tile in world.get_component(Tile)}


def entity_grid(world: World) -> Dict[Position, Tuple[int, Tile]]:
    return {(tile.row, tile.col): (entity, tile) for entity, tile in world.get_component(Tile)}


def tile_at(world: World, row: int, col: int) -> Tile | None:
    for _, tile in world.get_component(Tile):
        if tile.row == row and tile.col == col:
            return tile
    return None


def _hash_cells(cells: Dict[Position, Tile], rows: int, cols: int) -> str:
    parts: List[str] = []
    for row in range(rows):
        for col in range(cols):
            tile = cells.get((row, col))
            if tile is None:
                parts.append("0")
            else:
                parts.append(f"{tile.type}{_SPECIAL_CODES[tile.special_kind]}")
    return ".".join(parts)


def board_hash(world: World) -> str:
    """Row-major type + special-kind fingerprint of the grid."""
    dims = board_dimensions(world)
    if not dims:
        return ""
    return _hash_cells(tile_grid(world), *dims)


def _remove_all_tiles(world: World) -> None:
    for entity in [entity for entity, _ in world.get_component(Tile)]:
        world.delete_entity(entity, immediate=True)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def would_create_match(types: Sequence[Sequence[Optional[int]]], row: int, col: int, tile_type: int) -> bool:
    """Return True if placing tile_type at (row, col) completes a run of three."""
    horizontal = 1
    c = col - 1
    while c >= 0 and types[row][c] == tile_type:
        horizontal += 1
        c -= 1
    c = col + 1
    while c < len(types[row]) and types[row][c] == tile_type:
        horizontal += 1
        c += 1
    if horizontal >= 3:
        return True
    vertical = 1
    r = row - 1
    while r >= 0 and types[r][col] == tile_type:
        vertical += 1
        r -= 1
    r = row + 1
    while r < len(types) and types[r][col] == tile_type:
        vertical += 1
        r += 1
    return vertical >= 3


def generate_initial_board(world: World, rng: random.Random | None = None) -> List[Position]:
    """Fill the board with fresh tiles that form no initial matches."""
    board = get_board(world)
    rng = world_rng(world, rng)
    _remove_all_tiles(world)
    types: List[List[Optional[int]]] = [[None] * board.cols for _ in range(board.rows)]
    placed: List[Position] = []
    for row in range(board.rows):
        for col in range(board.cols):
            attempts = 0
            while True:
                tile_type = rng.randint(1, board.tile_types)
                attempts += 1
                if attempts > constants.MAX_FILL_ATTEMPTS:
                    tile_type = constants.DEFAULT_TILE_TYPE
                    break
                if not would_create_match(types, row, col, tile_type):
                    break
            types[row][col] = tile_type
            world.create_entity(Tile(row=row, col=col, type=tile_type))
            placed.append((row, col))
    invalidate_match_cache(world)
    return placed


def reset_board(world: World, rng: random.Random | None = None) -> List[Position]:
    board = get_board(world)
    board.last_move_score = 0
    return generate_initial_board(world, rng)


def fill_from_types(world: World, layout: Sequence[Sequence[Optional[int]]]) -> None:
    """Replace every tile with the given row-major type layout (None leaves a hole)."""
    board = get_board(world)
    if len(layout) != board.rows or any(len(row) != board.cols for row in layout):
        raise BoardInvariantError(
            f"Layout shape does not match a {board.rows}x{board.cols} board"
        )
    _remove_all_tiles(world)
    for row, values in enumerate(layout):
        for col, tile_type in enumerate(values):
            if tile_type is None:
                continue
            world.create_entity(Tile(row=row, col=col, type=int(tile_type)))
    invalidate_match_cache(world)


# ---------------------------------------------------------------------------
# Match detection
# ---------------------------------------------------------------------------

def _collect_runs(line: Sequence[Tuple[Position, Optional[Tile]]], found: Dict[Position, None]) -> None:
    run: List[Position] = []
    run_type: Optional[int] = None
    has_special = False
    for pos, tile in list(line) + [((-1, -1), None)]:
        tile_type = tile.type if tile is not None else None
        if tile is not None and tile_type == run_type:
            run.append(pos)
            has_special = has_special or tile.is_special
            continue
        if len(run) >= 3 and not has_special:
            for matched in run:
                found.setdefault(matched, None)
        run = [pos] if tile is not None else []
        run_type = tile_type
        has_special = tile.is_special if tile is not None else False


def _scan_matches(cells: Dict[Position, Tile], rows: int, cols: int) -> List[Position]:
    found: Dict[Position, None] = {}
    for r in range(rows):
        _collect_runs([((r, c), cells.get((r, c))) for c in range(cols)], found)
    for c in range(cols):
        _collect_runs([((r, c), cells.get((r, c))) for r in range(rows)], found)
    return list(found)


def find_matches(world: World) -> List[Position]:
    """Positions belonging to any run of >= 3 same-type tiles with no special among them.

    Rows are scanned before columns; a cell shared by two runs is listed once.
    """
    dims = board_dimensions(world)
    if not dims:
        return []
    rows, cols = dims
    if rows <= 0 or cols <= 0:
        return []
    cells = tile_grid(world)
    current_hash = _hash_cells(cells, rows, cols)
    cache = _match_cache(world)
    if cache.board_hash == current_hash and cache.matches is not None:
        return list(cache.matches)
    matches = _scan_matches(cells, rows, cols)
    cache.board_hash = current_hash
    cache.matches = matches
    return list(matches)


def _has_line_match(cells: Dict[Position, Tile], pos: Position) -> bool:
    """True if pos sits in a horizontal or vertical run of >= 3 with no special in it."""
    tile = cells.get(pos)
    if tile is None:
        return False
    row, col = pos
    for dr, dc in ((0, 1), (1, 0)):
        length = 1
        has_special = tile.is_special
        for step in (-1, 1):
            r, c = row + dr * step, col + dc * step
            other = cells.get((r, c))
            while other is not None and other.type == tile.type:
                length += 1
                has_special = has_special or other.is_special
                r, c = r + dr * step, c + dc * step
                other = cells.get((r, c))
        if length >= 3 and not has_special:
            return True
    return False


def group_matches(world: World, matches: Sequence[Position]) -> List[List[Position]]:
    """Split matched positions into 4-connected same-type groups (discovery order)."""
    cells = tile_grid(world)
    match_set = set(matches)
    visited: set[Position] = set()
    groups: List[List[Position]] = []
    for start in matches:
        if start in visited:
            continue
        start_tile = cells.get(start)
        group_type = start_tile.type if start_tile is not None else None
        group: List[Position] = []
        queue = deque([start])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            group.append(current)
            row, col = current
            for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1)):
                neighbour = (row + dr, col + dc)
                if neighbour in visited or neighbour not in match_set:
                    continue
                tile = cells.get(neighbour)
                if tile is not None and tile.type == group_type:
                    queue.append(neighbour)
        if group:
            groups.append(group)
    return groups


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def match_center(group: Sequence[Position]) -> Position | None:
    """Group member closest (Manhattan) to the rounded centroid; ties keep the earlier one."""
    if not group:
        return None
    avg_row = _round_half_up(sum(pos[0] for pos in group) / len(group))
    avg_col = _round_half_up(sum(pos[1] for pos in group) / len(group))
    closest = group[0]
    best = math.inf
    for pos in group:
        distance = abs(pos[0] - avg_row) + abs(pos[1] - avg_col)
        if distance < best:
            best = distance
            closest = pos
    return closest


def special_kind_for_size(size: int) -> SpecialKind:
    if size >= constants.COLOR_CLEAR_SIZE:
        return SpecialKind.COLOR_CLEAR
    if size == constants.BOMB_SIZE:
        return SpecialKind.BOMB
    if size == constants.ROW_CLEAR_SIZE:
        return SpecialKind.ROW_CLEAR
    return SpecialKind.NONE


def combo_multiplier(count: int) -> float:
    return min(count / 3, constants.MAX_COMBO_MULTIPLIER)


def tile_score(tile: Tile, combo_size: int) -> int:
    base = constants.BASE_TILE_SCORE
    if tile.is_special:
        base *= constants.SPECIAL_TILE_MULTIPLIER
    return math.floor(base * combo_multiplier(combo_size))


# ---------------------------------------------------------------------------
# Resolution & gravity
# ---------------------------------------------------------------------------

def _clear(world: World, positions: Sequence[Position], resolution: MatchResolution) -> None:
    cells = entity_grid(world)
    present = [pos for pos in positions if pos in cells]
    combo = len(present)
    for pos in present:
        entity, tile = cells[pos]
        tile.matched = True
        resolution.score += tile_score(tile, combo)
        resolution.removed.append(pos)
        resolution.removed_types.append((pos[0], pos[1], tile.type))
        world.delete_entity(entity, immediate=True)


def resolve_match_groups(world: World, matches: Sequence[Position]) -> MatchResolution:
    """Promote one tile per group of >= 4 (live play only), score and remove the rest."""
    board = get_board(world)
    resolution = MatchResolution()
    removal: List[Position] = list(dict.fromkeys(matches))
    if not removal:
        return resolution
    groups = group_matches(world, removal)
    resolution.group_sizes = [len(group) for group in groups]
    if not board.simulation_mode:
        cells = tile_grid(world)
        for group in groups:
            kind = special_kind_for_size(len(group))
            if kind is SpecialKind.NONE:
                continue
            center = match_center(group)
            tile = cells.get(center) if center is not None else None
            if tile is None:
                continue
            tile.special_kind = kind
            tile.matched = False
            resolution.promoted.append((center, kind))
            removal.remove(center)
    _clear(world, removal, resolution)
    board.last_move_score = resolution.score
    invalidate_match_cache(world)
    return resolution


def resolve_matches(world: World, matches: Sequence[Position]) -> int:
    return resolve_match_groups(world, matches).score


def clear_tiles(world: World, positions: Sequence[Position]) -> MatchResolution:
    """Remove arbitrary tiles (special activation), scoring them like a match."""
    resolution = MatchResolution()
    _clear(world, list(dict.fromkeys(positions)), resolution)
    if resolution.removed:
        get_board(world).last_move_score = resolution.score
        invalidate_match_cache(world)
    return resolution


def settle_board(world: World, rng: random.Random | None = None) -> GravityReport:
    """Compact every column downwards and drop fresh tiles into the gaps."""
    board = get_board(world)
    rng = world_rng(world, rng)
    report = GravityReport()
    columns: Dict[int, List[Tile]] = {col: [] for col in range(board.cols)}
    for _, tile in world.get_component(Tile):
        if tile.col in columns:
            columns[tile.col].append(tile)
    for col in range(board.cols):
        column = sorted(columns[col], key=lambda t: t.row, reverse=True)
        for index, tile in enumerate(column):
            new_row = board.rows - 1 - index
            if tile.row != new_row:
                report.falls.append(GravityMove(source=(tile.row, col), target=(new_row, col), type=tile.type))
                tile.row = new_row
                tile.falling = not board.simulation_mode
                report.moved = True
        empties = board.rows - len(column)
        for row in range(empties):
            tile = Tile(row=row, col=col, type=rng.randint(1, board.tile_types))
            if not board.simulation_mode:
                tile.falling = True
                tile.spawn_offset = empties
            world.create_entity(tile)
            report.spawned.append((row, col))
            report.moved = True
    if report.moved:
        invalidate_match_cache(world)
    return report


def apply_gravity(world: World, rng: random.Random | None = None) -> bool:
    return settle_board(world, rng).moved


# ---------------------------------------------------------------------------
# Swaps & move generation
# ---------------------------------------------------------------------------

def is_adjacent(a: Position, b: Position) -> bool:
    return abs(a[0] - b[0]) + abs(a[1] - b[1]) == 1


def swap_tiles(world: World, a: Position, b: Position) -> bool:
    """Exchange the coordinates of the tiles at a and b (no presentation)."""
    cells = tile_grid(world)
    tile_a = cells.get(a)
    tile_b = cells.get(b)
    if tile_a is None or tile_b is None:
        return False
    tile_a.row, tile_a.col, tile_b.row, tile_b.col = tile_b.row, tile_b.col, tile_a.row, tile_a.col
    invalidate_match_cache(world)
    return True


@contextmanager
def swapped(world: World, a: Position, b: Position) -> Iterator[bool]:
    """Swap a and b for the duration of the block; always swaps back."""
    did_swap = swap_tiles(world, a, b)
    try:
        yield did_swap
    finally:
        if did_swap:
            swap_tiles(world, a, b)


def _swapped_cells(cells: Dict[Position, Tile], a: Position, b: Position) -> Dict[Position, Tile]:
    trial = cells.copy()
    trial[a], trial[b] = trial[b], trial[a]
    return trial


def predict_swap_creates_match(cells: Dict[Position, Tile], a: Position, b: Position) -> bool:
    """Return True if swapping a/b in the position map forms a run through either cell."""
    if a not in cells or b not in cells:
        return False
    trial = _swapped_cells(cells, a, b)
    return _has_line_match(trial, a) or _has_line_match(trial, b)


def can_swap(
    world: World, a: Position, b: Position, *, cells: Dict[Position, Tile] | None = None
) -> bool:
    """Adjacent, and either tile is special or the swap forms a run through a or b.

    ``cells`` is a precomputed ``tile_grid``; enumerations pass it in so the
    world is only scanned once.
    """
    if not is_adjacent(a, b):
        return False
    cells = cells if cells is not None else tile_grid(world)
    tile_a = cells.get(a)
    tile_b = cells.get(b)
    if tile_a is None or tile_b is None:
        return False
    if tile_a.is_special or tile_b.is_special:
        return True
    return predict_swap_creates_match(cells, a, b)


def evaluate_move(
    world: World, a: Position, b: Position, *, cells: Dict[Position, Tile] | None = None
) -> int:
    """Score a swap by the matches it forms. Works on a copy of the position map."""
    dims = board_dimensions(world)
    cells = cells if cells is not None else tile_grid(world)
    if not dims or a not in cells or b not in cells:
        return 0
    trial = _swapped_cells(cells, a, b)
    matches = _scan_matches(trial, *dims)
    score = 0
    if matches:
        total = len(matches)
        score = math.floor(total * constants.BASE_TILE_SCORE * combo_multiplier(total))
        score += constants.SPECIAL_MATCH_BONUS * sum(1 for pos in matches if trial[pos].is_special)
    types = {pos: tile.type for pos, tile in trial.items()}
    score += estimate_cascade_potential(world, cleared=matches, types=types)
    return score


def _legal_pairs(world: World, cells: Dict[Position, Tile]) -> Iterator[Tuple[Position, Position]]:
    """Legal swaps in row-major order, right neighbour before the one below."""
    dims = board_dimensions(world)
    if not dims:
        return
    rows, cols = dims
    for row in range(rows):
        for col in range(cols):
            pos = (row, col)
            if pos not in cells:
                continue
            for other in ((row, col + 1), (row + 1, col)):
                if other in cells and can_swap(world, pos, other, cells=cells):
                    yield pos, other


def find_all_possible_moves(world: World) -> List[Move]:
    """Every legal swap, best first; equal scores keep row-major right-then-down order."""
    cells = tile_grid(world)
    moves = [
        Move(first=pos, second=other, score=evaluate_move(world, pos, other, cells=cells))
        for pos, other in _legal_pairs(world, cells)
    ]
    moves.sort(key=lambda move: move.score, reverse=True)
    return moves


def count_possible_moves(world: World) -> int:
    """Number of legal swaps, without scoring them."""
    return sum(1 for _ in _legal_pairs(world, tile_grid(world)))


def has_possible_moves(world: World) -> bool:
    return next(_legal_pairs(world, tile_grid(world)), None) is not None


# ---------------------------------------------------------------------------
# Special tiles
# ---------------------------------------------------------------------------

def activate_special(world: World, position: Position) -> List[Position]:
    """Positions cleared by the special at position, the special itself included."""
    dims = board_dimensions(world)
    cells = tile_grid(world)
    tile = cells.get(position)
    if not dims or tile is None or not tile.is_special:
        return []
    rows, cols = dims
    row, col = position
    affected: Dict[Position, None] = {}
    if tile.special_kind is SpecialKind.BOMB:
        radius = constants.BOMB_RADIUS
        for r in range(row - radius, row + radius + 1):
            for c in range(col - radius, col + radius + 1):
                if 0 <= r < rows and 0 <= c < cols and (r, c) in cells:
                    affected.setdefault((r, c), None)
    elif tile.special_kind is SpecialKind.ROW_CLEAR:
        for c in range(cols):
            if (row, c) in cells:
                affected.setdefault((row, c), None)
        for r in range(rows):
            if (r, col) in cells:
                affected.setdefault((r, col), None)
    elif tile.special_kind is SpecialKind.COLOR_CLEAR:
        target = tile.color_target if tile.color_target is not None else tile.type
        for pos, other in cells.items():
            if other.type == target and not other.is_special:
                affected.setdefault(pos, None)
    affected.setdefault(position, None)
    return sorted(affected)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def serialize_board(world: World) -> Dict[str, Any]:
    """Row-major snapshot: tile dicts, None for empty cells."""
    board = get_board(world)
    cells = tile_grid(world)
    tiles = []
    for row in range(board.rows):
        tiles.append([
            cells[(row, col)].to_dict() if (row, col) in cells else None for col in range(board.cols)
        ])
    return {
        "rows": board.rows,
        "cols": board.cols,
        "tile_types": board.tile_types,
        "tiles": tiles,
    }


def load_board(world: World, data: Dict[str, Any]) -> None:
    """Replace the grid with a snapshot; raises BoardInvariantError and leaves the board untouched on bad data."""
    if not isinstance(data, dict):
        raise BoardInvariantError("Board snapshot must be a mapping")
    board = get_board(world)
    try:
        rows = int(data["rows"])
        cols = int(data["cols"])
        tile_types = int(data.get("tile_types", board.tile_types))
        raw_tiles = data["tiles"]
    except (KeyError, TypeError, ValueError) as exc:
        raise BoardInvariantError("Board snapshot is missing its dimensions") from exc
    if rows <= 0 or cols <= 0 or tile_types <= 0:
        raise BoardInvariantError(f"Invalid board dimensions {rows}x{cols}")
    if not isinstance(raw_tiles, list) or len(raw_tiles) != rows:
        raise BoardInvariantError("Snapshot row count does not match its dimensions")
    tiles: List[Tile] = []
    for r, raw_row in enumerate(raw_tiles):
        if not isinstance(raw_row, list) or len(raw_row) != cols:
            raise BoardInvariantError(f"Snapshot row {r} does not have {cols} cells")
        for c, raw_tile in enumerate(raw_row):
            if raw_tile is None:
                continue
            tile = Tile.from_dict(raw_tile)
            if (tile.row, tile.col) != (r, c):
                raise BoardInvariantError(
                    f"Tile declares ({tile.row},{tile.col}) but is stored at ({r},{c})"
                )
            if not 1 <= tile.type <= tile_types:
                raise BoardInvariantError(f"Tile type {tile.type} outside 1..{tile_types}")
            tiles.append(tile)
    _remove_all_tiles(world)
    board.rows = rows
    board.cols = cols
    board.tile_types = tile_types
    for tile in tiles:
        world.create_entity(tile)
    invalidate_match_cache(world)
