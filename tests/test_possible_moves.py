import random

import pytest

from gemcrush.config import GameConfig
from gemcrush.systems.board_ops import (
    board_hash,
    can_swap,
    count_possible_moves,
    evaluate_move,
    find_all_possible_moves,
    find_matches,
    has_possible_moves,
    swapped,
    tile_grid,
)
from gemcrush.world import create_world

from tests.helpers import background, cascade_board, make_world


def test_moves_sorted_best_first():
    world = make_world(cascade_board())
    moves = find_all_possible_moves(world)
    assert [(m.first, m.second, m.score) for m in moves] == [
        ((0, 2), (1, 2), 53),
        ((0, 2), (0, 3), 30),
    ]


def test_board_without_moves():
    world = make_world(background(5, 5))
    assert find_all_possible_moves(world) == []
    assert not has_possible_moves(world)


@pytest.mark.parametrize("seed", [1, 8, 21])
def test_enumeration_is_sound_and_complete(seed):
    world = create_world(GameConfig(grid_rows=6, grid_cols=6), rng=random.Random(seed))
    moves = find_all_possible_moves(world)
    found = {(m.first, m.second) for m in moves}

    expected = set()
    for (row, col) in tile_grid(world):
        for other in ((row, col + 1), (row + 1, col)):
            if other not in tile_grid(world):
                continue
            with swapped(world, (row, col), other):
                matched = set(find_matches(world))
            if (row, col) in matched or other in matched:
                expected.add(((row, col), other))
    assert found == expected


@pytest.mark.parametrize("seed", [2, 5, 13])
def test_equal_scores_keep_enumeration_order(seed):
    world = create_world(rng=random.Random(seed))
    moves = find_all_possible_moves(world)
    scores = [m.score for m in moves]
    assert scores == sorted(scores, reverse=True)

    def enumeration_key(move):
        downward = move.second[0] != move.first[0]
        return move.first, downward

    for earlier, later in zip(moves, moves[1:]):
        if earlier.score == later.score:
            assert enumeration_key(earlier) < enumeration_key(later)


def test_enumeration_leaves_board_untouched():
    world = create_world(rng=random.Random(4))
    before = board_hash(world)
    find_all_possible_moves(world)
    assert board_hash(world) == before


def test_move_to_dict():
    world = make_world(cascade_board())
    best = find_all_possible_moves(world)[0]
    assert best.to_dict() == {"first": [0, 2], "second": [1, 2], "score": 53}


@pytest.mark.parametrize("seed", [0, 6, 11])
def test_move_count_and_presence_agree_with_enumeration(seed):
    world = create_world(rng=random.Random(seed))
    moves = find_all_possible_moves(world)
    assert count_possible_moves(world) == len(moves)
    assert has_possible_moves(world) == bool(moves)


def test_scoring_runs_on_the_position_map():
    world = make_world(cascade_board())
    cells = tile_grid(world)
    assert evaluate_move(world, (0, 2), (1, 2), cells=cells) == 53
    assert can_swap(world, (0, 2), (1, 2), cells=cells)
    assert tile_grid(world)[(0, 2)].type == 6
