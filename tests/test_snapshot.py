import json
import random

import pytest

from gemcrush.components.game_state import GameStatus
from gemcrush.components.tile import SpecialKind
from gemcrush.config import GameConfig
from gemcrush.errors import BoardInvariantError
from gemcrush.snapshot import build_save_state, restore_save_state
from gemcrush.systems.board_ops import (
    board_dimensions,
    find_matches,
    load_board,
    serialize_board,
    tile_at,
    tile_grid,
)
from gemcrush.systems.game_flow_system import get_game_state
from gemcrush.world import create_world

from tests.helpers import background, cascade_board, make_world, types_of


def test_save_state_is_json_ready():
    world = make_world(cascade_board())
    state = get_game_state(world)
    state.score = 120
    state.moves = 7
    tile_at(world, 2, 2).special_kind = SpecialKind.BOMB
    save = build_save_state(world)
    decoded = json.loads(json.dumps(save))
    assert decoded["version"] == "1.0.0"
    assert (decoded["score"], decoded["moves"], decoded["level"]) == (120, 7, 1)
    assert decoded["status"] == "playing"
    assert decoded["board"]["rows"] == 4
    assert decoded["board"]["tiles"][2][2] == {
        "type": 3, "row": 2, "col": 2, "is_special": True, "special_kind": "bomb",
    }
    assert decoded["config"]["grid_cols"] == 4


def test_restore_round_trip_into_fresh_world():
    source = make_world(cascade_board())
    get_game_state(source).score = 250
    get_game_state(source).session["hints_used"] = 2
    tile_at(source, 0, 0).special_kind = SpecialKind.ROW_CLEAR
    payload = json.loads(json.dumps(build_save_state(source)))

    target = create_world(rng=random.Random(0))
    assert restore_save_state(target, payload)
    assert board_dimensions(target) == (4, 4)
    assert types_of(target) == cascade_board()
    assert tile_at(target, 0, 0).special_kind is SpecialKind.ROW_CLEAR
    state = get_game_state(target)
    assert state.score == 250
    assert state.session["hints_used"] == 2
    assert target.config.grid_rows == 4


def test_finished_game_resumes_playing():
    world = make_world(cascade_board())
    get_game_state(world).status = GameStatus.WON
    payload = build_save_state(world)
    assert restore_save_state(world, payload)
    assert get_game_state(world).status is GameStatus.PLAYING


def test_broken_board_is_regenerated():
    world = make_world(cascade_board(), rng=random.Random(4))
    payload = build_save_state(world)
    payload["board"]["tiles"][1][1]["row"] = 3
    assert not restore_save_state(world, payload)
    assert len(tile_grid(world)) == 16
    assert find_matches(world) == []


def test_non_mapping_payload_is_rejected():
    world = make_world(cascade_board(), rng=random.Random(4))
    assert not restore_save_state(world, ["not", "a", "save"])
    assert len(tile_grid(world)) == 16


@pytest.mark.parametrize(
    "mutate",
    [
        lambda data: data.pop("rows"),
        lambda data: data.update(rows=0),
        lambda data: data["tiles"].pop(),
        lambda data: data["tiles"][0].pop(),
        lambda data: data["tiles"][0].__setitem__(0, {"row": 0, "col": 0}),
        lambda data: data["tiles"][0][0].update(special_kind="laser"),
    ],
)
def test_load_board_rejects_inconsistent_data(mutate):
    world = make_world(background(3, 3))
    data = serialize_board(world)
    mutate(data)
    with pytest.raises(BoardInvariantError):
        load_board(world, data)
    assert types_of(world) == background(3, 3)


def test_load_board_adopts_saved_dimensions():
    world = make_world(background(3, 3))
    load_board(world, serialize_board(make_world(background(2, 5))))
    assert board_dimensions(world) == (2, 5)
    assert types_of(world) == background(2, 5)


def test_config_restored_with_weights():
    world = make_world(cascade_board())
    world.config = GameConfig(grid_rows=4, grid_cols=4, target_score=50)
    world.config.search_weights.special_tiles = 9.0
    payload = build_save_state(world)
    fresh = create_world(rng=random.Random(0))
    restore_save_state(fresh, payload)
    assert fresh.config.search_weights.special_tiles == 9.0
    assert get_game_state(fresh).target_score == 50


def test_zero_moves_survive_round_trip():
    world = make_world(cascade_board())
    get_game_state(world).moves = 0
    payload = build_save_state(world)
    assert restore_save_state(world, payload)
    assert get_game_state(world).moves == 0


def test_unusable_counters_fall_back_to_defaults():
    world = make_world(cascade_board())
    payload = build_save_state(world)
    payload.update(score="lots", moves=None, level=[2])
    payload["session"]["hints_used"] = "many"
    assert restore_save_state(world, payload)
    state = get_game_state(world)
    assert (state.score, state.moves, state.level) == (0, 30, 1)
    assert state.session["hints_used"] == 0
    assert types_of(world) == cascade_board()
