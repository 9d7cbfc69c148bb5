import random

from gemcrush.components.tile import SpecialKind, Tile
from gemcrush.events.bus import (
    EVENT_CASCADE_COMPLETE,
    EVENT_CASCADE_STEP,
    EVENT_GRAVITY_APPLIED,
    EVENT_MATCH_CLEARED,
    EVENT_MATCH_FOUND,
    EVENT_SPECIAL_ACTIVATED,
    EVENT_SPECIAL_CREATED,
    EVENT_TILE_SWAP_FINALIZE,
    EventBus,
)
from gemcrush.systems.board_ops import (
    activate_special,
    clear_tiles,
    combo_multiplier,
    find_matches,
    get_board,
    resolve_match_groups,
    resolve_matches,
    special_kind_for_size,
    tile_at,
    tile_grid,
    tile_score,
)
from gemcrush.systems.match_resolution import MatchResolutionSystem

from tests.helpers import ConstantRandom, background, make_world


def row_of_four_board():
    layout = background(4, 5)
    layout[3] = [3, 3, 3, 3, 6]
    return layout


def test_group_of_four_promotes_center_in_live_play():
    world = make_world(row_of_four_board())
    matches = find_matches(world)
    assert matches == [(3, 0), (3, 1), (3, 2), (3, 3)]

    result = resolve_match_groups(world, matches)

    assert result.promoted == [((3, 2), SpecialKind.ROW_CLEAR)]
    assert sorted(result.removed) == [(3, 0), (3, 1), (3, 3)]
    assert result.score == 30
    assert result.group_sizes == [4]
    survivor = tile_at(world, 3, 2)
    assert survivor.special_kind is SpecialKind.ROW_CLEAR
    assert survivor.matched is False
    assert get_board(world).last_move_score == 30


def test_simulation_mode_never_creates_specials():
    world = make_world(row_of_four_board(), simulation_mode=True)
    result = resolve_match_groups(world, find_matches(world))
    assert result.promoted == []
    assert len(result.removed) == 4
    # four tiles at 10 * 4/3 each
    assert result.score == 52
    assert result.large_groups == 1
    assert not any(tile.is_special for tile in tile_grid(world).values())


def test_group_of_five_makes_bomb():
    layout = background(4, 5)
    layout[3] = [3, 3, 3, 3, 3]
    world = make_world(layout)
    result = resolve_match_groups(world, find_matches(world))
    assert result.promoted == [((3, 2), SpecialKind.BOMB)]
    assert result.score == 52


def test_group_of_seven_makes_color_clear():
    layout = background(4, 5)
    layout[3] = [3, 3, 3, 3, 3]
    layout[2][4] = 3
    world = make_world(layout)
    matches = find_matches(world)
    assert len(matches) == 7
    result = resolve_match_groups(world, matches)
    assert result.promoted == [((3, 3), SpecialKind.COLOR_CLEAR)]
    assert len(result.removed) == 6
    assert result.score == 6 * 20


def test_removed_types_record_cleared_tiles():
    layout = background(4, 4)
    layout[0][0:3] = [6, 6, 6]
    world = make_world(layout)
    result = resolve_match_groups(world, find_matches(world))
    assert result.removed_types == [(0, 0, 6), (0, 1, 6), (0, 2, 6)]
    assert resolve_matches(world, []) == 0


def test_special_kind_for_size():
    assert special_kind_for_size(3) is SpecialKind.NONE
    assert special_kind_for_size(4) is SpecialKind.ROW_CLEAR
    assert special_kind_for_size(5) is SpecialKind.BOMB
    assert special_kind_for_size(6) is SpecialKind.COLOR_CLEAR
    assert special_kind_for_size(9) is SpecialKind.COLOR_CLEAR


def test_tile_score_and_combo_cap():
    plain = Tile(row=0, col=0, type=1)
    special = Tile(row=0, col=0, type=1, special_kind=SpecialKind.BOMB)
    assert tile_score(plain, 3) == 10
    assert tile_score(special, 3) == 30
    assert combo_multiplier(30) == 5
    assert tile_score(plain, 30) == 50


def test_bomb_clears_radius_two_clipped_to_board():
    world = make_world(background(5, 5))
    tile_at(world, 0, 0).special_kind = SpecialKind.BOMB
    assert activate_special(world, (0, 0)) == [(r, c) for r in range(3) for c in range(3)]
    tile_at(world, 2, 2).special_kind = SpecialKind.BOMB
    assert len(activate_special(world, (2, 2))) == 25


def test_row_clear_takes_row_and_column():
    world = make_world(background(4, 5))
    tile_at(world, 1, 1).special_kind = SpecialKind.ROW_CLEAR
    affected = activate_special(world, (1, 1))
    assert len(affected) == 5 + 4 - 1
    assert all(r == 1 or c == 1 for r, c in affected)


def test_color_clear_uses_swap_partner_type():
    world = make_world(background(4, 4))
    bomb = tile_at(world, 0, 0)
    bomb.special_kind = SpecialKind.COLOR_CLEAR
    bomb.color_target = 2
    affected = activate_special(world, (0, 0))
    assert (0, 0) in affected
    assert all(tile_at(world, *pos).type == 2 for pos in affected if pos != (0, 0))
    assert len(affected) == 1 + 4


def test_plain_tile_does_not_activate():
    world = make_world(background(3, 3))
    assert activate_special(world, (1, 1)) == []


def test_clear_tiles_scores_like_a_match():
    world = make_world(background(3, 3))
    result = clear_tiles(world, [(0, 0), (0, 1), (0, 1)])
    assert result.removed == [(0, 0), (0, 1)]
    assert result.score == 2 * 6
    assert tile_at(world, 0, 0) is None


def test_finalized_swap_resolves_with_events():
    bus = EventBus()
    layout = background(4, 4)
    layout[0][0:3] = [6, 6, 6]
    world = make_world(layout, rng=random.Random(11))
    system = MatchResolutionSystem(world, bus)
    order = []
    cleared = {}
    complete = {}
    bus.subscribe(EVENT_CASCADE_STEP, lambda s, **k: order.append("step"))
    bus.subscribe(EVENT_MATCH_FOUND, lambda s, **k: order.append("found"))
    bus.subscribe(EVENT_MATCH_CLEARED, lambda s, **k: (order.append("cleared"), cleared.update(k)))
    bus.subscribe(EVENT_GRAVITY_APPLIED, lambda s, **k: order.append("gravity"))
    bus.subscribe(EVENT_CASCADE_COMPLETE, lambda s, **k: complete.update(k))

    bus.emit(EVENT_TILE_SWAP_FINALIZE, src=(3, 0), dst=(3, 1), origin="player")

    assert order[:4] == ["step", "found", "cleared", "gravity"]
    assert cleared["score"] == 30
    assert complete["depth"] >= 1
    assert complete["score"] >= 30
    assert system.last_cascade_depth == complete["depth"]
    assert find_matches(world) == []
    assert len(tile_grid(world)) == 16


def test_special_created_event_on_large_group():
    bus = EventBus()
    world = make_world(row_of_four_board(), rng=ConstantRandom(5))
    MatchResolutionSystem(world, bus)
    created = []
    bus.subscribe(EVENT_SPECIAL_CREATED, lambda s, **k: created.append(k))
    bus.emit(EVENT_TILE_SWAP_FINALIZE, src=(0, 0), dst=(0, 1), origin="player")
    assert created[0] == {"position": (3, 2), "kind": "row_clear", "group_size": 4}


def test_swapped_special_activates_before_matching():
    bus = EventBus()
    world = make_world(background(4, 4), rng=ConstantRandom(1))
    system = MatchResolutionSystem(world, bus)
    tile_at(world, 1, 1).special_kind = SpecialKind.ROW_CLEAR
    activated = []
    bus.subscribe(EVENT_SPECIAL_ACTIVATED, lambda s, **k: activated.append(k))
    gained = system.activate_swapped_specials([(1, 1), (1, 2)])
    assert activated[0]["position"] == (1, 1)
    assert activated[0]["kind"] == "row_clear"
    assert len(activated[0]["affected"]) == 7
    # seven tiles at 7/3 combo; the special scores triple
    assert gained == 6 * 23 + 70
    assert len(tile_grid(world)) == 16
