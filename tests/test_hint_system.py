import pytest

from gemcrush.events.bus import EVENT_HINT_READY, EVENT_HINT_REQUEST, EVENT_HINT_UNAVAILABLE, EventBus
from gemcrush.systems.board_ops import Move, board_hash
from gemcrush.systems.hint_system import HintSystem, MatchInfo, describe

from tests.helpers import ConstantRandom, background, cascade_board, make_world


def test_estimate_mode_scores_moves():
    world = make_world(cascade_board())
    hints = HintSystem(world, EventBus(), cascade_prediction=False)
    # 4 tiles * 10 + special bonus 15 + centrality 5 * 2
    assert hints.evaluate_move(world, Move((0, 2), (1, 2))) == 65
    # 3 tiles * 10 + centrality 3 * 2
    assert hints.evaluate_move(world, Move((0, 2), (0, 3))) == 36


def test_suggest_move_picks_best_and_explains():
    world = make_world(cascade_board())
    before = board_hash(world)
    hint = HintSystem(world, EventBus(), cascade_prediction=False).suggest_move(world)
    assert hint.move.same_pair(Move((0, 2), (1, 2)))
    assert hint.evaluation_score == 65
    assert hint.confidence == pytest.approx(98.5)
    assert hint.match_info.total_matches == 4
    assert hint.match_info.tile_types == [5]
    assert hint.match_info.match_sizes == [4]
    assert hint.match_info.estimated_score == 40
    assert hint.reason == "Creates 4 matched tiles (including a 4-tile match!) of type 5 for ~40 points"
    assert board_hash(world) == before


def test_prediction_mode_adds_simulated_cascades():
    # A constant refill keeps rematching, so the simulator hits its cap of 5
    world = make_world(cascade_board(), rng=ConstantRandom(6))
    hints = HintSystem(world, EventBus(), cascade_prediction=True)
    score = hints.evaluate_move(world, Move((0, 2), (1, 2)))
    assert hints.last_cascade.cascade_count == 5
    assert score == 40 + 15 + (5 * 25 + 6 * 15) + 10


def test_hint_request_events():
    bus = EventBus()
    world = make_world(cascade_board())
    HintSystem(world, bus)
    ready = []
    bus.subscribe(EVENT_HINT_READY, lambda s, **k: ready.append(k["hint"]))
    bus.emit(EVENT_HINT_REQUEST)
    assert len(ready) == 1
    assert ready[0].move.same_pair(Move((0, 2), (1, 2)))


def test_no_moves_reports_unavailable():
    bus = EventBus()
    world = make_world(background(4, 4))
    hints = HintSystem(world, bus)
    reasons = []
    bus.subscribe(EVENT_HINT_UNAVAILABLE, lambda s, **k: reasons.append(k["reason"]))
    bus.emit(EVENT_HINT_REQUEST)
    assert reasons == ["no good move"]
    assert hints.suggest_move(world) is None


def test_compare_cascade_modes_restores_setting():
    world = make_world(cascade_board(), rng=ConstantRandom(6))
    hints = HintSystem(world, EventBus(), cascade_prediction=False)
    report = hints.compare_cascade_modes(world)
    assert hints.cascade_prediction is False
    assert report["comparison"]["same_move"]
    assert report["without"]["score"] == 65
    assert report["with"]["score"] == 280
    assert report["with"]["cascade_count"] == 5
    assert report["with"]["cascade_score"] == 6 * 52
    assert report["comparison"]["score_difference"] == 215


def test_set_cascade_prediction():
    world = make_world(cascade_board())
    hints = HintSystem(world, EventBus())
    assert hints.cascade_prediction is False
    hints.set_cascade_prediction(True)
    assert hints.cascade_prediction is True


def test_describe_without_match():
    assert describe(MatchInfo()) == "No match created"
    info = MatchInfo(total_matches=6, tile_types=[1, 2], estimated_score=60, match_sizes=[3, 3])
    assert describe(info) == "Creates 6 matched tiles for ~60 points"
