"""Entry point for a headless Gem Crush session.

Sets up the world, event bus and systems, then lets the auto-solver play
until the session ends. Run with: ``python src/main.py [seed]``
"""
from __future__ import annotations

import logging
import random
import sys

from gemcrush.components.game_state import GameStatus
from gemcrush.config import GameConfig
from gemcrush.events.bus import (
    EVENT_AUTO_SOLVE_REQUEST,
    EVENT_GAME_STATUS_CHANGED,
    EVENT_SCORE_CHANGED,
    EventBus,
)
from gemcrush.snapshot import build_save_state
from gemcrush.systems.auto_solve_system import AutoSolveSystem
from gemcrush.systems.board import BoardSystem
from gemcrush.systems.game_flow_system import GameFlowSystem
from gemcrush.systems.hint_system import HintSystem
from gemcrush.systems.match_resolution import MatchResolutionSystem
from gemcrush.world import create_world

logger = logging.getLogger("gemcrush")


class HeadlessGame:
    def __init__(self, config: GameConfig | None = None, seed: int | None = None):
        self.event_bus = EventBus()
        self.world = create_world(config, rng=random.Random(seed))
        self.board_system = BoardSystem(self.world, self.event_bus)
        self.match_resolution_system = MatchResolutionSystem(self.world, self.event_bus)
        self.game_flow_system = GameFlowSystem(self.world, self.event_bus)
        self.hint_system = HintSystem(self.world, self.event_bus)
        self.auto_solve_system = AutoSolveSystem(self.world, self.event_bus, hint_system=self.hint_system)
        self.event_bus.subscribe(EVENT_SCORE_CHANGED, self._on_score_changed)
        self.event_bus.subscribe(EVENT_GAME_STATUS_CHANGED, self._on_status_changed)

    def play(self, max_turns: int = 200) -> GameStatus:
        state = self.game_flow_system.state
        for _ in range(max_turns):
            if state.status is not GameStatus.PLAYING:
                break
            self.event_bus.emit(EVENT_AUTO_SOLVE_REQUEST)
            self.game_flow_system.check_game_end()
        return state.status

    def _on_score_changed(self, sender, **payload):
        logger.info("score %d (+%d), %d moves left", payload["score"], payload["delta"], payload["moves"])

    def _on_status_changed(self, sender, **payload):
        logger.info("status: %s", payload["status"].value)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    seed = int(sys.argv[1]) if len(sys.argv) > 1 else None
    game = HeadlessGame(seed=seed)
    status = game.play()
    save = build_save_state(game.world)
    logger.info("finished with %s: score=%d level=%d", status.value, save["score"], save["level"])


if __name__ == "__main__":
    main()
