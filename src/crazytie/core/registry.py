"""
Catalogue of the available mini-games and the factory that builds their controllers.

This file is the single source of truth for which games exist. Add a new game
here to make it available to the CLI and the web bridge.
"""

import random
from typing import Dict, List, Mapping, Optional, Type, TypedDict

from .engine import EngineError, RoundController
from .nerve import NerveController
from .reaction import ReactionController
from .reflex import ReflexController
from .rulesets import GameId, GameRules, get_rules, parse_game_id
from .scheduler import TimerScheduler
from .tap_battle import TapBattleController


class GameInfo(TypedDict):
    """Menu entry for a game."""
    id: str
    title: str
    subtitle: str
    max_rounds: int


GAME_REGISTRY: Dict[GameId, GameInfo] = {
    GameId.REACTION: {
        "id": GameId.REACTION.value,
        "title": "QUICK REACTION",
        "subtitle": "First to tap wins",
        "max_rounds": 5,
    },
    GameId.TAP_BATTLE: {
        "id": GameId.TAP_BATTLE.value,
        "title": "TAP BATTLE",
        "subtitle": "Tap your half faster",
        "max_rounds": 1,
    },
    GameId.REFLEX: {
        "id": GameId.REFLEX.value,
        "title": "REFLEX GAME",
        "subtitle": "Tap your color only",
        "max_rounds": 1,
    },
    GameId.NERVE: {
        "id": GameId.NERVE.value,
        "title": "NERVE GAME",
        "subtitle": "Steel nerves win",
        "max_rounds": 5,
    },
}

CONTROLLERS: Dict[GameId, Type[RoundController]] = {
    GameId.REACTION: ReactionController,
    GameId.TAP_BATTLE: TapBattleController,
    GameId.REFLEX: ReflexController,
    GameId.NERVE: NerveController,
}


def get_all_games() -> List[GameInfo]:
    """Get the menu entries in display order."""
    return list(GAME_REGISTRY.values())


def get_game_title(game: "GameId | str") -> str:
    """Get the display title for a game."""
    return GAME_REGISTRY[parse_game_id(game)]["title"]


def create_controller(
    game: "GameId | str",
    scheduler: TimerScheduler,
    *,
    rules: Optional[Mapping[GameId, GameRules]] = None,
    rng: Optional[random.Random] = None,
) -> RoundController:
    """Build the controller for ``game`` on ``scheduler``.

    ``rules`` is the mapping returned by ``load_rules_config``; games missing
    from it use their defaults.
    """

    try:
        game_id = parse_game_id(game)
    except ValueError as exc:
        raise EngineError(str(exc)) from exc
    controller_cls = CONTROLLERS[game_id]
    return controller_cls(scheduler, rules=get_rules(game_id, rules), rng=rng)
