"""Timing and scoring rules for each mini-game.

Defaults mirror the shipped app: five rounds for Reaction and Nerve, a single
timed round for Tap-Battle and Reflex, a two second "get ready" pause before
each countdown and a 3-2-1 countdown at one second per step. Any value can be
overridden from a JSON file with :func:`load_rules_config`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

import orjson
import structlog

LOGGER = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/crazytie.json")


class GameId(str, Enum):
    """Identifiers of the four mini-games."""

    REACTION = "reaction"
    TAP_BATTLE = "tap_battle"
    REFLEX = "reflex"
    NERVE = "nerve"


@dataclass(frozen=True)
class GameRules:
    """Settings shared by every game."""

    game: ClassVar[GameId]

    max_rounds: int = 1
    intro_delay: float = 2.0
    countdown_from: int = 3
    countdown_interval: float = 1.0
    round_end_delay: float = 3.0

    def __post_init__(self) -> None:
        """Validate the shared configuration."""
        if self.max_rounds < 1:
            raise ValueError(f"max_rounds must be at least 1, got {self.max_rounds}")
        if self.countdown_from < 1:
            raise ValueError(f"countdown_from must be at least 1, got {self.countdown_from}")
        for name in ("intro_delay", "round_end_delay"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.countdown_interval <= 0:
            raise ValueError("countdown_interval must be positive")

    def with_overrides(self, overrides: Mapping[str, Any]) -> "GameRules":
        """Return a copy with known keys replaced; unknown keys are dropped."""

        known = {item.name: item for item in fields(self)}
        clean: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                LOGGER.warning("rules.unknown_key", game=self.game.value, key=key)
                continue
            current = getattr(self, key)
            clean[key] = tuple(value) if isinstance(current, tuple) else type(current)(value)
        return replace(self, **clean)


@dataclass(frozen=True)
class ReactionRules(GameRules):
    """First to tap after the signal."""

    game: ClassVar[GameId] = GameId.REACTION

    max_rounds: int = 5
    round_end_delay: float = 2.0
    arming_min: float = 2.0
    arming_max: float = 5.0

    def __post_init__(self) -> None:
        super().__post_init__()
        if not (0 <= self.arming_min <= self.arming_max):
            raise ValueError(
                f"Arming delay range is invalid: {self.arming_min}-{self.arming_max}"
            )


@dataclass(frozen=True)
class TapBattleRules(GameRules):
    """Fixed-duration tap race."""

    game: ClassVar[GameId] = GameId.TAP_BATTLE

    duration: float = 10.0
    effect_lifetime: float = 0.5
    effect_x_range: Tuple[float, float] = (50.0, 300.0)
    effect_y_range: Tuple[float, float] = (50.0, 200.0)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.duration <= 0:
            raise ValueError("duration must be positive")
        if self.effect_lifetime <= 0:
            raise ValueError("effect_lifetime must be positive")


@dataclass(frozen=True)
class ReflexRules(GameRules):
    """Timed wave of expiring targets."""

    game: ClassVar[GameId] = GameId.REFLEX

    duration: float = 30.0
    total_targets: int = 50
    spawn_interval: float = 0.8
    target_lifetime: float = 3.0
    correct_points: int = 2
    wrong_penalty: int = 1
    size_range: Tuple[float, float] = (40.0, 60.0)
    x_range: Tuple[float, float] = (60.0, 340.0)
    y_range: Tuple[float, float] = (150.0, 600.0)

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.duration <= 0 or self.spawn_interval <= 0 or self.target_lifetime <= 0:
            raise ValueError("duration, spawn_interval and target_lifetime must be positive")
        if self.total_targets < 0:
            raise ValueError("total_targets must be non-negative")
        for name in ("size_range", "x_range", "y_range"):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name} lower bound exceeds upper bound")


@dataclass(frozen=True)
class NerveRules(GameRules):
    """Last to act before the danger window closes."""

    game: ClassVar[GameId] = GameId.NERVE

    max_rounds: int = 5
    building_duration: float = 4.0
    danger_duration: float = 3.0
    tick_interval: float = 0.1

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.building_duration <= 0 or self.danger_duration <= 0:
            raise ValueError("building_duration and danger_duration must be positive")
        if self.tick_interval <= 0:
            raise ValueError("tick_interval must be positive")


RULESETS: Dict[GameId, GameRules] = {
    GameId.REACTION: ReactionRules(),
    GameId.TAP_BATTLE: TapBattleRules(),
    GameId.REFLEX: ReflexRules(),
    GameId.NERVE: NerveRules(),
}


def parse_game_id(value: "GameId | str") -> GameId:
    if isinstance(value, GameId):
        return value
    normalized = str(value).strip().lower().replace("-", "_")
    aliases = {"chicken": GameId.NERVE, "tap": GameId.TAP_BATTLE, "tapbattle": GameId.TAP_BATTLE}
    if normalized in aliases:
        return aliases[normalized]
    try:
        return GameId(normalized)
    except ValueError as exc:
        available = ", ".join(game.value for game in GameId)
        raise ValueError(f"Unknown game '{value}'. Available: {available}") from exc


def get_rules(game: "GameId | str", overrides: Optional[Mapping[GameId, GameRules]] = None) -> GameRules:
    """Get the rules for a game, preferring ``overrides`` when given."""

    game_id = parse_game_id(game)
    if overrides and game_id in overrides:
        return overrides[game_id]
    return RULESETS[game_id]


def load_rules_config(path: Path = DEFAULT_CONFIG_PATH) -> Dict[GameId, GameRules]:
    """Load per-game rule overrides from disk, falling back to defaults."""

    rules = dict(RULESETS)
    if not path.exists():
        return rules

    data = orjson.loads(path.read_bytes())
    games = data.get("games", data) if isinstance(data, dict) else {}
    for key, values in games.items():
        try:
            game_id = parse_game_id(key)
        except ValueError:
            LOGGER.warning("rules.unknown_game", game=key, path=str(path))
            continue
        if not isinstance(values, dict):
            continue
        rules[game_id] = rules[game_id].with_overrides(values)

    LOGGER.info("rules.loaded", path=str(path), games=sorted(game.value for game in rules))
    return rules
