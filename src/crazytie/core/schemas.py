"""Pydantic contracts for controller snapshots and presentation commands."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .players import Player, parse_player
from .rulesets import GameId


class Phase(str, Enum):
    """Every phase any game can be in.

    Each controller only uses its own subset (see ``PHASES`` on the controller
    classes); ``WAITING``, ``COUNTDOWN``, ``FINISHED`` and ``MATCH_OVER`` are
    shared by all four.
    """

    WAITING = "WAITING"
    COUNTDOWN = "COUNTDOWN"
    ARMING = "ARMING"
    LIVE = "LIVE"
    FALSE_START = "FALSE_START"
    PLAYING = "PLAYING"
    BUILDING = "BUILDING"
    DANGER = "DANGER"
    FINISHED = "FINISHED"
    MATCH_OVER = "MATCH_OVER"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TapEffectView(_Frozen):
    """Cosmetic burst shown where a Tap-Battle tap landed."""

    id: int
    player: Player
    x: float
    y: float


class TargetView(_Frozen):
    """A live Reflex target."""

    id: int
    owner: Player
    x: float
    y: float
    size: float
    spawned_at: float
    expires_at: float


class GameSnapshot(_Frozen):
    """Fields published by every controller."""

    game: GameId
    phase: Phase
    countdown: int
    round: int
    max_rounds: int
    scores: Dict[Player, int]
    round_winner: Optional[Player] = None
    win_reason: str = ""
    match_over: bool = False
    match_winner: Optional[Player] = None


class ReactionSnapshot(GameSnapshot):
    game: Literal[GameId.REACTION] = GameId.REACTION
    reaction_time: Optional[float] = None


class TapBattleSnapshot(GameSnapshot):
    game: Literal[GameId.TAP_BATTLE] = GameId.TAP_BATTLE
    time_remaining: int
    taps: Dict[Player, int]
    tap_effects: List[TapEffectView] = Field(default_factory=list)


class ReflexSnapshot(GameSnapshot):
    game: Literal[GameId.REFLEX] = GameId.REFLEX
    time_remaining: int
    spawned: int
    total_targets: int
    targets: List[TargetView] = Field(default_factory=list)
    correct: Dict[Player, int]
    wrong: Dict[Player, int]


class NerveSnapshot(GameSnapshot):
    game: Literal[GameId.NERVE] = GameId.NERVE
    tension: float = 0.0
    danger_time_left: float
    tapped: Dict[Player, bool]
    tap_offsets: Dict[Player, Optional[float]] = Field(default_factory=dict)


# ----------------------------------------------------------------------
# Commands sent by a presentation layer
# ----------------------------------------------------------------------


class ActionType(str, Enum):
    """Command types accepted over the web bridge."""

    START = "START"
    RESET = "RESET"
    PLAYER_ACTED = "PLAYER_ACTED"
    TARGET_HIT = "TARGET_HIT"
    WRONG_TAP = "WRONG_TAP"
    SCREEN_TAP = "SCREEN_TAP"


class PlayerActedAction(BaseModel):
    type: Literal[ActionType.PLAYER_ACTED] = ActionType.PLAYER_ACTED
    player: Player

    @field_validator("player", mode="before")
    @classmethod
    def coerce_player(cls, value: Any) -> Player:
        return parse_player(value)


class TargetHitAction(BaseModel):
    type: Literal[ActionType.TARGET_HIT] = ActionType.TARGET_HIT
    target_id: int = Field(..., ge=0)


class WrongTapAction(BaseModel):
    type: Literal[ActionType.WRONG_TAP] = ActionType.WRONG_TAP
    target_id: int = Field(..., ge=0)
    player: Player

    @field_validator("player", mode="before")
    @classmethod
    def coerce_player(cls, value: Any) -> Player:
        return parse_player(value)


class ScreenTapAction(BaseModel):
    type: Literal[ActionType.SCREEN_TAP] = ActionType.SCREEN_TAP
    x: float
    y: float


class StartAction(BaseModel):
    type: Literal[ActionType.START] = ActionType.START


class ResetAction(BaseModel):
    type: Literal[ActionType.RESET] = ActionType.RESET


GameAction = Union[
    PlayerActedAction,
    TargetHitAction,
    WrongTapAction,
    ScreenTapAction,
    StartAction,
    ResetAction,
]

_ACTION_MODELS = {
    ActionType.PLAYER_ACTED: PlayerActedAction,
    ActionType.TARGET_HIT: TargetHitAction,
    ActionType.WRONG_TAP: WrongTapAction,
    ActionType.SCREEN_TAP: ScreenTapAction,
    ActionType.START: StartAction,
    ActionType.RESET: ResetAction,
}


class SchemaValidationError(Exception):
    """Raised when a command payload fails schema validation."""

    def __init__(self, action: str, errors: list):
        self.action = action
        self.errors = errors
        super().__init__(f"Validation failed for {action} action: {errors}")


def validate_action(payload: Dict[str, Any]) -> GameAction:
    """Validate a raw command payload and return the structured action."""

    raw_type = str(payload.get("type", "")).upper()
    try:
        action_type = ActionType(raw_type)
    except ValueError as exc:
        raise SchemaValidationError(raw_type or "<missing>", [f"unknown action type {raw_type!r}"]) from exc
    try:
        return _ACTION_MODELS[action_type](**{**payload, "type": action_type})
    except ValidationError as e:
        raise SchemaValidationError(action_type.value, e.errors(include_url=False, include_context=False)) from e
