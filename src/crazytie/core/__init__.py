"""Core game logic: timers, scoring, rules and the four round controllers."""

from . import engine, nerve, players, reaction, reflex, registry, rulesets, scheduler, schemas, scoring, tap_battle, transcript
from .engine import EngineError, RoundController, RoundResult
from .players import Player
from .registry import create_controller
from .rulesets import GameId
from .scheduler import ManualClock, TimerScheduler

__all__ = [
    "engine",
    "nerve",
    "players",
    "reaction",
    "reflex",
    "registry",
    "rulesets",
    "scheduler",
    "schemas",
    "scoring",
    "tap_battle",
    "transcript",
    "EngineError",
    "GameId",
    "ManualClock",
    "Player",
    "RoundController",
    "RoundResult",
    "TimerScheduler",
    "create_controller",
]
