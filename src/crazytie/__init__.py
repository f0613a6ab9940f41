"""Two-player party mini-games engine."""

from . import agents
from .core import engine, nerve, players, reaction, reflex, registry, rulesets, scheduler, schemas, scoring, tap_battle, transcript
from .utils import rng
from .services import cli

__version__ = "0.1.0"

__all__ = [
    "agents",
    "cli",
    "engine",
    "nerve",
    "players",
    "reaction",
    "reflex",
    "registry",
    "rng",
    "rulesets",
    "scheduler",
    "schemas",
    "scoring",
    "tap_battle",
    "transcript",
]
