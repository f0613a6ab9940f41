"""The two player identities shared by every mini-game."""

from __future__ import annotations

from enum import Enum
from typing import Tuple


class Player(str, Enum):
    """Player identities."""

    P1 = "P1"
    P2 = "P2"

    @property
    def display_name(self) -> str:
        return PLAYER_LABELS[self]

    @property
    def color(self) -> str:
        """Accent colour name used by the presentation layer."""
        return PLAYER_COLORS[self]

    @property
    def number(self) -> int:
        return 1 if self is Player.P1 else 2

    @property
    def opponent(self) -> "Player":
        return Player.P2 if self is Player.P1 else Player.P1


PLAYER_LABELS = {
    Player.P1: "PLAYER 1",
    Player.P2: "PLAYER 2",
}

PLAYER_COLORS = {
    Player.P1: "red",
    Player.P2: "orange",
}

ALL_PLAYERS: Tuple[Player, ...] = (Player.P1, Player.P2)


def parse_player(value: "Player | str | int") -> Player:
    """Coerce ``P1``/``p2``/``1``/``2`` style identifiers into a :class:`Player`."""

    if isinstance(value, Player):
        return value
    text = str(value).strip().upper()
    if text in {"1", "P1", "PLAYER1", "PLAYER 1"}:
        return Player.P1
    if text in {"2", "P2", "PLAYER2", "PLAYER 2"}:
        return Player.P2
    raise ValueError(f"Unknown player identifier: {value!r}")
