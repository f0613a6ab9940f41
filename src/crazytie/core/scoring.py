"""Per-player score accumulation."""

from __future__ import annotations

from typing import Dict, Optional

from .players import ALL_PLAYERS, Player


class ScoreLedger:
    """Two integer accumulators keyed by :class:`Player`.

    When ``floor`` is set, every result of :meth:`add` is clamped so the
    score never drops below it (the Reflex game uses ``floor=0``).
    """

    def __init__(self, *, floor: Optional[int] = None) -> None:
        self.floor = floor
        self._scores: Dict[Player, int] = {player: 0 for player in ALL_PLAYERS}

    def add(self, player: Player, delta: int) -> int:
        value = self._scores[player] + int(delta)
        if self.floor is not None and value < self.floor:
            value = self.floor
        self._scores[player] = value
        return value

    def score(self, player: Player) -> int:
        return self._scores[player]

    def reset(self) -> None:
        for player in ALL_PLAYERS:
            self._scores[player] = 0

    def leader(self) -> Optional[Player]:
        """Return the player with the strictly higher score, or ``None`` on a tie."""

        p1 = self._scores[Player.P1]
        p2 = self._scores[Player.P2]
        if p1 > p2:
            return Player.P1
        if p2 > p1:
            return Player.P2
        return None

    def as_dict(self) -> Dict[Player, int]:
        return dict(self._scores)

    def __repr__(self) -> str:
        return f"ScoreLedger(P1={self._scores[Player.P1]}, P2={self._scores[Player.P2]}, floor={self.floor})"
