"""Tap-Battle: most taps in a fixed window wins."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..utils.rng import random_point
from .engine import RoundController
from .players import Player
from .rulesets import GameId, TapBattleRules
from .schemas import Phase, TapBattleSnapshot, TapEffectView


@dataclass
class TapEffect:
    """Short-lived burst published for each tap."""

    id: int
    player: Player
    x: float
    y: float


class TapBattleController(RoundController):
    """Single timed round; the tap counters are the score ledger."""

    GAME = GameId.TAP_BATTLE
    PHASES = frozenset(
        {Phase.WAITING, Phase.COUNTDOWN, Phase.PLAYING, Phase.FINISHED, Phase.MATCH_OVER}
    )

    rules: TapBattleRules

    def _reset_round_state(self) -> None:
        super()._reset_round_state()
        self.time_remaining = math.ceil(self.rules.duration)
        self.tap_effects: List[TapEffect] = []
        self._effect_ids = itertools.count(1)
        self._ends_at: Optional[float] = None

    def _on_countdown_complete(self) -> None:
        self._enter(Phase.PLAYING)
        self._ends_at = self.now() + self.rules.duration
        self.time_remaining = math.ceil(self.rules.duration)
        self._every(1.0, self._tick, label="clock")
        self._after(self.rules.duration, self._end_battle, label="battle")

    def _tick(self) -> None:
        if self._ends_at is not None:
            self.time_remaining = max(0, math.ceil(self._ends_at - self.now()))

    def _on_player_acted(self, player: Player) -> bool:
        if self.phase != Phase.PLAYING:
            return False
        self.ledger.add(player, 1)
        x, y = random_point(self.rng, self.rules.effect_x_range, self.rules.effect_y_range)
        effect = TapEffect(id=next(self._effect_ids), player=player, x=x, y=y)
        self.tap_effects.append(effect)
        self._after(self.rules.effect_lifetime, lambda: self._drop_effect(effect.id), label="effect")
        return True

    def _drop_effect(self, effect_id: int) -> None:
        self.tap_effects = [effect for effect in self.tap_effects if effect.id != effect_id]

    def _end_battle(self) -> None:
        self.time_remaining = 0
        self.tap_effects = []
        winner = self.ledger.leader()
        if winner is None:
            reason = "It's a tie!"
        else:
            reason = f"{winner.display_name} wins!"
        self._finish_round(winner, reason)

    def taps(self, player: Player) -> int:
        return self.ledger.score(player)

    def _round_details(self) -> Dict[str, Any]:
        return {"taps": {player.value: count for player, count in self.ledger.as_dict().items()}}

    def snapshot(self) -> TapBattleSnapshot:
        return TapBattleSnapshot(
            **self._base_fields(),
            time_remaining=self.time_remaining,
            taps=self.ledger.as_dict(),
            tap_effects=[
                TapEffectView(id=effect.id, player=effect.player, x=effect.x, y=effect.y)
                for effect in self.tap_effects
            ],
        )
