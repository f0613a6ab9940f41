"""Reaction game: first to tap after the signal wins the round."""

from __future__ import annotations

from typing import Any, Dict, Optional

from .engine import RoundController
from .players import Player
from .rulesets import GameId, ReactionRules
from .schemas import Phase, ReactionSnapshot

# Any tap before the signal goes live is a false start.
_EARLY_PHASES = frozenset({Phase.WAITING, Phase.COUNTDOWN, Phase.ARMING})


class ReactionController(RoundController):
    """Five rounds of "wait for green, then tap".

    After the countdown the round sits in ``ARMING`` for a random 2-5 s. A tap
    there, or anywhere earlier in the round, is a false start and hands the
    point to the opponent. Once ``LIVE``
    the first tap wins and its reaction time is recorded; everything after
    that is locked out until the next round.
    """

    GAME = GameId.REACTION
    PHASES = frozenset(
        {
            Phase.WAITING,
            Phase.COUNTDOWN,
            Phase.ARMING,
            Phase.LIVE,
            Phase.FINISHED,
            Phase.FALSE_START,
            Phase.MATCH_OVER,
        }
    )

    rules: ReactionRules

    def _reset_round_state(self) -> None:
        super()._reset_round_state()
        self.reaction_time: Optional[float] = None
        self.arming_delay: Optional[float] = None
        self._live_at: Optional[float] = None

    def _on_countdown_complete(self) -> None:
        self._enter(Phase.ARMING)
        self.arming_delay = self.rng.uniform(self.rules.arming_min, self.rules.arming_max)
        self._log.debug("reaction.arming", round=self.round_num, delay=round(self.arming_delay, 3))
        self._after(self.arming_delay, self._go_live, label="arming")

    def _go_live(self) -> None:
        self._enter(Phase.LIVE)
        self._live_at = self.now()

    def _on_player_acted(self, player: Player) -> bool:
        if self.phase in _EARLY_PHASES:
            winner = player.opponent
            self.ledger.add(winner, 1)
            self._log.info("reaction.false_start", round=self.round_num, player=player.value)
            self._finish_round(winner, f"{player.display_name} tapped too early!", phase=Phase.FALSE_START)
            return True

        if self.phase == Phase.LIVE and self._live_at is not None:
            self.reaction_time = max(0.0, self.now() - self._live_at)
            self.ledger.add(player, 1)
            self._finish_round(player, f"{player.display_name} reacted in {self.reaction_time:.3f}s")
            return True

        return False

    def _round_details(self) -> Dict[str, Any]:
        return {"reaction_time": self.reaction_time}

    def snapshot(self) -> ReactionSnapshot:
        return ReactionSnapshot(**self._base_fields(), reaction_time=self.reaction_time)
