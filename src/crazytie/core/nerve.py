"""Nerve (chicken) game: the last player to tap inside the danger window wins."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .engine import RoundController
from .players import ALL_PLAYERS, Player
from .rulesets import GameId, NerveRules
from .schemas import NerveSnapshot, Phase


class NerveController(RoundController):
    """Five rounds of tension building followed by a short danger window.

    ``BUILDING``: tension ramps from 0 to 1 and any tap is a false start.
    ``DANGER``: each player's first tap is latched with a timestamp. Once both
    players have latched, the later tap wins; if the window closes first, a
    lone tapper wins and no taps at all is a tie.
    """

    GAME = GameId.NERVE
    PHASES = frozenset(
        {
            Phase.WAITING,
            Phase.COUNTDOWN,
            Phase.BUILDING,
            Phase.DANGER,
            Phase.FINISHED,
            Phase.MATCH_OVER,
        }
    )

    rules: NerveRules

    def _reset_round_state(self) -> None:
        super()._reset_round_state()
        self.tension = 0.0
        self.danger_time_left = self.rules.danger_duration
        self.tap_times: Dict[Player, Optional[float]] = {player: None for player in ALL_PLAYERS}
        self._latch_order: List[Player] = []
        self._building_started: Optional[float] = None
        self._danger_started: Optional[float] = None

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _on_countdown_complete(self) -> None:
        self._enter(Phase.BUILDING)
        self._building_started = self.now()
        self.tension = 0.0
        self._every(self.rules.tick_interval, self._build_tension, label="tension")
        self._after(self.rules.building_duration, self._start_danger, label="building")

    def _build_tension(self) -> None:
        elapsed = self.now() - (self._building_started or self.now())
        self.tension = min(1.0, elapsed / self.rules.building_duration)

    def _start_danger(self) -> None:
        self._enter(Phase.DANGER)
        self.tension = 1.0
        self._danger_started = self.now()
        self.danger_time_left = self.rules.danger_duration
        self._every(self.rules.tick_interval, self._count_down_danger, label="danger_clock")
        self._after(self.rules.danger_duration, self._danger_timeout, label="danger")

    def _count_down_danger(self) -> None:
        elapsed = self.now() - (self._danger_started or self.now())
        self.danger_time_left = max(0.0, self.rules.danger_duration - elapsed)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def _on_player_acted(self, player: Player) -> bool:
        if self.phase == Phase.BUILDING:
            winner = player.opponent
            self.ledger.add(winner, 1)
            self._log.info("nerve.false_start", round=self.round_num, player=player.value)
            self._finish_round(winner, f"{player.display_name} tapped too early!")
            return True

        if self.phase != Phase.DANGER or self.tap_times[player] is not None:
            return False

        self.tap_times[player] = self.now()
        self._latch_order.append(player)
        self._log.debug("nerve.latched", round=self.round_num, player=player.value, at=self.tap_offset(player))
        if len(self._latch_order) == len(ALL_PLAYERS):
            self._resolve_both_tapped()
        return True

    def _resolve_both_tapped(self) -> None:
        t1 = self.tap_times[Player.P1]
        t2 = self.tap_times[Player.P2]
        if t1 > t2:  # type: ignore[operator]
            winner = Player.P1
        elif t2 > t1:  # type: ignore[operator]
            winner = Player.P2
        else:
            # Same timestamp: the tap recorded second held out longer.
            winner = self._latch_order[-1]
        self.ledger.add(winner, 1)
        self._finish_round(winner, f"Player {winner.number} held their nerve longer!")

    def _danger_timeout(self) -> None:
        self.danger_time_left = 0.0
        latched = [player for player in ALL_PLAYERS if self.tap_times[player] is not None]
        if not latched:
            self._finish_round(None, "Both players were too late!")
            return
        winner = latched[0]
        self.ledger.add(winner, 1)
        self._finish_round(
            winner,
            f"Player {winner.number} tapped in time, Player {winner.opponent.number} was too late!",
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def tap_offset(self, player: Player) -> Optional[float]:
        """Seconds between the start of ``DANGER`` and ``player``'s latched tap."""

        tapped_at = self.tap_times[player]
        if tapped_at is None or self._danger_started is None:
            return None
        return tapped_at - self._danger_started

    def _round_details(self) -> Dict[str, Any]:
        return {"tap_offsets": {player.value: self.tap_offset(player) for player in ALL_PLAYERS}}

    def snapshot(self) -> NerveSnapshot:
        return NerveSnapshot(
            **self._base_fields(),
            tension=self.tension,
            danger_time_left=self.danger_time_left,
            tapped={player: self.tap_times[player] is not None for player in ALL_PLAYERS},
            tap_offsets={player: self.tap_offset(player) for player in ALL_PLAYERS},
        )
