"""Shared round/match state machine for the two-player mini-games.

Every game follows the same outer loop::

    WAITING --intro_delay--> COUNTDOWN (3, 2, 1) --> <game phases> --> FINISHED
        FINISHED --round_end_delay--> WAITING (next round) | MATCH_OVER

:class:`RoundController` owns that loop, the score ledger and every timer a
phase arms. Subclasses implement the game-specific middle section via
:meth:`RoundController._on_countdown_complete` and
:meth:`RoundController._on_player_acted`.

Timers are always armed through :meth:`RoundController._after` /
:meth:`RoundController._every`, which tie them to the current phase. Entering
a new phase cancels them before anything new is armed, so a callback from an
abandoned phase can never touch the current one.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Optional

import structlog

from ..utils.rng import build_rng
from .players import Player
from .rulesets import GameId, GameRules, get_rules
from .schemas import GameSnapshot, Phase
from .scheduler import TimerAction, TimerHandle, TimerScheduler
from .scoring import ScoreLedger

LOGGER = structlog.get_logger(__name__)

SnapshotListener = Callable[[GameSnapshot], None]


class EngineError(RuntimeError):
    """Raised when a controller is used outside its contract."""


@dataclass
class RoundResult:
    """Outcome of a single round."""

    round_num: int
    phase: Phase
    winner: Optional[Player]
    reason: str
    scores: Dict[Player, int]
    ended_at: float
    details: Dict[str, Any] = field(default_factory=dict)


class RoundController(ABC):
    """Base class for the four game controllers."""

    GAME: ClassVar[GameId]
    PHASES: ClassVar[FrozenSet[Phase]]
    SCORE_FLOOR: ClassVar[Optional[int]] = None

    def __init__(
        self,
        scheduler: TimerScheduler,
        *,
        rules: Optional[GameRules] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        rules = rules or get_rules(self.GAME)
        if rules.game != self.GAME:
            raise EngineError(f"{type(self).__name__} cannot run {rules.game.value} rules")
        self.scheduler = scheduler
        self.rules = rules
        self.rng = rng or build_rng()
        self.ledger = ScoreLedger(floor=self.SCORE_FLOOR)

        self.phase: Phase = Phase.WAITING
        self.round_num = 1
        self.countdown = rules.countdown_from
        self.round_winner: Optional[Player] = None
        self.win_reason = ""
        self.history: List[RoundResult] = []
        self.started = False
        self.closed = False

        self._timers: List[TimerHandle] = []
        self._listeners: List[SnapshotListener] = []
        self._log = LOGGER.bind(game=self.GAME.value)
        self._reset_round_state()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> GameSnapshot:
        """Begin a match. Ignored while a match is already running."""

        self._ensure_open()
        if self.started and self.phase != Phase.MATCH_OVER:
            return self.snapshot()
        self._begin_match()
        return self._publish()

    def reset(self) -> GameSnapshot:
        """Abandon the current match, clearing scores, and start a new one."""

        self._ensure_open()
        self._log.info("match.reset", round=self.round_num, phase=self.phase.value)
        self._begin_match()
        return self._publish()

    def player_acted(self, player: Player) -> GameSnapshot:
        """Register a tap from ``player``; taps in illegal phases are ignored."""

        if self.closed or not self._on_player_acted(player):
            self._log.debug("input.ignored", player=player.value, phase=self.phase.value)
            return self.snapshot()
        return self._publish()

    def close(self) -> None:
        """Cancel everything; the controller accepts no further commands."""

        self._cancel_phase_timers()
        self.closed = True
        self._listeners.clear()
        self._log.debug("controller.closed")

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @abstractmethod
    def snapshot(self) -> GameSnapshot:
        """Return an immutable view of the current state."""

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every state change."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def match_over(self) -> bool:
        return self.phase == Phase.MATCH_OVER

    @property
    def match_winner(self) -> Optional[Player]:
        return self.ledger.leader() if self.match_over else None

    @property
    def active_timers(self) -> int:
        return sum(1 for handle in self._timers if handle.active)

    def now(self) -> float:
        return self.scheduler.now()

    # ------------------------------------------------------------------
    # Game hooks
    # ------------------------------------------------------------------

    def _reset_round_state(self) -> None:
        """Clear per-round fields (override and call super)."""
        self.round_winner = None
        self.win_reason = ""
        self.countdown = self.rules.countdown_from

    @abstractmethod
    def _on_countdown_complete(self) -> None:
        """Enter the first game-specific phase."""

    @abstractmethod
    def _on_player_acted(self, player: Player) -> bool:
        """Apply a tap. Return ``False`` if it was ignored."""

    def _round_details(self) -> Dict[str, Any]:
        return {}

    # ------------------------------------------------------------------
    # Shared flow
    # ------------------------------------------------------------------

    def _begin_match(self) -> None:
        self._cancel_phase_timers()
        self.ledger.reset()
        self.history = []
        self.round_num = 1
        self.started = True
        self._log.info("match.start", max_rounds=self.rules.max_rounds)
        self._begin_round()

    def _begin_round(self) -> None:
        self._enter(Phase.WAITING)
        self._reset_round_state()
        self._after(self.rules.intro_delay, self._start_countdown, label="intro")

    def _start_countdown(self) -> None:
        self._enter(Phase.COUNTDOWN)
        self.countdown = self.rules.countdown_from

        def tick() -> Optional[bool]:
            if self.countdown > 1:
                self.countdown -= 1
                return None
            self._on_countdown_complete()
            return False

        self._every(self.rules.countdown_interval, tick, label="countdown")

    def _finish_round(self, winner: Optional[Player], reason: str, *, phase: Phase = Phase.FINISHED) -> None:
        self._enter(phase)
        self.round_winner = winner
        self.win_reason = reason
        result = RoundResult(
            round_num=self.round_num,
            phase=phase,
            winner=winner,
            reason=reason,
            scores=self.ledger.as_dict(),
            ended_at=self.now(),
            details=self._round_details(),
        )
        self.history.append(result)
        self._log.info(
            "round.finished",
            round=self.round_num,
            outcome=phase.value,
            winner=winner.value if winner else None,
            reason=reason,
            p1=result.scores[Player.P1],
            p2=result.scores[Player.P2],
        )
        self._after(self.rules.round_end_delay, self._advance_round, label="round_end")

    def _advance_round(self) -> None:
        if self.round_num >= self.rules.max_rounds:
            self._enter(Phase.MATCH_OVER)
            winner = self.ledger.leader()
            self._log.info(
                "match.over",
                rounds=self.round_num,
                winner=winner.value if winner else None,
                p1=self.ledger.score(Player.P1),
                p2=self.ledger.score(Player.P2),
            )
            return
        self.round_num += 1
        self._begin_round()

    # ------------------------------------------------------------------
    # Phase and timer bookkeeping
    # ------------------------------------------------------------------

    def _enter(self, phase: Phase) -> None:
        if phase not in self.PHASES:
            raise EngineError(f"{phase.value} is not a {self.GAME.value} phase")
        self._cancel_phase_timers()
        previous = self.phase
        self.phase = phase
        self._log.debug("phase.enter", round=self.round_num, previous=previous.value, phase=phase.value)

    def _after(self, delay: float, action: TimerAction, *, label: str = "") -> TimerHandle:
        handle = self.scheduler.schedule(delay, self._wrap(action), label=label)
        self._timers.append(handle)
        return handle

    def _every(self, interval: float, action: TimerAction, *, label: str = "") -> TimerHandle:
        handle = self.scheduler.schedule_repeating(interval, self._wrap(action), label=label)
        self._timers.append(handle)
        return handle

    def _cancel_phase_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers = []

    def _wrap(self, action: TimerAction) -> TimerAction:
        def fire() -> Any:
            result = action()
            self._publish()
            return result

        return fire

    def _ensure_open(self) -> None:
        if self.closed:
            raise EngineError(f"{self.GAME.value} controller has been closed")

    def _publish(self) -> GameSnapshot:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def _base_fields(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "countdown": self.countdown,
            "round": self.round_num,
            "max_rounds": self.rules.max_rounds,
            "scores": self.ledger.as_dict(),
            "round_winner": self.round_winner,
            "win_reason": self.win_reason,
            "match_over": self.match_over,
            "match_winner": self.match_winner,
        }
