"""Reflex-Target game: hit your own targets before they expire."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..utils.rng import pick_one, random_point, uniform_in
from .engine import RoundController
from .players import ALL_PLAYERS, Player
from .rulesets import GameId, ReflexRules
from .scheduler import TimerHandle
from .schemas import GameSnapshot, Phase, ReflexSnapshot, TargetView


@dataclass
class Target:
    """A target on screen, owned by the player who scores by hitting it."""

    id: int
    owner: Player
    x: float
    y: float
    size: float
    spawned_at: float
    expires_at: float
    expiry: Optional[TimerHandle] = field(default=None, repr=False)

    def contains(self, x: float, y: float) -> bool:
        return math.hypot(self.x - x, self.y - y) <= self.size / 2

    def view(self) -> TargetView:
        return TargetView(
            id=self.id,
            owner=self.owner,
            x=self.x,
            y=self.y,
            size=self.size,
            spawned_at=self.spawned_at,
            expires_at=self.expires_at,
        )


class ReflexController(RoundController):
    """One timed wave of targets.

    A target leaves the board exactly once: either it is hit, or its lifetime
    runs out. Whichever happens first cancels the other, so a hit target can
    never expire and an expired target can never be scored.

    Every hit reported through :meth:`target_hit` is credited to the target's
    owner. :meth:`wrong_tap` is the penalty path for a presentation layer that
    can tell which player actually touched the target.
    """

    GAME = GameId.REFLEX
    PHASES = frozenset(
        {Phase.WAITING, Phase.COUNTDOWN, Phase.PLAYING, Phase.FINISHED, Phase.MATCH_OVER}
    )
    SCORE_FLOOR = 0

    rules: ReflexRules

    def _reset_round_state(self) -> None:
        super()._reset_round_state()
        self.time_remaining = math.ceil(self.rules.duration)
        self.targets: Dict[int, Target] = {}
        self.spawned = 0
        self.expired = 0
        self.correct: Dict[Player, int] = {player: 0 for player in ALL_PLAYERS}
        self.wrong: Dict[Player, int] = {player: 0 for player in ALL_PLAYERS}
        self._target_ids = itertools.count(1)
        self._ends_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def target_hit(self, target_id: int) -> GameSnapshot:
        """Credit a hit on ``target_id`` to the target's owner."""

        target = self._consume(target_id)
        if target is None:
            return self.snapshot()
        self._on_correct_tap(target)
        self._check_exhausted()
        return self._publish()

    def wrong_tap(self, target_id: int, player: Player) -> GameSnapshot:
        """Penalise ``player`` for hitting a target that is not theirs."""

        target = self._consume(target_id)
        if target is None:
            return self.snapshot()
        self._on_wrong_tap(target, player)
        self._check_exhausted()
        return self._publish()

    def screen_tapped(self, x: float, y: float) -> GameSnapshot:
        """Hit-test a raw touch and route it to :meth:`target_hit`."""

        if self.phase == Phase.PLAYING:
            for target in self.targets.values():
                if target.contains(x, y):
                    return self.target_hit(target.id)
        self._log.debug("reflex.tap_missed", x=x, y=y, phase=self.phase.value)
        return self.snapshot()

    def _on_player_acted(self, player: Player) -> bool:
        # Reflex input is per target, see target_hit / wrong_tap.
        return False

    # ------------------------------------------------------------------
    # Scoring rules
    # ------------------------------------------------------------------

    def _on_correct_tap(self, target: Target) -> None:
        self.ledger.add(target.owner, self.rules.correct_points)
        self.correct[target.owner] += 1

    def _on_wrong_tap(self, target: Target, player: Player) -> None:
        self.ledger.add(player, -self.rules.wrong_penalty)
        self.wrong[player] += 1
        self._log.debug("reflex.wrong_tap", target=target.id, owner=target.owner.value, player=player.value)

    # ------------------------------------------------------------------
    # Wave lifecycle
    # ------------------------------------------------------------------

    def _on_countdown_complete(self) -> None:
        self._enter(Phase.PLAYING)
        self._ends_at = self.now() + self.rules.duration
        self.time_remaining = math.ceil(self.rules.duration)
        self._every(1.0, self._tick, label="clock")
        self._every(self.rules.spawn_interval, self._spawn_tick, label="spawn")
        self._after(self.rules.duration, self._end_wave, label="wave")

    def _tick(self) -> None:
        if self._ends_at is not None:
            self.time_remaining = max(0, math.ceil(self._ends_at - self.now()))

    def _spawn_tick(self) -> Optional[bool]:
        if self.spawned < self.rules.total_targets and self.phase == Phase.PLAYING:
            self._spawn()
            return None
        if not self.targets:
            self._end_wave()
        return False

    def _spawn(self) -> Target:
        now = self.now()
        owner = pick_one(self.rng, ALL_PLAYERS)
        x, y = random_point(self.rng, self.rules.x_range, self.rules.y_range)
        target = Target(
            id=next(self._target_ids),
            owner=owner,
            x=x,
            y=y,
            size=uniform_in(self.rng, self.rules.size_range),
            spawned_at=now,
            expires_at=now + self.rules.target_lifetime,
        )
        target.expiry = self._after(
            self.rules.target_lifetime, lambda: self._expire(target.id), label="target"
        )
        self.targets[target.id] = target
        self.spawned += 1
        return target

    def _expire(self, target_id: int) -> None:
        target = self.targets.pop(target_id, None)
        if target is None:
            return
        self.expired += 1
        self._check_exhausted()

    def _consume(self, target_id: int) -> Optional[Target]:
        if self.closed or self.phase != Phase.PLAYING:
            self._log.debug("input.ignored", target=target_id, phase=self.phase.value)
            return None
        target = self.targets.pop(target_id, None)
        if target is None:
            self._log.debug("reflex.unknown_target", target=target_id)
            return None
        if target.expiry is not None:
            target.expiry.cancel()
        return target

    def _check_exhausted(self) -> None:
        if self.phase == Phase.PLAYING and self.spawned >= self.rules.total_targets and not self.targets:
            self._end_wave()

    def _end_wave(self) -> None:
        if self.phase != Phase.PLAYING:
            return
        self.time_remaining = max(0, math.ceil((self._ends_at or self.now()) - self.now()))
        self.targets = {}
        winner = self.ledger.leader()
        reason = "It's a tie!" if winner is None else f"{winner.display_name} wins!"
        self._finish_round(winner, reason)

    def _round_details(self) -> Dict[str, Any]:
        return {
            "spawned": self.spawned,
            "expired": self.expired,
            "correct": {player.value: count for player, count in self.correct.items()},
            "wrong": {player.value: count for player, count in self.wrong.items()},
        }

    def snapshot(self) -> ReflexSnapshot:
        return ReflexSnapshot(
            **self._base_fields(),
            time_remaining=self.time_remaining,
            spawned=self.spawned,
            total_targets=self.rules.total_targets,
            targets=[target.view() for target in self.targets.values()],
            correct=dict(self.correct),
            wrong=dict(self.wrong),
        )
