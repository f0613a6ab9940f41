"""Scripted bot players that drive a controller through its scheduler."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple, Type

import structlog

from .core.engine import RoundController
from .core.players import ALL_PLAYERS, Player
from .core.reflex import ReflexController
from .core.rulesets import GameId
from .core.scheduler import TimerHandle, TimerScheduler
from .core.schemas import GameSnapshot, Phase, ReflexSnapshot
from .utils.rng import build_rng, uniform_in

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BotProfile:
    """How a bot plays. Times are in seconds."""

    reaction_delay: Tuple[float, float] = (0.18, 0.45)
    jump_start_chance: float = 0.1
    tap_rate: float = 7.0
    hit_accuracy: float = 0.85
    nerve_hold: Tuple[float, float] = (0.4, 3.2)

    def __post_init__(self) -> None:
        for name in ("jump_start_chance", "hit_accuracy"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        if self.tap_rate <= 0:
            raise ValueError("tap_rate must be positive")
        for name in ("reaction_delay", "nerve_hold"):
            low, high = getattr(self, name)
            if low < 0 or high < low:
                raise ValueError(f"{name} must be a non-negative (low, high) range")


DEFAULT_PROFILE = BotProfile()


class BaseBot:
    """Follows a controller's snapshots and reacts to phase changes.

    Every tap a bot plans is a timer on the controller's own scheduler, so a
    simulation on a manual clock replays identically for the same seed. Timers
    planned in one phase are cancelled as soon as the controller leaves it.
    """

    def __init__(
        self,
        player: Player,
        controller: RoundController,
        *,
        rng: Optional[random.Random] = None,
        profile: BotProfile = DEFAULT_PROFILE,
    ) -> None:
        self.player = player
        self.controller = controller
        self.rng = rng or build_rng()
        self.profile = profile
        self.taps = 0
        self._pending: List[TimerHandle] = []
        self._last_phase: Optional[Phase] = None
        self._last_round: Optional[int] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._log = LOGGER.bind(game=controller.GAME.value, player=player.value)

    @property
    def scheduler(self) -> TimerScheduler:
        return self.controller.scheduler

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.controller.subscribe(self._on_snapshot)

    def detach(self) -> None:
        self._cancel_pending()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def on_phase(self, snapshot: GameSnapshot) -> None:
        """Called once per phase entered."""

    def on_update(self, snapshot: GameSnapshot) -> None:
        """Called for every snapshot, after :meth:`on_phase`."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def tap_after(self, delay: float) -> TimerHandle:
        return self._plan(delay, self.tap)

    def tap(self) -> None:
        self.taps += 1
        self.controller.player_acted(self.player)

    def _plan(self, delay: float, action: Callable[[], Optional[bool]], *, repeating: bool = False) -> TimerHandle:
        label = f"bot:{self.player.value}"
        if repeating:
            handle = self.scheduler.schedule_repeating(delay, action, label=label)
        else:
            handle = self.scheduler.schedule(delay, action, label=label)
        self._pending.append(handle)
        return handle

    def _cancel_pending(self) -> None:
        for handle in self._pending:
            handle.cancel()
        self._pending = []

    def _on_snapshot(self, snapshot: GameSnapshot) -> None:
        if snapshot.phase != self._last_phase or snapshot.round != self._last_round:
            self._cancel_pending()
            self._last_phase = snapshot.phase
            self._last_round = snapshot.round
            self.on_phase(snapshot)
        self.on_update(snapshot)


class ReactionBot(BaseBot):
    """Waits for the signal, sometimes jumping the gun."""

    def on_phase(self, snapshot: GameSnapshot) -> None:
        if snapshot.phase == Phase.ARMING and self.rng.random() < self.profile.jump_start_chance:
            arming_min = getattr(self.controller.rules, "arming_min", 1.0)
            self.tap_after(self.rng.uniform(0.1, arming_min))
        elif snapshot.phase == Phase.LIVE:
            self.tap_after(uniform_in(self.rng, self.profile.reaction_delay))


class TapBattleBot(BaseBot):
    """Taps at a steady rate for as long as the battle runs."""

    def on_phase(self, snapshot: GameSnapshot) -> None:
        if snapshot.phase != Phase.PLAYING:
            return
        interval = 1.0 / self.profile.tap_rate
        # Offset the first tap so the two bots do not land on the same instant.
        first = self.rng.uniform(0.0, interval)

        def start() -> None:
            self.tap()
            self._plan(interval, self._keep_tapping, repeating=True)

        self._plan(first, start)

    def _keep_tapping(self) -> Optional[bool]:
        if self.controller.phase != Phase.PLAYING:
            return False
        self.tap()
        return None


class ReflexBot(BaseBot):
    """Hits its own targets, occasionally swiping at the opponent's."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._seen: Set[int] = set()
        self.wrong_taps = 0

    @property
    def reflex(self) -> ReflexController:
        return self.controller  # type: ignore[return-value]

    def on_phase(self, snapshot: GameSnapshot) -> None:
        if snapshot.phase == Phase.WAITING:
            self._seen = set()

    def on_update(self, snapshot: GameSnapshot) -> None:
        if snapshot.phase != Phase.PLAYING or not isinstance(snapshot, ReflexSnapshot):
            return
        for target in snapshot.targets:
            if target.id in self._seen:
                continue
            self._seen.add(target.id)
            delay = uniform_in(self.rng, self.profile.reaction_delay)
            if target.owner == self.player:
                if self.rng.random() < self.profile.hit_accuracy:
                    self._plan(delay, self._hit(target.id))
            elif self.rng.random() < (1.0 - self.profile.hit_accuracy) / 2:
                self._plan(delay, self._swipe(target.id))

    def _hit(self, target_id: int) -> Callable[[], None]:
        def action() -> None:
            self.taps += 1
            self.reflex.target_hit(target_id)

        return action

    def _swipe(self, target_id: int) -> Callable[[], None]:
        def action() -> None:
            self.wrong_taps += 1
            self.reflex.wrong_tap(target_id, self.player)

        return action


class NerveBot(BaseBot):
    """Holds out for a random time once the danger window opens."""

    def on_phase(self, snapshot: GameSnapshot) -> None:
        if snapshot.phase == Phase.BUILDING and self.rng.random() < self.profile.jump_start_chance:
            building = getattr(self.controller.rules, "building_duration", 4.0)
            self.tap_after(self.rng.uniform(0.5, building))
        elif snapshot.phase == Phase.DANGER:
            self.tap_after(uniform_in(self.rng, self.profile.nerve_hold))


BOT_TYPES: Dict[GameId, Type[BaseBot]] = {
    GameId.REACTION: ReactionBot,
    GameId.TAP_BATTLE: TapBattleBot,
    GameId.REFLEX: ReflexBot,
    GameId.NERVE: NerveBot,
}


def create_bots(
    controller: RoundController,
    *,
    seed: Optional[int] = None,
    profiles: Optional[Dict[Player, BotProfile]] = None,
    attach: bool = True,
) -> List[BaseBot]:
    """Create one bot per player for ``controller``.

    Each bot gets its own generator derived from ``seed`` so that the two
    players do not mirror each other.
    """

    bot_cls = BOT_TYPES[controller.GAME]
    bots: List[BaseBot] = []
    for player in ALL_PLAYERS:
        rng = build_rng(seed=None if seed is None else seed * 10 + player.number)
        profile = (profiles or {}).get(player, DEFAULT_PROFILE)
        bot = bot_cls(player, controller, rng=rng, profile=profile)
        if attach:
            bot.attach()
        bots.append(bot)
    LOGGER.debug("bots.created", game=controller.GAME.value, seed=seed, count=len(bots))
    return bots
