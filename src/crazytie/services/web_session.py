"""Game sessions hosted for a local web frontend."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

import structlog

from ..core.engine import RoundController
from ..core.reflex import ReflexController
from ..core.registry import create_controller
from ..core.rulesets import GameId, GameRules, parse_game_id
from ..core.scheduler import Clock, TimerScheduler
from ..core.schemas import (
    GameAction,
    GameSnapshot,
    PlayerActedAction,
    ResetAction,
    ScreenTapAction,
    StartAction,
    TargetHitAction,
    WrongTapAction,
    validate_action,
)
from ..core.transcript import MatchTranscript
from ..utils.rng import build_rng

LOGGER = structlog.get_logger(__name__)

ClockFactory = Callable[[], Clock]


class GameSession:
    """Owns one controller and pumps its scheduler on the running event loop."""

    def __init__(
        self,
        game: "GameId | str",
        *,
        session_id: Optional[str] = None,
        seed: Optional[int] = None,
        rules: Optional[Mapping[GameId, GameRules]] = None,
        clock: Optional[Clock] = None,
        autopump: bool = True,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.game = parse_game_id(game)
        self.seed = seed
        self.created_at = time.time()
        self.scheduler = TimerScheduler(clock)
        self.controller: RoundController = create_controller(
            self.game, self.scheduler, rules=rules, rng=build_rng(seed=seed)
        )
        self.autopump = autopump
        self.version = 0
        self._unsubscribe = self.controller.subscribe(self._on_snapshot)
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[Any]] = None
        self._stopped = False
        self._log = LOGGER.bind(session=self.session_id, game=self.game.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the match and, with ``autopump``, the background timer loop."""

        async with self._lock:
            self.controller.start()
        if self.autopump and (self._task is None or self._task.done()):
            self._task = asyncio.create_task(self.scheduler.run_forever())
        self._log.info("session.started", autopump=self.autopump)

    async def stop_async(self) -> None:
        self.scheduler.stop()
        task = self._task
        self._task = None
        if task is not None:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:  # pragma: no cover - expected during shutdown
                pass
            except Exception as exc:
                # The pump stopped on an error before shutdown.
                self._log.error("session.pump_failed", error=repr(exc))
        async with self._lock:
            self._unsubscribe()
            self.controller.close()
            self.scheduler.cancel_all()
            self._stopped = True
        self._log.info("session.stopped", version=self.version)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def submit_action_async(self, payload: Dict[str, Any]) -> GameSnapshot:
        """Validate a command payload and apply it to the controller.

        Raises:
            SchemaValidationError: the payload is malformed
            ValueError: the command does not apply to this game
        """

        action = validate_action(payload)
        async with self._lock:
            self._ensure_running()
            self.scheduler.run_due()
            return self._dispatch(action)

    async def reset_async(self) -> GameSnapshot:
        async with self._lock:
            self._ensure_running()
            return self.controller.reset()

    def _dispatch(self, action: GameAction) -> GameSnapshot:
        controller = self.controller
        if isinstance(action, PlayerActedAction):
            return controller.player_acted(action.player)
        if isinstance(action, StartAction):
            return controller.start()
        if isinstance(action, ResetAction):
            return controller.reset()
        if not isinstance(controller, ReflexController):
            raise ValueError(f"{action.type.value} is only accepted by the reflex game")
        if isinstance(action, TargetHitAction):
            return controller.target_hit(action.target_id)
        if isinstance(action, WrongTapAction):
            return controller.wrong_tap(action.target_id, action.player)
        if isinstance(action, ScreenTapAction):
            return controller.screen_tapped(action.x, action.y)
        raise ValueError(f"Unsupported action {action.type.value}")

    def _ensure_running(self) -> None:
        if self._stopped:
            raise ValueError(f"Session {self.session_id} has been stopped")

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    async def status_async(self) -> Dict[str, Any]:
        async with self._lock:
            if not self._stopped:
                # Without the background loop, polling is what moves the timers.
                self.scheduler.run_due()
            snapshot = self.controller.snapshot()
            return {
                "sessionId": self.session_id,
                "game": self.game.value,
                "seed": self.seed,
                "version": self.version,
                "stopped": self._stopped,
                "state": snapshot.model_dump(mode="json"),
            }

    def transcript(self) -> MatchTranscript:
        return MatchTranscript.from_controller(self.controller, seed=self.seed)

    def _on_snapshot(self, snapshot: GameSnapshot) -> None:
        self.version += 1


class SessionManager:
    """Registry for multiple concurrent :class:`GameSession` instances."""

    def __init__(
        self,
        *,
        clock_factory: Optional[ClockFactory] = None,
        autopump: bool = True,
        rules: Optional[Mapping[GameId, GameRules]] = None,
    ) -> None:
        self._sessions: Dict[str, GameSession] = {}
        self._lock = asyncio.Lock()
        self.clock_factory = clock_factory
        self.autopump = autopump
        self.rules = rules

    async def create_session(self, game: "GameId | str", *, seed: Optional[int] = None) -> GameSession:
        session = GameSession(
            game,
            seed=seed,
            rules=self.rules,
            clock=self.clock_factory() if self.clock_factory else None,
            autopump=self.autopump,
        )
        async with self._lock:
            self._sessions[session.session_id] = session
        await session.start()
        return session

    async def get(self, session_id: str) -> GameSession:
        async with self._lock:
            if session_id not in self._sessions:
                raise KeyError(f"Unknown session {session_id}")
            return self._sessions[session_id]

    async def stop(self, session_id: str) -> None:
        async with self._lock:
            session = self._sessions.get(session_id)
            if not session:
                raise KeyError(f"Unknown session {session_id}")
            del self._sessions[session_id]
        await session.stop_async()


SESSION_MANAGER = SessionManager()
"""Default registry used by the FastAPI app."""
