"""Match transcript generation and persistence utilities."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
import structlog

from .engine import RoundController, RoundResult

LOGGER = structlog.get_logger(__name__)

RUNS_DIR = Path("runs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


@dataclass(slots=True)
class RoundRecord:
    """Single round entry in the transcript."""

    round: int
    outcome: str
    winner: Optional[str]
    reason: str
    scores: Dict[str, int]
    ended_at: float
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: RoundResult) -> "RoundRecord":
        return cls(
            round=result.round_num,
            outcome=result.phase.value,
            winner=result.winner.value if result.winner else None,
            reason=result.reason,
            scores={player.value: score for player, score in result.scores.items()},
            ended_at=round(result.ended_at, 6),
            details=dict(result.details),
        )


@dataclass(slots=True)
class MatchTranscript:
    """Complete transcript structure before serialization."""

    game: str
    seed: Optional[int]
    rules: Dict[str, Any]
    rounds: List[RoundRecord] = field(default_factory=list)
    final_scores: Dict[str, int] = field(default_factory=dict)
    match_over: bool = False
    winner: Optional[str] = None

    @classmethod
    def from_controller(cls, controller: RoundController, *, seed: Optional[int] = None) -> "MatchTranscript":
        winner = controller.match_winner
        return cls(
            game=controller.GAME.value,
            seed=seed,
            rules=_rules_to_dict(controller.rules),
            rounds=[RoundRecord.from_result(result) for result in controller.history],
            final_scores={player.value: score for player, score in controller.ledger.as_dict().items()},
            match_over=controller.match_over,
            winner=winner.value if winner else None,
        )

    def to_json(self) -> bytes:
        """Serialize the transcript using orjson."""
        return orjson.dumps(self, default=_to_serializable, option=orjson.OPT_INDENT_2)

    def write(self, path: Optional[Path] = None, *, runs_dir: Path = RUNS_DIR) -> Path:
        """Write the transcript; defaults to ``runs/<timestamp>_<game>.json``."""

        if path is None:
            runs_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            suffix = f"_{self.seed}" if self.seed is not None else ""
            path = runs_dir / f"{timestamp}_{self.game}{suffix}.json"
        else:
            path.parent.mkdir(parents=True, exist_ok=True)

        path.write_bytes(self.to_json())
        LOGGER.info("transcript.written", path=str(path), rounds=len(self.rounds))
        return path


def _rules_to_dict(rules: Any) -> Dict[str, Any]:
    return {item.name: getattr(rules, item.name) for item in fields(rules)}


def _to_serializable(obj: Any) -> Any:
    if hasattr(obj, "__dataclass_fields__"):
        return {name: getattr(obj, name) for name in obj.__dataclass_fields__}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, tuple):
        return list(obj)
    raise TypeError(f"Type {type(obj).__name__} is not JSON serializable")
