"""Typer CLI entry point for listing games and running bot-driven matches."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import structlog
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..agents import BaseBot, create_bots
from ..core.engine import EngineError, RoundController
from ..core.players import ALL_PLAYERS
from ..core.registry import create_controller, get_all_games, get_game_title
from ..core.rulesets import DEFAULT_CONFIG_PATH, GameId, GameRules, load_rules_config, parse_game_id
from ..core.scheduler import ManualClock, SchedulerError, TimerScheduler
from ..core.transcript import MatchTranscript
from ..utils.rng import build_rng

LOGGER = structlog.get_logger(__name__)

app = typer.Typer(help="Two-player party mini-games: list them or simulate bot matches.", invoke_without_command=False)
console = Console()

# Player accent names mapped onto colours rich can parse.
RICH_COLORS: Dict[str, str] = {"red": "red", "orange": "dark_orange"}
_configured_logging = False


def configure_logging(*, verbose: bool = False) -> None:
    global _configured_logging
    if _configured_logging:
        return
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
        # Loggers resolve sys.stdout per call; the app may be invoked repeatedly in-process.
        cache_logger_on_first_use=False,
    )
    _configured_logging = True


def run_simulation(
    game: GameId,
    *,
    seed: Optional[int],
    rules: Optional[Dict[GameId, GameRules]] = None,
    time_limit: float = 3600.0,
) -> tuple[RoundController, List[BaseBot]]:
    """Play a full match between two bots on a manual clock."""

    scheduler = TimerScheduler(ManualClock())
    controller = create_controller(game, scheduler, rules=rules, rng=build_rng(seed=seed))
    bots = create_bots(controller, seed=seed)
    controller.start()
    scheduler.run_until_idle(limit=time_limit)
    for bot in bots:
        bot.detach()
    return controller, bots


def render_scoreboard(controller: RoundController, bots: List[BaseBot]) -> None:
    """Print the round-by-round results and the final score."""

    table = Table(title=get_game_title(controller.GAME), show_header=True, header_style="bold cyan")
    table.add_column("Round", justify="right")
    table.add_column("Outcome")
    table.add_column("Winner")
    table.add_column("Reason")
    for player in ALL_PLAYERS:
        table.add_column(player.display_name, justify="right", style=RICH_COLORS.get(player.color, "default"))

    for result in controller.history:
        table.add_row(
            str(result.round_num),
            result.phase.value,
            result.winner.display_name if result.winner else "-",
            result.reason,
            *(str(result.scores[player]) for player in ALL_PLAYERS),
        )
    console.print(table)

    winner = controller.match_winner
    headline = f"{winner.display_name} WINS!" if winner else "IT'S A TIE!"
    taps = ", ".join(f"{bot.player.display_name}: {bot.taps} taps" for bot in bots)
    scores = " - ".join(str(controller.ledger.score(player)) for player in ALL_PLAYERS)
    console.print(Panel(f"[bold]{headline}[/bold]\nFinal score {scores}\n[dim]{taps}[/dim]", expand=False))


@app.command("games")
def games() -> None:
    """List the available games."""

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("Subtitle")
    table.add_column("Rounds", justify="right")
    for info in get_all_games():
        table.add_row(info["id"], info["title"], info["subtitle"], str(info["max_rounds"]))
    console.print(table)


@app.command("simulate")
def simulate(
    game: str = typer.Argument(..., help="Game id: reaction, tap_battle, reflex or nerve"),
    seed: Optional[int] = typer.Option(None, help="Seed for a deterministic match"),
    config: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        envvar="CRAZYTIE_CONFIG",
        help="Path to a JSON file with per-game rule overrides",
    ),
    transcript: Optional[Path] = typer.Option(None, help="Write the match transcript JSON to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every phase change and ignored input"),
) -> None:
    """Play a whole match between two bots and print the scoreboard."""

    load_dotenv()
    configure_logging(verbose=verbose)

    try:
        game_id = parse_game_id(game)
    except ValueError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc

    try:
        rules = load_rules_config(config)
    except ValueError as exc:
        LOGGER.error("rules.invalid", path=str(config), error=str(exc))
        typer.echo(f"Error: invalid rules in {config}: {exc}")
        raise typer.Exit(code=1) from exc

    LOGGER.info("simulation.start", game=game_id.value, seed=seed, config=str(config))
    try:
        controller, bots = run_simulation(game_id, seed=seed, rules=rules)
    except (EngineError, SchedulerError) as exc:
        LOGGER.error("simulation.failed", game=game_id.value, error=str(exc))
        raise typer.Exit(code=1) from exc

    render_scoreboard(controller, bots)
    winner = controller.match_winner
    LOGGER.info(
        "simulation.complete",
        game=game_id.value,
        rounds=len(controller.history),
        winner=winner.value if winner else None,
    )

    if transcript is not None:
        path = MatchTranscript.from_controller(controller, seed=seed).write(transcript)
        typer.echo(f"Transcript saved to {path}")


if __name__ == "__main__":  # pragma: no cover
    app()
