import orjson
import pytest
from rich.style import Style
from typer.testing import CliRunner

from crazytie.agents import BotProfile, ReflexBot, create_bots
from crazytie.core.players import ALL_PLAYERS, Player
from crazytie.core.registry import create_controller
from crazytie.core.rulesets import GameId
from crazytie.services.cli import RICH_COLORS, app, render_scoreboard, run_simulation

runner = CliRunner()


@pytest.mark.parametrize("game_id", list(GameId))
def test_bots_play_a_full_match(game_id):
    controller, bots = run_simulation(game_id, seed=11)

    assert controller.match_over
    assert len(controller.history) == controller.rules.max_rounds
    assert controller.scheduler.next_deadline() is None
    assert {bot.player for bot in bots} == {Player.P1, Player.P2}


def test_simulation_is_deterministic_for_a_seed():
    first, _ = run_simulation(GameId.NERVE, seed=5)
    second, _ = run_simulation(GameId.NERVE, seed=5)

    assert [(r.winner, r.reason, r.ended_at) for r in first.history] == [
        (r.winner, r.reason, r.ended_at) for r in second.history
    ]


def test_tap_battle_bots_actually_tap():
    controller, bots = run_simulation(GameId.TAP_BATTLE, seed=3)
    assert all(bot.taps > 30 for bot in bots)
    assert sum(controller.history[0].scores.values()) == sum(bot.taps for bot in bots)


def test_reflex_bots_hit_and_miss(scheduler):
    controller = create_controller(GameId.REFLEX, scheduler)
    sloppy = BotProfile(hit_accuracy=0.5)
    bots = create_bots(controller, seed=2, profiles={Player.P1: sloppy, Player.P2: sloppy})
    controller.start()
    scheduler.run_until_idle()

    assert all(isinstance(bot, ReflexBot) for bot in bots)
    assert sum(controller.correct.values()) > 0
    assert sum(bot.wrong_taps for bot in bots) > 0


def test_bot_profile_validation():
    with pytest.raises(ValueError):
        BotProfile(hit_accuracy=1.5)
    with pytest.raises(ValueError):
        BotProfile(nerve_hold=(2.0, 1.0))


def test_cli_lists_games():
    result = runner.invoke(app, ["games"])
    assert result.exit_code == 0
    assert "QUICK REACTION" in result.output
    assert "nerve" in result.output


def test_cli_simulate_writes_transcript(tmp_path):
    out = tmp_path / "reaction.json"
    result = runner.invoke(
        app,
        ["simulate", "reaction", "--seed", "4", "--config", str(tmp_path / "none.json"), "--transcript", str(out)],
    )
    assert result.exit_code == 0, result.output
    data = orjson.loads(out.read_bytes())
    assert data["game"] == "reaction"
    assert data["seed"] == 4
    assert len(data["rounds"]) == 5


def test_cli_simulate_applies_config(tmp_path):
    config = tmp_path / "rules.json"
    config.write_bytes(orjson.dumps({"games": {"nerve": {"max_rounds": 2}}}))
    out = tmp_path / "nerve.json"
    result = runner.invoke(
        app,
        ["simulate", "chicken", "--seed", "1", "--transcript", str(out)],
        env={"CRAZYTIE_CONFIG": str(config)},
    )
    assert result.exit_code == 0, result.output
    assert len(orjson.loads(out.read_bytes())["rounds"]) == 2


def test_cli_rejects_unknown_game():
    result = runner.invoke(app, ["simulate", "pong"])
    assert result.exit_code == 1
    assert "Unknown game" in result.output


def test_player_accents_render_as_rich_styles():
    for player in ALL_PLAYERS:
        assert Style.parse(RICH_COLORS[player.color]).color is not None


def test_scoreboard_renders_every_round(capsys):
    controller, bots = run_simulation(GameId.REACTION, seed=4)
    render_scoreboard(controller, bots)

    out = capsys.readouterr().out
    assert "QUICK REACTION" in out
    assert "Final score" in out
