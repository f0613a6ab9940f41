import pytest

from crazytie.core.players import Player
from crazytie.core.schemas import Phase
from crazytie.core.tap_battle import TapBattleController


@pytest.fixture()
def battle(scheduler, rng):
    controller = TapBattleController(scheduler, rng=rng)
    controller.start()
    scheduler.advance(5.0)
    assert controller.phase is Phase.PLAYING
    return controller


def test_taps_outside_playing_are_ignored(scheduler, rng):
    controller = TapBattleController(scheduler, rng=rng)
    controller.start()
    controller.player_acted(Player.P1)
    scheduler.advance(3.0)
    controller.player_acted(Player.P2)
    assert controller.snapshot().taps == {Player.P1: 0, Player.P2: 0}


def test_clock_counts_down_in_whole_seconds(battle, scheduler):
    assert battle.snapshot().time_remaining == 10
    scheduler.advance(1.0)
    assert battle.snapshot().time_remaining == 9
    scheduler.advance(3.0)
    assert battle.snapshot().time_remaining == 6


def test_most_taps_wins_at_exactly_the_duration(battle, scheduler):
    for _ in range(3):
        battle.player_acted(Player.P1)
    for _ in range(2):
        battle.player_acted(Player.P2)

    scheduler.advance(9.5)
    assert battle.phase is Phase.PLAYING
    battle.player_acted(Player.P2)
    battle.player_acted(Player.P1)
    scheduler.advance(0.5)

    snapshot = battle.snapshot()
    assert snapshot.phase is Phase.FINISHED
    assert snapshot.taps == {Player.P1: 4, Player.P2: 3}
    assert snapshot.round_winner is Player.P1
    assert snapshot.win_reason == "PLAYER 1 wins!"
    assert snapshot.time_remaining == 0

    battle.player_acted(Player.P2)
    assert battle.taps(Player.P2) == 3


def test_equal_taps_is_a_tie(battle, scheduler):
    battle.player_acted(Player.P1)
    battle.player_acted(Player.P2)
    scheduler.advance(10.0)

    assert battle.round_winner is None
    assert battle.win_reason == "It's a tie!"

    scheduler.advance(3.0)
    snapshot = battle.snapshot()
    assert snapshot.match_over
    assert snapshot.match_winner is None
    assert scheduler.next_deadline() is None


def test_tap_effects_are_short_lived(battle, scheduler):
    snapshot = battle.player_acted(Player.P2)
    assert len(snapshot.tap_effects) == 1
    effect = snapshot.tap_effects[0]
    assert effect.player is Player.P2
    assert 50.0 <= effect.x <= 300.0
    assert 50.0 <= effect.y <= 200.0

    scheduler.advance(0.5)
    assert battle.snapshot().tap_effects == []
