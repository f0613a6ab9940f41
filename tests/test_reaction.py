import pytest

from crazytie.core.engine import EngineError
from crazytie.core.players import Player
from crazytie.core.reaction import ReactionController
from crazytie.core.rulesets import NerveRules, ReactionRules
from crazytie.core.schemas import Phase


@pytest.fixture()
def controller(scheduler, rng):
    return ReactionController(scheduler, rng=rng)


def test_countdown_then_arming(controller, scheduler):
    snapshot = controller.start()
    assert snapshot.phase is Phase.WAITING
    assert snapshot.round == 1

    scheduler.advance(2.0)
    assert controller.phase is Phase.COUNTDOWN
    assert controller.countdown == 3
    scheduler.advance(1.0)
    assert controller.countdown == 2
    scheduler.advance(1.0)
    assert controller.countdown == 1
    scheduler.advance(1.0)
    assert controller.phase is Phase.ARMING
    assert 2.0 <= controller.arming_delay <= 5.0


def test_tap_during_countdown_is_a_false_start(controller, scheduler):
    controller.start()
    scheduler.advance(3.0)
    assert controller.phase is Phase.COUNTDOWN

    snapshot = controller.player_acted(Player.P1)
    assert snapshot.phase is Phase.FALSE_START
    assert snapshot.scores == {Player.P1: 0, Player.P2: 1}
    assert snapshot.round_winner is Player.P2
    assert snapshot.win_reason == "PLAYER 1 tapped too early!"
    assert controller.active_timers == 1  # round-end only

    # The countdown never resumes.
    scheduler.advance(1.5)
    assert controller.phase is Phase.FALSE_START
    assert controller.arming_delay is None


def test_tap_while_waiting_is_a_false_start(controller, scheduler):
    controller.start()
    snapshot = controller.player_acted(Player.P2)

    assert snapshot.phase is Phase.FALSE_START
    assert snapshot.scores == {Player.P1: 1, Player.P2: 0}
    assert [result.phase for result in controller.history] == [Phase.FALSE_START]


def test_false_start_hands_point_to_opponent(controller, scheduler):
    controller.start()
    scheduler.advance(5.0)
    assert controller.phase is Phase.ARMING

    snapshot = controller.player_acted(Player.P1)
    assert snapshot.phase is Phase.FALSE_START
    assert snapshot.scores == {Player.P1: 0, Player.P2: 1}
    assert snapshot.round_winner is Player.P2
    assert snapshot.win_reason == "PLAYER 1 tapped too early!"

    # The signal never goes live for this round.
    scheduler.advance(1.0)
    assert controller.phase is Phase.FALSE_START
    assert controller.reaction_time is None

    # Further taps while the false start is shown change nothing.
    again = controller.player_acted(Player.P2)
    assert again.phase is Phase.FALSE_START
    assert again.scores == {Player.P1: 0, Player.P2: 1}
    assert len(controller.history) == 1


def test_first_live_tap_wins_with_reaction_time(controller, scheduler):
    controller.start()
    scheduler.advance(5.0)
    scheduler.advance(controller.arming_delay)
    assert controller.phase is Phase.LIVE

    scheduler.advance(0.25)
    snapshot = controller.player_acted(Player.P2)
    assert snapshot.phase is Phase.FINISHED
    assert snapshot.scores == {Player.P1: 0, Player.P2: 1}
    assert snapshot.round_winner is Player.P2
    assert snapshot.reaction_time == pytest.approx(0.25)

    # Locked out until the next round.
    late = controller.player_acted(Player.P1)
    assert late.scores == {Player.P1: 0, Player.P2: 1}
    assert len(controller.history) == 1


def test_round_advances_after_result(controller, scheduler):
    controller.start()
    scheduler.advance(5.0)
    controller.player_acted(Player.P1)

    scheduler.advance(1.9)
    assert controller.phase is Phase.FALSE_START
    scheduler.advance(0.1)
    assert controller.phase is Phase.WAITING
    assert controller.round_num == 2
    assert controller.round_winner is None
    assert controller.ledger.score(Player.P2) == 1


def test_full_match_reaches_match_over(controller, scheduler, advance_until):
    controller.start()
    for expected_round in range(1, 6):
        advance_until(scheduler, lambda: controller.phase is Phase.LIVE)
        assert controller.round_num == expected_round
        controller.player_acted(Player.P1)

    advance_until(scheduler, lambda: controller.match_over)
    snapshot = controller.snapshot()
    assert snapshot.match_over
    assert snapshot.match_winner is Player.P1
    assert snapshot.scores == {Player.P1: 5, Player.P2: 0}
    assert snapshot.round == 5
    assert scheduler.next_deadline() is None
    assert [result.round_num for result in controller.history] == [1, 2, 3, 4, 5]

    after = controller.player_acted(Player.P2)
    assert after.phase is Phase.MATCH_OVER
    assert after.scores == {Player.P1: 5, Player.P2: 0}
    assert len(controller.history) == 5


def test_reset_cancels_timers_and_restarts(controller, scheduler):
    controller.start()
    scheduler.advance(5.0)
    controller.player_acted(Player.P2)
    assert controller.ledger.score(Player.P1) == 1

    snapshot = controller.reset()
    assert snapshot.phase is Phase.WAITING
    assert snapshot.round == 1
    assert snapshot.scores == {Player.P1: 0, Player.P2: 0}
    assert controller.history == []
    assert controller.active_timers == 1  # only the new intro timer


def test_start_is_ignored_while_running(controller, scheduler):
    controller.start()
    scheduler.advance(3.0)
    snapshot = controller.start()
    assert snapshot.phase is Phase.COUNTDOWN


def test_close_cancels_everything(controller, scheduler):
    seen = []
    controller.subscribe(seen.append)
    controller.start()
    controller.close()

    scheduler.advance(30.0)
    assert controller.phase is Phase.WAITING
    assert controller.active_timers == 0
    assert len(seen) == 1
    with pytest.raises(EngineError):
        controller.start()


def test_subscribe_and_unsubscribe(controller, scheduler):
    seen = []
    unsubscribe = controller.subscribe(seen.append)
    controller.start()
    scheduler.advance(2.0)
    assert [snapshot.phase for snapshot in seen] == [Phase.WAITING, Phase.COUNTDOWN]

    unsubscribe()
    scheduler.advance(1.0)
    assert len(seen) == 2


def test_rules_for_another_game_are_rejected(scheduler):
    with pytest.raises(EngineError):
        ReactionController(scheduler, rules=NerveRules())


def test_fixed_arming_delay(scheduler):
    controller = ReactionController(scheduler, rules=ReactionRules(arming_min=2.0, arming_max=2.0))
    controller.start()
    scheduler.advance(6.5)
    assert controller.phase is Phase.ARMING
    scheduler.advance(0.5)
    assert controller.phase is Phase.LIVE
