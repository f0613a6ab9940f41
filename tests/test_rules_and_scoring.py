import orjson
import pytest
from pydantic import ValidationError

from crazytie.core.players import Player, parse_player
from crazytie.core.rulesets import (
    RULESETS,
    GameId,
    NerveRules,
    ReactionRules,
    ReflexRules,
    TapBattleRules,
    get_rules,
    load_rules_config,
    parse_game_id,
)
from crazytie.core.schemas import (
    ActionType,
    PlayerActedAction,
    ReactionSnapshot,
    SchemaValidationError,
    ScreenTapAction,
    Phase,
    validate_action,
)
from crazytie.core.scoring import ScoreLedger


def test_players_have_labels_colours_and_opponents():
    assert Player.P1.display_name == "PLAYER 1"
    assert Player.P2.color == "orange"
    assert Player.P1.opponent is Player.P2
    assert Player.P2.opponent is Player.P1
    assert parse_player(2) is Player.P2
    assert parse_player("p1") is Player.P1
    with pytest.raises(ValueError):
        parse_player("P3")


def test_ledger_leader_and_floor():
    ledger = ScoreLedger()
    assert ledger.leader() is None
    ledger.add(Player.P1, 2)
    assert ledger.leader() is Player.P1
    ledger.add(Player.P1, -5)
    assert ledger.score(Player.P1) == -3

    floored = ScoreLedger(floor=0)
    floored.add(Player.P2, 1)
    assert floored.add(Player.P2, -3) == 0
    floored.reset()
    assert floored.as_dict() == {Player.P1: 0, Player.P2: 0}


def test_default_rules():
    assert RULESETS[GameId.REACTION].max_rounds == 5
    assert RULESETS[GameId.NERVE].max_rounds == 5
    assert RULESETS[GameId.TAP_BATTLE].max_rounds == 1
    reflex = get_rules("reflex")
    assert isinstance(reflex, ReflexRules)
    assert (reflex.total_targets, reflex.spawn_interval, reflex.target_lifetime) == (50, 0.8, 3.0)
    assert get_rules("chicken").game is GameId.NERVE


@pytest.mark.parametrize(
    "factory",
    [
        lambda: ReactionRules(arming_min=5.0, arming_max=2.0),
        lambda: TapBattleRules(duration=0),
        lambda: ReflexRules(size_range=(60.0, 40.0)),
        lambda: NerveRules(tick_interval=0),
        lambda: NerveRules(max_rounds=0),
    ],
)
def test_invalid_rules_raise(factory):
    with pytest.raises(ValueError):
        factory()


def test_parse_game_id_aliases_and_errors():
    assert parse_game_id("Tap-Battle") is GameId.TAP_BATTLE
    assert parse_game_id("tap") is GameId.TAP_BATTLE
    with pytest.raises(ValueError):
        parse_game_id("pong")


def test_with_overrides_coerces_and_drops_unknown_keys():
    rules = NerveRules().with_overrides({"danger_duration": 2, "bogus": 1})
    assert rules.danger_duration == 2.0
    assert isinstance(rules.danger_duration, float)
    assert not hasattr(rules, "bogus")


def test_load_rules_config_merges_overrides(tmp_path):
    path = tmp_path / "crazytie.json"
    path.write_bytes(
        orjson.dumps(
            {
                "games": {
                    "reaction": {"max_rounds": 3},
                    "reflex": {"size_range": [30, 35]},
                    "pong": {"max_rounds": 9},
                }
            }
        )
    )
    rules = load_rules_config(path)
    assert rules[GameId.REACTION].max_rounds == 3
    assert rules[GameId.REFLEX].size_range == (30.0, 35.0)
    assert rules[GameId.NERVE] == RULESETS[GameId.NERVE]


def test_load_rules_config_missing_file_returns_defaults(tmp_path):
    assert load_rules_config(tmp_path / "absent.json") == RULESETS


def test_load_rules_config_rejects_invalid_values(tmp_path):
    path = tmp_path / "bad.json"
    path.write_bytes(orjson.dumps({"nerve": {"tick_interval": 0}}))
    with pytest.raises(ValueError):
        load_rules_config(path)


def test_validate_action_normalises_type():
    action = validate_action({"type": "player_acted", "player": "P2"})
    assert isinstance(action, PlayerActedAction)
    assert action.player is Player.P2

    tap = validate_action({"type": "SCREEN_TAP", "x": 10, "y": 20.5})
    assert isinstance(tap, ScreenTapAction)
    assert tap.type is ActionType.SCREEN_TAP


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "dance"},
        {},
        {"type": "PLAYER_ACTED"},
        {"type": "PLAYER_ACTED", "player": "P3"},
        {"type": "TARGET_HIT", "target_id": -1},
    ],
)
def test_validate_action_rejects_bad_payloads(payload):
    with pytest.raises(SchemaValidationError):
        validate_action(payload)


def test_snapshots_are_immutable():
    snapshot = ReactionSnapshot(
        phase=Phase.WAITING,
        countdown=3,
        round=1,
        max_rounds=5,
        scores={Player.P1: 0, Player.P2: 0},
    )
    with pytest.raises(ValidationError):
        snapshot.round = 2  # type: ignore[misc]
