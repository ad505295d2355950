# tests/test_state.py
import json
from dataclasses import dataclass, replace

import pytest

from spades_table.state import (
    GamePhase,
    PlayerBid,
    RoundState,
    TeamId,
    Trick,
    TrickPlay,
    create_initial_game_state,
    partner_position,
    positions_for_team,
    state_to_dict,
    team_for_position,
    to_client_state,
    tricks_won_by_player,
)

from helpers import c, playing_state, suit_hands


@dataclass(frozen=True)
class _Counter:
    value: int = 0


def test_seat_helpers():
    assert [team_for_position(i) for i in range(4)] == [
        TeamId.TEAM1, TeamId.TEAM2, TeamId.TEAM1, TeamId.TEAM2,
    ]
    assert partner_position(1) == 3
    assert positions_for_team(TeamId.TEAM2) == (1, 3)


def test_initial_state():
    state = create_initial_game_state("room", winning_score=300, now=12.5)
    assert state.phase == GamePhase.WAITING
    assert state.created_at == state.last_activity == 12.5
    assert state.winning_score == 300
    assert state.scores[TeamId.TEAM1].score == 0
    assert state.current_player_position == 1


def _mid_round_state():
    state = playing_state(suit_hands(), bids=[PlayerBid("p1", 0, is_nil=True)] + [
        PlayerBid(pid, 3) for pid in ("p2", "p3", "p0")
    ])
    won = Trick(plays=(TrickPlay("p1", c("AH")),), lead_suit=c("AH").suit, winner="p0")
    current = Trick(plays=(TrickPlay("p0", c("KS")),), lead_suit=c("KS").suit)
    return replace(
        state,
        current_round=replace(state.current_round, tricks=(won,), current_trick=current),
        mod_states={"counter": _Counter(3)},
    )


def test_state_to_dict_is_json_serializable():
    data = state_to_dict(_mid_round_state())
    text = json.dumps(data)

    assert data["phase"] == "playing"
    assert data["players"][0]["hand"][0] == {"suit": "spades", "rank": "A"}
    assert data["current_round"]["bids"][0]["is_nil"] is True
    assert data["current_round"]["tricks"][0]["winner"] == "p0"
    assert data["mod_states"] == {"counter": {"value": 3}}
    assert "team1" in text


def test_client_view_hides_hands_and_history():
    state = _mid_round_state()
    view = to_client_state(state)

    assert all("hand" not in p for p in view["players"])
    assert [p["card_count"] for p in view["players"]] == [13, 13, 13, 13]
    assert view["current_round"]["tricks_won"] == {"p0": 1, "p1": 0, "p2": 0, "p3": 0}
    assert view["current_round"]["current_trick"]["lead_suit"] == "spades"
    assert "tricks" not in view["current_round"]
    assert "mod_states" not in view
    json.dumps(view)


def test_tricks_won_by_player_without_round():
    state = replace(_mid_round_state(), current_round=None)
    assert tricks_won_by_player(state) == {"p0": 0, "p1": 0, "p2": 0, "p3": 0}


def test_round_state_defaults():
    rs = RoundState(round_number=2)
    assert rs.bids == () and rs.tricks == ()
    assert rs.current_trick == Trick()
    assert not rs.spades_broken


def test_score_and_mod_state_mappings_are_read_only():
    first = create_initial_game_state("room", mod_states={"counter": _Counter(1)}, now=0.0)
    second = replace(first, phase=GamePhase.READY)

    with pytest.raises(TypeError):
        second.scores[TeamId.TEAM1] = replace(second.scores[TeamId.TEAM1], score=999)
    with pytest.raises(TypeError):
        second.mod_states["counter"] = _Counter(2)
    assert first.scores[TeamId.TEAM1].score == 0
    assert first.mod_states["counter"] == _Counter(1)


def test_replace_detaches_from_caller_dict():
    scores = dict(create_initial_game_state("room", now=0.0).scores)
    state = replace(create_initial_game_state("room", now=0.0), scores=scores)
    scores[TeamId.TEAM2] = replace(scores[TeamId.TEAM2], score=40)
    assert state.scores[TeamId.TEAM2].score == 0
