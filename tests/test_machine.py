# tests/test_machine.py
import json
from dataclasses import replace

import pytest

from spades_table.actions import (
    CollectTrick,
    DealCards,
    DealHands,
    EndRound,
    GameComplete,
    MakeBid,
    PlayCard,
    PlayerDisconnect,
    PlayerJoin,
    PlayerLeave,
    PlayerReady,
    PlayerReconnect,
    RoundComplete,
    StartGame,
    StartNextRound,
    TrickComplete,
)
from spades_table.config import GameConfig
from spades_table.errors import ErrorCode, GameInvariantError
from spades_table.machine import can_transition, process_action
from spades_table.rules import get_playable_cards
from spades_table.state import (
    GamePhase,
    PlayerBid,
    TeamId,
    Trick,
    TrickPlay,
    create_initial_game_state,
    state_to_dict,
)

from helpers import PLAYER_IDS, bidding_state, c, dealt_game, playing_state, seated_state, suit_hands


def test_join_assigns_seats_and_teams():
    state = create_initial_game_state("g1", now=0.0)
    for pid in PLAYER_IDS:
        state = process_action(state, PlayerJoin(pid, pid), now=1.0).state

    assert [p.position for p in state.players] == [0, 1, 2, 3]
    assert [p.team for p in state.players] == [
        TeamId.TEAM1, TeamId.TEAM2, TeamId.TEAM1, TeamId.TEAM2,
    ]

    res = process_action(state, PlayerJoin("p4", "late"), now=2.0)
    assert res.error == ErrorCode.ROOM_FULL


def test_duplicate_join_rejected():
    state = create_initial_game_state("g1", now=0.0)
    state = process_action(state, PlayerJoin("p0", "a"), now=0.0).state
    res = process_action(state, PlayerJoin("p0", "again"), now=0.0)
    assert res.error == ErrorCode.PLAYER_ALREADY_JOINED


def test_invalid_action_returns_identical_state():
    state = bidding_state()
    res = process_action(state, MakeBid("p3", 4), now=5000.0)
    assert not res.valid
    assert res.error == ErrorCode.NOT_YOUR_TURN
    assert res.state is state


def test_last_activity_only_moves_forward():
    state = replace(seated_state(), last_activity=500.0)
    res = process_action(state, PlayerDisconnect("p1"), now=100.0)
    assert res.state.last_activity == 500.0
    res = process_action(state, PlayerDisconnect("p1"), now=900.0)
    assert res.state.last_activity == 900.0


def test_leave_in_waiting_reseats_remaining_players():
    res = process_action(seated_state(), PlayerLeave("p1"), now=0.0)
    assert res.valid
    assert [(p.id, p.position) for p in res.state.players] == [
        ("p0", 0), ("p2", 1), ("p3", 2),
    ]
    assert res.state.players[1].team == TeamId.TEAM2


def test_leave_mid_game_keeps_the_seat():
    res = process_action(bidding_state(), PlayerLeave("p2"), now=0.0)
    assert res.valid
    assert res.state.num_players == 4
    assert not res.state.find_player("p2").connected


def test_disconnect_and_reconnect():
    state = seated_state(GamePhase.PLAYING)
    state = process_action(state, PlayerDisconnect("p3"), now=0.0).state
    assert not state.find_player("p3").connected
    state = process_action(state, PlayerReconnect("p3"), now=0.0).state
    assert state.find_player("p3").connected
    assert process_action(state, PlayerReconnect("zz"), now=0.0).error == ErrorCode.PLAYER_NOT_FOUND


def test_ready_up_and_start():
    state = seated_state()
    state = replace(state, players=tuple(replace(p, ready=False) for p in state.players))
    for pid in PLAYER_IDS[:3]:
        state = process_action(state, PlayerReady(pid), now=0.0).state
        assert state.phase == GamePhase.WAITING

    assert process_action(state, StartGame(), now=0.0).error == ErrorCode.PHASE_MISMATCH

    state = process_action(state, PlayerReady("p3"), now=0.0).state
    assert state.phase == GamePhase.READY
    state = process_action(state, StartGame(), now=0.0).state
    assert state.phase == GamePhase.DEALING


def test_deal_cards_is_reproducible_and_emits_hands():
    state = dealt_game(seed=9)
    again = dealt_game(seed=9)

    assert state.phase == GamePhase.BIDDING
    assert state.current_round.round_number == 1
    assert state.current_player_position == 1
    assert all(len(p.hand) == 13 for p in state.players)
    assert [p.hand for p in state.players] == [p.hand for p in again.players]

    dealing = replace(state, phase=GamePhase.DEALING)
    res = process_action(dealing, DealCards(seed=9), now=0.0)
    effects = [e for e in res.side_effects if isinstance(e, DealHands)]
    assert len(effects) == 1
    assert set(effects[0].hands) == set(PLAYER_IDS)


def test_bidding_turn_order_and_transition_to_playing():
    state = bidding_state(dealer=2)
    positions = []
    for pid in ["p3", "p0", "p1", "p2"]:
        positions.append(state.current_player_position)
        res = process_action(state, MakeBid(pid, 3), now=0.0)
        assert res.valid, res.message
        state = res.state

    assert positions == [3, 0, 1, 2]
    assert state.phase == GamePhase.PLAYING
    # first lead is the dealer's left, not the last bidder
    assert state.current_player_position == 3
    assert state.scores[TeamId.TEAM1].round_bid == 6
    assert state.scores[TeamId.TEAM2].round_bid == 6


def test_nil_bid_is_stored_as_zero():
    res = process_action(bidding_state(), MakeBid("p1", 0, is_nil=True), now=0.0)
    assert res.valid
    bid = res.state.current_round.bids[0]
    assert bid == PlayerBid("p1", 0, is_nil=True)


def test_nil_rejected_when_config_disallows():
    res = process_action(
        bidding_state(),
        MakeBid("p1", 0, is_nil=True),
        config=GameConfig(allow_nil=False),
        now=0.0,
    )
    assert res.error == ErrorCode.NIL_NOT_ALLOWED


@pytest.mark.parametrize("bid", [3.5, "5"])
def test_non_integer_bid_is_rejected_without_state_change(bid):
    state = bidding_state()
    res = process_action(state, MakeBid("p1", bid), now=0.0)
    assert not res.valid
    assert res.error == ErrorCode.INVALID_BID_VALUE
    assert res.state is state


def test_bidding_without_round_is_an_invariant_violation():
    state = replace(bidding_state(), current_round=None)
    with pytest.raises(GameInvariantError):
        process_action(state, MakeBid("p1", 3), now=0.0)


def test_play_card_removes_card_and_advances_turn():
    hands = suit_hands()
    state = playing_state(hands)
    res = process_action(state, PlayCard("p1", c("AH")), now=0.0)

    assert res.valid
    assert c("AH") not in res.state.find_player("p1").hand
    assert len(res.state.find_player("p1").hand) == 12
    assert res.state.current_player_position == 2
    assert res.state.current_round.current_trick.lead_suit == c("AH").suit
    assert not res.state.current_round.spades_broken


def test_play_card_not_in_hand():
    state = playing_state(suit_hands())
    res = process_action(state, PlayCard("p1", c("AS")), now=0.0)
    assert res.error == ErrorCode.CARD_NOT_IN_HAND
    assert res.state is state


def test_play_out_of_turn_and_wrong_phase():
    state = playing_state(suit_hands())
    assert process_action(state, PlayCard("p2", c("AC")), now=0.0).error == ErrorCode.NOT_YOUR_TURN
    bidding = replace(state, phase=GamePhase.BIDDING)
    assert process_action(bidding, PlayCard("p1", c("AH")), now=0.0).error == ErrorCode.PHASE_MISMATCH


def test_completing_a_trick_and_collecting_it():
    state = playing_state(suit_hands())
    for pid, card in [("p1", "AH"), ("p2", "AC"), ("p3", "AD")]:
        state = process_action(state, PlayCard(pid, c(card)), now=0.0).state
    res = process_action(state, PlayCard("p0", c("2S")), now=0.0)

    assert res.state.phase == GamePhase.TRICK_END
    assert res.state.current_round.spades_broken
    assert res.side_effects == (TrickComplete(winner_id="p0", trick_number=1),)
    # pointer is left alone until the trick is collected
    assert res.state.current_player_position == 0

    collected = process_action(res.state, CollectTrick(), now=0.0)
    assert collected.state.phase == GamePhase.PLAYING
    assert collected.state.current_player_position == 0
    assert collected.state.current_round.current_trick == Trick()
    assert len(collected.state.current_round.tricks) == 1
    assert collected.state.scores[TeamId.TEAM1].round_tricks == 1


def test_collect_trick_without_winner_raises():
    broken = Trick(
        plays=tuple(TrickPlay(pid, c(t)) for pid, t in zip(PLAYER_IDS, ["2H", "3H", "4H", "5H"])),
        lead_suit=c("2H").suit,
        winner=None,
    )
    state = replace(playing_state(suit_hands(), trick=broken), phase=GamePhase.TRICK_END)
    with pytest.raises(GameInvariantError):
        process_action(state, CollectTrick(), now=0.0)


def test_phase_gated_round_actions():
    state = playing_state(suit_hands())
    assert process_action(state, CollectTrick(), now=0.0).error == ErrorCode.PHASE_MISMATCH
    assert process_action(state, EndRound(), now=0.0).error == ErrorCode.PHASE_MISMATCH
    assert process_action(state, StartNextRound(), now=0.0).error == ErrorCode.PHASE_MISMATCH
    assert process_action(state, DealCards(), now=0.0).error == ErrorCode.PHASE_MISMATCH


def test_unknown_action():
    state = seated_state()
    res = process_action(state, object(), now=0.0)
    assert res.error == ErrorCode.UNKNOWN_ACTION
    assert res.state is state


def _play_round_with_suit_hands(state):
    """p0 holds all spades and wins every trick."""
    effects = []
    while state.phase == GamePhase.PLAYING:
        seat = state.player_at(state.current_player_position)
        res = process_action(state, PlayCard(seat.id, seat.hand[0]), now=0.0)
        assert res.valid, res.message
        effects.extend(res.side_effects)
        state = res.state
        if state.phase == GamePhase.TRICK_END:
            res = process_action(state, CollectTrick(), now=0.0)
            state = res.state
    return state, effects


def test_full_round_scoring_and_next_round():
    bids = [PlayerBid("p0", 10), PlayerBid("p1", 2), PlayerBid("p2", 1), PlayerBid("p3", 0, is_nil=True)]
    state = playing_state(suit_hands(), bids=bids)
    state, effects = _play_round_with_suit_hands(state)

    assert state.phase == GamePhase.ROUND_END
    assert len(state.current_round.tricks) == 13
    assert sum(1 for e in effects if isinstance(e, TrickComplete)) == 13

    res = process_action(state, EndRound(), now=0.0)
    assert res.valid
    summary = res.side_effects[0]
    assert isinstance(summary, RoundComplete)
    # team1 bid 11 took 13; team2 bid 2 took 0 with a clean nil
    assert summary.summary.team1.points == 112
    assert summary.summary.team2.points == -20 + 100
    assert res.state.scores[TeamId.TEAM1].score == 112
    assert res.state.scores[TeamId.TEAM1].bags == 2
    assert res.state.scores[TeamId.TEAM2].score == 80
    assert res.state.dealer_position == 1
    assert res.state.phase == GamePhase.ROUND_END

    nxt = process_action(res.state, StartNextRound(), now=0.0)
    assert nxt.state.phase == GamePhase.DEALING
    assert all(p.hand == () for p in nxt.state.players)
    assert nxt.state.scores[TeamId.TEAM1].round_tricks == 0

    dealt = process_action(nxt.state, DealCards(seed=1), now=0.0).state
    assert dealt.current_round.round_number == 2
    # bidding opens left of the new dealer
    assert dealt.current_player_position == 2


def test_end_round_reaching_winning_score_ends_game():
    bids = [PlayerBid("p0", 10), PlayerBid("p1", 2), PlayerBid("p2", 1), PlayerBid("p3", 2)]
    state = playing_state(suit_hands(), bids=bids)
    state = replace(
        state,
        scores={
            TeamId.TEAM1: replace(state.scores[TeamId.TEAM1], score=450),
            TeamId.TEAM2: state.scores[TeamId.TEAM2],
        },
    )
    state, _ = _play_round_with_suit_hands(state)
    res = process_action(state, EndRound(), now=0.0)

    assert res.state.phase == GamePhase.GAME_END
    assert isinstance(res.side_effects[0], RoundComplete)
    assert res.side_effects[1] == GameComplete(winner=TeamId.TEAM1)


def test_full_game_invariant_from_a_fresh_room():
    state = dealt_game(seed=123)
    dealt = {p.id: set(p.hand) for p in state.players}

    for _ in range(4):
        seat = state.player_at(state.current_player_position)
        state = process_action(state, MakeBid(seat.id, 3), now=0.0).state
    assert state.phase == GamePhase.PLAYING

    played = {pid: [] for pid in PLAYER_IDS}
    plays = 0
    while state.phase in (GamePhase.PLAYING, GamePhase.TRICK_END):
        if state.phase == GamePhase.TRICK_END:
            state = process_action(state, CollectTrick(), now=0.0).state
            continue
        seat = state.player_at(state.current_player_position)
        card = get_playable_cards(state, seat.id, seat.hand)[0]
        res = process_action(state, PlayCard(seat.id, card), now=0.0)
        assert res.valid, res.message
        played[seat.id].append(card)
        plays += 1
        state = res.state

    assert plays == 52
    assert state.phase == GamePhase.ROUND_END
    assert len(state.current_round.tricks) == 13
    for pid in PLAYER_IDS:
        assert set(played[pid]) == dealt[pid]
        assert len(played[pid]) == 13

    ended = process_action(state, EndRound(), now=0.0).state
    assert ended.phase in (GamePhase.ROUND_END, GamePhase.GAME_END)
    json.dumps(state_to_dict(ended))


def test_can_transition_table():
    assert can_transition(GamePhase.WAITING, GamePhase.READY)
    assert can_transition(GamePhase.TRICK_END, GamePhase.ROUND_END)
    assert not can_transition(GamePhase.WAITING, GamePhase.PLAYING)
    assert not can_transition(GamePhase.GAME_END, GamePhase.DEALING)
