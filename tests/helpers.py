# tests/helpers.py
from dataclasses import replace
from typing import Dict, Optional, Sequence

from spades_table.actions import DealCards, PlayerJoin, PlayerReady, StartGame
from spades_table.cards import Card, Rank, Suit, parse_card
from spades_table.machine import process_action
from spades_table.state import (
    GamePhase,
    GameState,
    Player,
    PlayerBid,
    RoundState,
    Trick,
    create_initial_game_state,
    team_for_position,
)

PLAYER_IDS = ["p0", "p1", "p2", "p3"]


def c(text: str) -> Card:
    return parse_card(text)


def cards(*texts: str) -> tuple:
    return tuple(parse_card(t) for t in texts)


def suit_hands() -> Dict[str, tuple]:
    """p0 holds every spade, p1 hearts, p2 clubs, p3 diamonds."""
    suits = [Suit.SPADES, Suit.HEARTS, Suit.CLUBS, Suit.DIAMONDS]
    return {
        pid: tuple(Card(suit, rank) for rank in reversed(list(Rank)))
        for pid, suit in zip(PLAYER_IDS, suits)
    }


def seated_state(
    phase: GamePhase = GamePhase.WAITING,
    hands: Optional[Dict[str, Sequence[Card]]] = None,
    dealer: int = 0,
) -> GameState:
    hands = hands or {}
    players = tuple(
        Player(
            id=pid,
            nickname=pid.upper(),
            position=i,
            team=team_for_position(i),
            hand=tuple(hands.get(pid, ())),
            ready=phase != GamePhase.WAITING,
        )
        for i, pid in enumerate(PLAYER_IDS)
    )
    state = create_initial_game_state("g1", now=1000.0)
    return replace(
        state,
        phase=phase,
        players=players,
        dealer_position=dealer,
        current_player_position=(dealer + 1) % 4,
    )


def bidding_state(
    hands: Optional[Dict[str, Sequence[Card]]] = None,
    dealer: int = 0,
    bids: Sequence[PlayerBid] = (),
) -> GameState:
    state = seated_state(GamePhase.BIDDING, hands, dealer)
    return replace(
        state,
        current_round=RoundState(round_number=1, bids=tuple(bids)),
        current_player_position=(dealer + 1 + len(bids)) % 4,
    )


def playing_state(
    hands: Dict[str, Sequence[Card]],
    current: int = 1,
    trick: Trick = Trick(),
    spades_broken: bool = False,
    bids: Sequence[PlayerBid] = (),
    dealer: int = 0,
) -> GameState:
    state = seated_state(GamePhase.PLAYING, hands, dealer)
    if not bids:
        bids = tuple(PlayerBid(pid, 3) for pid in PLAYER_IDS)
    return replace(
        state,
        current_round=RoundState(
            round_number=1,
            bids=tuple(bids),
            current_trick=trick,
            spades_broken=spades_broken,
        ),
        current_player_position=current,
    )


def dealt_game(seed: int = 42, **kwargs) -> GameState:
    """Drive a fresh room through join/ready/start/deal."""
    state = create_initial_game_state("g1", now=1000.0)
    for pid in PLAYER_IDS:
        state = process_action(state, PlayerJoin(pid, pid.upper()), now=1000.0, **kwargs).state
    for pid in PLAYER_IDS:
        state = process_action(state, PlayerReady(pid), now=1000.0, **kwargs).state
    state = process_action(state, StartGame(), now=1000.0, **kwargs).state
    result = process_action(state, DealCards(seed=seed), now=1000.0, **kwargs)
    assert result.valid
    return result.state
