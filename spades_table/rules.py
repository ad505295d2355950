# spades_table/rules.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence

from .cards import Card, Suit, compare_cards, has_card, has_only_spades, has_suit
from .config import GameConfig
from .errors import ErrorCode, ValidationResult
from .state import (
    MAX_BID,
    NUM_SEATS,
    GamePhase,
    GameState,
    PlayerBid,
    Trick,
    TrickPlay,
    partner_position,
)

# ---------------------------------------------------------------------------
# Trick resolution
# ---------------------------------------------------------------------------


def determine_trick_winner(trick: Trick) -> Optional[str]:
    """
    Return the player id that wins a completed trick, or None if the trick
    is not complete yet.

    Spades beat everything else; otherwise the highest card of the led suit
    wins. Off-suit non-spades never win.
    """
    if len(trick.plays) != NUM_SEATS or trick.lead_suit is None:
        return None

    best = trick.plays[0]
    for play in trick.plays[1:]:
        if compare_cards(play.card, best.card, trick.lead_suit) > 0:
            best = play
    return best.player_id


def add_play_to_trick(trick: Trick, play: TrickPlay) -> Trick:
    plays = trick.plays + (play,)
    lead_suit = trick.lead_suit if trick.lead_suit is not None else play.card.suit
    updated = Trick(plays=plays, lead_suit=lead_suit, winner=None)
    if len(plays) == NUM_SEATS:
        updated = replace(updated, winner=determine_trick_winner(updated))
    return updated


def is_trick_complete(trick: Trick) -> bool:
    return len(trick.plays) == NUM_SEATS


def has_spade_been_played_in_trick(trick: Trick) -> bool:
    return any(play.card.suit == Suit.SPADES for play in trick.plays)


def highest_card_in_trick(trick: Trick) -> Optional[Card]:
    """The card currently winning a (possibly partial) trick."""
    if not trick.plays or trick.lead_suit is None:
        return None
    best = trick.plays[0].card
    for play in trick.plays[1:]:
        if compare_cards(play.card, best, trick.lead_suit) > 0:
            best = play.card
    return best


# ---------------------------------------------------------------------------
# Bidding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BidRange:
    min: int
    max: int
    nil_allowed: bool
    blind_nil_allowed: bool


def get_next_bidder(state: GameState) -> int:
    """Bidding starts at the dealer's left and proceeds clockwise."""
    bids_count = len(state.current_round.bids) if state.current_round else 0
    return (state.dealer_position + 1 + bids_count) % NUM_SEATS


def all_bids_complete(state: GameState) -> bool:
    return state.current_round is not None and len(state.current_round.bids) == NUM_SEATS


def create_bid(
    player_id: str, bid: int, is_nil: bool = False, is_blind_nil: bool = False
) -> PlayerBid:
    return PlayerBid(
        player_id=player_id,
        bid=0 if (is_nil or is_blind_nil) else bid,
        is_nil=is_nil,
        is_blind_nil=is_blind_nil,
    )


def team_total_bid(bids: Iterable[PlayerBid], player_ids: Sequence[str]) -> int:
    """Sum of the non-nil bids placed by `player_ids`."""
    return sum(
        b.bid for b in bids if b.player_id in player_ids and not b.is_any_nil
    )


def valid_bid_range(config: GameConfig) -> BidRange:
    return BidRange(
        min=0,
        max=MAX_BID,
        nil_allowed=config.allow_nil,
        blind_nil_allowed=config.allow_blind_nil,
    )


def bid_ceiling(state: GameState, player_id: str) -> Optional[int]:
    """
    Highest bid that keeps the team total at or below 13, or None when
    unrestricted.

    Advisory only: validate_bid does not enforce it. Rule mods surface it
    as disabled bid values.
    """
    round_state = state.current_round
    player = state.find_player(player_id)
    if round_state is None or player is None or len(round_state.bids) < 2:
        return None

    partner = state.player_at(partner_position(player.position))
    if partner is None:
        return None
    for b in round_state.bids:
        if b.player_id == partner.id:
            if b.is_any_nil:
                return None
            return MAX_BID - b.bid
    return None


def validate_bid(
    state: GameState,
    player_id: str,
    bid: int,
    is_nil: bool,
    is_blind_nil: bool,
    config: GameConfig,
) -> ValidationResult:
    if state.phase != GamePhase.BIDDING:
        return ValidationResult.fail(ErrorCode.PHASE_MISMATCH, "Not in bidding phase")

    player = state.find_player(player_id)
    if player is None:
        return ValidationResult.fail(ErrorCode.PLAYER_NOT_FOUND, "Player not found")

    if player.position != state.current_player_position:
        return ValidationResult.fail(ErrorCode.NOT_YOUR_TURN, "Not your turn to bid")

    round_state = state.current_round
    if round_state is None:
        return ValidationResult.fail(ErrorCode.NO_ACTIVE_ROUND, "No active round")

    if any(b.player_id == player_id for b in round_state.bids):
        return ValidationResult.fail(ErrorCode.ALREADY_ACTED, "Player already bid")

    if isinstance(bid, bool) or not isinstance(bid, int):
        return ValidationResult.fail(
            ErrorCode.INVALID_BID_VALUE, f"Bid must be an integer, got {bid!r}"
        )
    if not isinstance(is_nil, bool) or not isinstance(is_blind_nil, bool):
        return ValidationResult.fail(
            ErrorCode.INVALID_BID_VALUE, "Nil flags must be true or false"
        )

    if is_nil and not config.allow_nil:
        return ValidationResult.fail(ErrorCode.NIL_NOT_ALLOWED, "Nil bids not allowed")
    if is_blind_nil and not config.allow_blind_nil:
        return ValidationResult.fail(
            ErrorCode.BLIND_NIL_NOT_ALLOWED, "Blind nil bids not allowed"
        )

    if is_nil or is_blind_nil:
        if bid != 0:
            return ValidationResult.fail(ErrorCode.INVALID_BID_VALUE, "Nil bid must be 0")
    elif not 0 <= bid <= MAX_BID:
        return ValidationResult.fail(
            ErrorCode.INVALID_BID_VALUE, f"Bid must be between 0 and {MAX_BID}"
        )

    return ValidationResult.ok()


# ---------------------------------------------------------------------------
# Card play
# ---------------------------------------------------------------------------


def validate_play(
    state: GameState,
    player_id: str,
    card: Card,
    hand: Sequence[Card],
) -> ValidationResult:
    if state.phase != GamePhase.PLAYING:
        return ValidationResult.fail(ErrorCode.PHASE_MISMATCH, "Not in playing phase")

    player = state.find_player(player_id)
    if player is None:
        return ValidationResult.fail(ErrorCode.PLAYER_NOT_FOUND, "Player not found")

    if player.position != state.current_player_position:
        return ValidationResult.fail(ErrorCode.NOT_YOUR_TURN, "Not your turn to play")

    if not has_card(hand, card):
        return ValidationResult.fail(ErrorCode.CARD_NOT_IN_HAND, "Card not in hand")

    round_state = state.current_round
    if round_state is None:
        return ValidationResult.fail(ErrorCode.NO_ACTIVE_ROUND, "No active round")

    trick = round_state.current_trick
    if not trick.plays:
        # Leading: spades only once broken, unless nothing else is held.
        if (
            card.suit == Suit.SPADES
            and not round_state.spades_broken
            and not has_only_spades(hand)
        ):
            return ValidationResult.fail(
                ErrorCode.SPADES_NOT_BROKEN, "Cannot lead with spades until broken"
            )
        return ValidationResult.ok()

    lead_suit = trick.lead_suit
    if lead_suit is not None and card.suit != lead_suit and has_suit(hand, lead_suit):
        return ValidationResult.fail(
            ErrorCode.MUST_FOLLOW_SUIT, f"Must follow suit ({lead_suit.value})"
        )
    return ValidationResult.ok()


def get_playable_cards(
    state: GameState, player_id: str, hand: Sequence[Card]
) -> List[Card]:
    return [c for c in hand if validate_play(state, player_id, c, hand).valid]
