# spades_table/cards.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
import enum
import random
import re


class Suit(enum.Enum):
    SPADES = "spades"
    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"


class Rank(enum.Enum):
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    @property
    def order(self) -> int:
        """Numeric strength used for trick comparison (2=2 ... A=14)."""
        return _RANK_ORDER[self]


_RANK_ORDER: Dict[Rank, int] = {rank: i + 2 for i, rank in enumerate(Rank)}

# Grouping used by sort_hand: spades first, then hearts, clubs, diamonds.
_SORT_SUIT_ORDER: Dict[Suit, int] = {
    Suit.SPADES: 0,
    Suit.HEARTS: 1,
    Suit.CLUBS: 2,
    Suit.DIAMONDS: 3,
}

_CARD_PATTERN = re.compile(r"^(10|[2-9JQKA])([SHDC])$", re.IGNORECASE)
_SUIT_LETTERS: Dict[str, Suit] = {s.value[0].upper(): s for s in Suit}


@dataclass(frozen=True)
class Card:
    """
    A standard playing card.

    Equality and hashing are by (suit, rank). Construct from enums; use
    parse_card / dict_to_card for text or wire input.
    """
    suit: Suit
    rank: Rank

    def __post_init__(self) -> None:
        if not isinstance(self.suit, Suit):
            raise ValueError(f"Invalid suit: {self.suit!r}")
        if not isinstance(self.rank, Rank):
            raise ValueError(f"Invalid rank: {self.rank!r}")

    def __str__(self) -> str:
        return card_to_string(self)


def card_to_string(card: Card) -> str:
    """Short form such as '10H' or 'AS'."""
    return f"{card.rank.value}{card.suit.value[0].upper()}"


def parse_card(text: str) -> Card:
    """Parse the short form produced by card_to_string."""
    match = _CARD_PATTERN.match(text.strip())
    if match is None:
        raise ValueError(f"Cannot parse card '{text}'")
    rank = Rank(match.group(1).upper())
    suit = _SUIT_LETTERS[match.group(2).upper()]
    return Card(suit=suit, rank=rank)


def card_to_dict(card: Card) -> Dict[str, Any]:
    """Convert a Card to a JSON-serializable dict."""
    return {"suit": card.suit.value, "rank": card.rank.value}


def dict_to_card(data: Dict[str, Any]) -> Card:
    """Convert a dict back into a Card."""
    try:
        return Card(suit=Suit(data["suit"]), rank=Rank(str(data["rank"])))
    except KeyError as exc:
        raise ValueError(f"Card dict missing field {exc}") from exc


def compare_cards(a: Card, b: Card, lead_suit: Suit) -> int:
    """
    Trump-aware comparison of two cards within one trick.

    Positive if `a` beats `b`, negative if `b` beats `a`, zero when
    neither is a spade nor follows the lead (the earlier card stands).
    """
    a_spade = a.suit == Suit.SPADES
    b_spade = b.suit == Suit.SPADES
    if a_spade and not b_spade:
        return 1
    if b_spade and not a_spade:
        return -1
    if a_spade and b_spade:
        return a.rank.order - b.rank.order

    a_follows = a.suit == lead_suit
    b_follows = b.suit == lead_suit
    if a_follows and not b_follows:
        return 1
    if b_follows and not a_follows:
        return -1

    if a.suit == b.suit:
        return a.rank.order - b.rank.order
    return 0


# ---------------------------------------------------------------------------
# Deck construction and dealing
# ---------------------------------------------------------------------------


def create_deck() -> List[Card]:
    """All 52 cards in canonical order (suit by suit, 2 up to Ace)."""
    deck = [Card(suit, rank) for suit in Suit for rank in Rank]
    if len(deck) != 52:
        raise RuntimeError("Deck must contain exactly 52 cards")
    return deck


def shuffle_deck(
    deck: Sequence[Card], rng: Optional[random.Random] = None
) -> List[Card]:
    """Return a Fisher-Yates shuffled copy; the input is left untouched."""
    rng = rng or random.Random()
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal_cards(
    deck: Sequence[Card],
    num_players: int = 4,
    rng: Optional[random.Random] = None,
) -> List[List[Card]]:
    """
    Shuffle `deck` and deal it round-robin into `num_players` sorted hands.
    """
    if num_players <= 0:
        raise ValueError("num_players must be positive")
    if len(deck) % num_players != 0:
        raise ValueError("Deck does not divide evenly between players")

    hands: List[List[Card]] = [[] for _ in range(num_players)]
    for idx, card in enumerate(shuffle_deck(deck, rng)):
        hands[idx % num_players].append(card)
    return [sort_hand(hand) for hand in hands]


# ---------------------------------------------------------------------------
# Hand queries
# ---------------------------------------------------------------------------


def sort_hand(hand: Sequence[Card]) -> List[Card]:
    """Group spades, hearts, clubs, diamonds; high rank first in each group."""
    return sorted(
        hand, key=lambda c: (_SORT_SUIT_ORDER[c.suit], -c.rank.order)
    )


def has_card(hand: Sequence[Card], card: Card) -> bool:
    return any(c == card for c in hand)


def has_suit(hand: Sequence[Card], suit: Suit) -> bool:
    return any(c.suit == suit for c in hand)


def get_cards_of_suit(hand: Sequence[Card], suit: Suit) -> List[Card]:
    return [c for c in hand if c.suit == suit]


def has_only_spades(hand: Sequence[Card]) -> bool:
    return all(c.suit == Suit.SPADES for c in hand)


def remove_card_from_hand(hand: Sequence[Card], card: Card) -> Sequence[Card]:
    """
    Remove the first copy of `card`. When the card is absent the very same
    sequence is returned, so callers can detect the no-op by identity.
    """
    for idx, c in enumerate(hand):
        if c == card:
            return type(hand)(list(hand[:idx]) + list(hand[idx + 1:]))
    return hand
