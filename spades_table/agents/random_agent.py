# spades_table/agents/random_agent.py
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Dict, List

from ..cards import Rank, Suit
from ..state import MAX_BID
from .base import BidDecision, SpadesAgent

_HIGH_RANKS = {Rank.ACE.value, Rank.KING.value}


def _estimate_tricks(hand: List[Dict[str, Any]]) -> int:
    by_suit: Dict[str, List[str]] = {suit.value: [] for suit in Suit}
    for card in hand:
        by_suit[card["suit"]].append(card["rank"])

    expected = 0.0
    spades = by_suit[Suit.SPADES.value]
    for suit_name, ranks in by_suit.items():
        if suit_name == Suit.SPADES.value:
            continue
        if Rank.ACE.value in ranks:
            expected += 1.0
        if Rank.KING.value in ranks and len(ranks) >= 2:
            expected += 0.6
        if not ranks and spades:
            expected += 0.5

    expected += sum(1.0 for r in spades if r in _HIGH_RANKS)
    expected += 0.5 * sum(1 for r in spades if r == Rank.QUEEN.value)
    # Long spades take tricks once the other hands run out.
    expected += max(0, len(spades) - 3)
    return int(round(expected))


@dataclass
class RandomSpadesAgent(SpadesAgent):
    """
    A simple baseline agent with a bit of structure:

    - choose_bid: rough trick count from aces, kings and spades, plus jitter;
      goes nil with a hand that looks like it cannot win anything.
    - choose_card: pick uniformly among legal moves.
    """

    rng: random.Random

    def choose_bid(self, observation: Dict[str, Any]) -> BidDecision:
        hand = observation["hand"]
        expected = _estimate_tricks(hand)

        if (
            expected == 0
            and observation.get("nil_allowed", False)
            and not any(c["rank"] in _HIGH_RANKS for c in hand)
        ):
            return BidDecision(bid=0, is_nil=True)

        low = max(1, expected - 1)
        high = min(MAX_BID, expected + 1)
        disabled = set(observation.get("disabled_bids", []))
        candidates = [b for b in range(low, high + 1) if b not in disabled]
        if not candidates:
            candidates = [b for b in range(0, MAX_BID + 1) if b not in disabled]
        return BidDecision(bid=self.rng.choice(candidates))

    def choose_card(self, observation: Dict[str, Any]) -> int:
        legal_indices = observation["legal_move_indices"]
        return self.rng.choice(legal_indices)
