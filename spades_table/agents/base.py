# spades_table/agents/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol, runtime_checkable


@dataclass(frozen=True)
class BidDecision:
    bid: int
    is_nil: bool = False
    is_blind_nil: bool = False


@runtime_checkable
class SpadesAgent(Protocol):
    """
    Interface that all Spades seats must implement.

    `observation` is a JSON-like dict containing:
      - game-level info (round number, dealer, winning score)
      - player info (id, seat, team)
      - team scores and bags
      - phase-specific info (hand, bids, disabled bids, legal moves, trick)
    """

    def choose_bid(self, observation: Dict[str, Any]) -> BidDecision:
        """Return this seat's bid for the round."""
        raise NotImplementedError

    def choose_card(self, observation: Dict[str, Any]) -> int:
        """
        Return the index into the player's current hand of the card to play.

        The observation will include:
          - "hand": list[card_dict]
          - "legal_move_indices": list[int]
        """
        raise NotImplementedError
