# spades_table/mods/anti_eleven.py
from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import Optional

from ..state import NUM_SEATS
from .base import (
    BidValidationContext,
    CalculateDisabledBidsContext,
    RoundEndContext,
    RuleMod,
    table_bid_total,
)

ELEVEN = 11
CHANCE_STEP = 0.1


@dataclass(frozen=True)
class AntiElevenState:
    disablement_chance: float = 0.0
    # Rolled at round end; when set, the 4th bidder cannot make the table 11.
    armed: bool = False


class AntiElevenMod(RuleMod):
    """
    Occasionally prevents the 4th bidder from bringing the table total to
    exactly 11.

    - The chance starts at 0% and rises 10% after every round whose table
      bid totalled 11.
    - When the block actually applied during a round, the chance resets.
    - If the first three bids already reach 11, nothing is blocked.
    """

    id = "anti-eleven"
    name = "Anti-11"
    description = (
        "Occasionally prevents the 4th bidder from making the table total equal 11."
    )

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def initial_state(self) -> AntiElevenState:
        return AntiElevenState()

    def _blocked_bid(self, bids, mod_state: Optional[AntiElevenState]) -> Optional[int]:
        if mod_state is None or not mod_state.armed:
            return None
        if len(bids) != NUM_SEATS - 1:
            return None
        table = table_bid_total(bids)
        if table >= ELEVEN:
            return None
        return ELEVEN - table

    def on_calculate_disabled_bids(
        self, context: CalculateDisabledBidsContext
    ) -> CalculateDisabledBidsContext:
        blocked = self._blocked_bid(context.current_bids, context.mod_state)
        if blocked is None:
            return context
        return replace(context, disabled_bids=context.disabled_bids + (blocked,))

    def on_validate_bid(self, context: BidValidationContext) -> BidValidationContext:
        blocked = self._blocked_bid(context.current_bids, context.mod_state)
        proposed = 0 if (context.is_nil or context.is_blind_nil) else context.bid
        if blocked is None or proposed != blocked:
            return context
        return replace(
            context,
            is_valid=False,
            error_message=f"Anti-11: a bid of {blocked} is disabled this round",
        )

    def on_round_end(self, context: RoundEndContext) -> AntiElevenState:
        state = context.mod_state or AntiElevenState()
        summary = context.round_summary
        total = summary.team1.bid + summary.team2.bid

        # The block was in force for this round's 4th bidder.
        round_state = context.game_state.current_round
        first_three = round_state.bids[: NUM_SEATS - 1] if round_state else ()
        applied = state.armed and table_bid_total(first_three) < ELEVEN

        if applied:
            chance = 0.0
        elif total == ELEVEN:
            chance = min(1.0, state.disablement_chance + CHANCE_STEP)
        else:
            chance = state.disablement_chance

        return AntiElevenState(
            disablement_chance=chance,
            armed=self.rng.random() < chance,
        )
