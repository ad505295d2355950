# spades_table/mods/bid_ceiling.py
from __future__ import annotations

from dataclasses import replace

from ..rules import bid_ceiling
from ..state import MAX_BID
from .base import CalculateDisabledBidsContext, RuleMod


class BidCeilingMod(RuleMod):
    """
    Greys out bids that would push a partnership past 13 tricks.

    Advisory only: the values are offered to the UI as disabled, but a bid
    above the ceiling is still accepted by the state machine.
    """

    id = "bid-ceiling"
    name = "Bid Ceiling"
    description = "Disables bids that would take a team's combined bid above 13."

    def on_calculate_disabled_bids(
        self, context: CalculateDisabledBidsContext
    ) -> CalculateDisabledBidsContext:
        ceiling = bid_ceiling(context.game_state, context.player_id)
        if ceiling is None:
            return context
        over = tuple(range(ceiling + 1, MAX_BID + 1))
        return replace(context, disabled_bids=context.disabled_bids + over)
