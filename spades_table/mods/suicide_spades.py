# spades_table/mods/suicide_spades.py
from __future__ import annotations

from dataclasses import replace

from ..config import GameConfig
from .base import BidValidationContext, RuleMod, ScoreContext

TEAM_TARGET = 4


class SuicideSpadesMod(RuleMod):
    """
    Each partnership must bid exactly 4 between them. The first partner
    bids 0-4, the second bids the remainder. No nil bids. Scoring is
    exact: 4 tricks is +40, anything else is -40 with no bags.
    """

    id = "suicide-spades"
    name = "Suicide Spades"
    description = (
        "Teams must bid exactly 4 combined. First player bids 0-4, "
        "partner bids the rest."
    )

    def modify_config(self, config: GameConfig) -> GameConfig:
        return replace(config, allow_nil=False, allow_blind_nil=False)

    def on_validate_bid(self, context: BidValidationContext) -> BidValidationContext:
        if context.is_nil or context.is_blind_nil:
            return replace(
                context,
                is_valid=False,
                error_message="Nil bids are not allowed in Suicide Spades",
            )

        state = context.game_state
        player = state.find_player(context.player_id)
        if player is None:
            return context

        team_ids = {p.id for p in state.team_players(player.team)}
        team_bids = [b for b in context.current_bids if b.player_id in team_ids]

        if not team_bids:
            if not 0 <= context.bid <= TEAM_TARGET:
                return replace(
                    context,
                    is_valid=False,
                    error_message=f"First team bidder must bid 0-{TEAM_TARGET} in Suicide Spades",
                )
            return context

        required = TEAM_TARGET - team_bids[0].bid
        if context.bid != required:
            return replace(
                context,
                is_valid=False,
                error_message=f"Must bid {required} to make team total of {TEAM_TARGET}",
            )
        return context

    def on_calculate_score(self, context: ScoreContext) -> ScoreContext:
        if context.bid != TEAM_TARGET:
            return context
        points = TEAM_TARGET * 10
        return replace(
            context,
            calculated_score=points if context.tricks == TEAM_TARGET else -points,
            calculated_bags=0,
        )
