# spades_table/mods/joker_spades.py
from __future__ import annotations

from .base import RuleMod, TrickCompleteContext


class JokerSpadesMod(RuleMod):
    """
    Placeholder for the Big Joker / Little Joker variant.

    The standard 52-card deck has no jokers, so the trick hook is a pass
    through; it only reserves the mod id and shows where joker resolution
    would plug in.
    """

    id = "joker-spades"
    name = "Joker Spades"
    description = (
        "Adds two jokers that beat all other cards. "
        "Big Joker > Little Joker > Ace of Spades."
    )

    def on_trick_complete(self, context: TrickCompleteContext) -> TrickCompleteContext:
        return context
