# spades_table/mods/__init__.py
from __future__ import annotations

import logging
import random
from typing import Callable, Dict, Iterable, List, Optional

from .anti_eleven import AntiElevenMod, AntiElevenState
from .base import (
    EMPTY_PIPELINE,
    BidValidationContext,
    CalculateDisabledBidsContext,
    CardPlayedContext,
    HookPipeline,
    PlayValidationContext,
    RoundEndContext,
    RuleMod,
    ScoreContext,
    TrickCompleteContext,
)
from .bid_ceiling import BidCeilingMod
from .joker_spades import JokerSpadesMod
from .suicide_spades import SuicideSpadesMod

logger = logging.getLogger(__name__)

ModFactory = Callable[[random.Random], RuleMod]


class ModRegistry:
    """Maps rule mod ids to factories so callers can build pipelines by id."""

    def __init__(self) -> None:
        self._factories: Dict[str, ModFactory] = {}

    def register(self, mod_id: str, factory: ModFactory) -> None:
        self._factories[mod_id] = factory
        logger.debug("Registered rule mod: %s", mod_id)

    def available(self) -> List[str]:
        return sorted(self._factories)

    def create(self, mod_id: str, rng: Optional[random.Random] = None) -> RuleMod:
        try:
            factory = self._factories[mod_id]
        except KeyError:
            raise ValueError(
                f"Unknown rule mod '{mod_id}'. Available: {', '.join(self.available())}"
            ) from None
        return factory(rng or random.Random())

    def build_pipeline(
        self, mod_ids: Iterable[str], rng: Optional[random.Random] = None
    ) -> HookPipeline:
        rng = rng or random.Random()
        return HookPipeline(self.create(mod_id, rng) for mod_id in mod_ids)


mod_registry = ModRegistry()
mod_registry.register(BidCeilingMod.id, lambda rng: BidCeilingMod())
mod_registry.register(AntiElevenMod.id, lambda rng: AntiElevenMod(rng=rng))
mod_registry.register(SuicideSpadesMod.id, lambda rng: SuicideSpadesMod())
mod_registry.register(JokerSpadesMod.id, lambda rng: JokerSpadesMod())

__all__ = [
    "AntiElevenMod",
    "AntiElevenState",
    "BidCeilingMod",
    "BidValidationContext",
    "CalculateDisabledBidsContext",
    "CardPlayedContext",
    "EMPTY_PIPELINE",
    "HookPipeline",
    "JokerSpadesMod",
    "ModRegistry",
    "PlayValidationContext",
    "RoundEndContext",
    "RuleMod",
    "ScoreContext",
    "SuicideSpadesMod",
    "TrickCompleteContext",
    "mod_registry",
]
