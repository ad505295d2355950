# spades_table/mods/base.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..cards import Card
from ..config import GameConfig
from ..scoring import RoundSummary
from ..state import GameState, PlayerBid, TeamId, Trick

# ---------------------------------------------------------------------------
# Hook contexts
# ---------------------------------------------------------------------------
#
# Every context carries `mod_state`: the calling mod's own slot from
# GameState.mod_states. Hooks return a (possibly modified) copy built with
# dataclasses.replace.


@dataclass(frozen=True)
class BidValidationContext:
    game_state: GameState
    config: GameConfig
    player_id: str
    bid: int
    is_nil: bool
    is_blind_nil: bool
    current_bids: Tuple[PlayerBid, ...]
    mod_state: Any = None
    is_valid: bool = True
    error_message: Optional[str] = None


@dataclass(frozen=True)
class CalculateDisabledBidsContext:
    game_state: GameState
    config: GameConfig
    player_id: str
    current_bids: Tuple[PlayerBid, ...]
    mod_state: Any = None
    # mods append to this
    disabled_bids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class PlayValidationContext:
    game_state: GameState
    config: GameConfig
    player_id: str
    card: Card
    hand: Tuple[Card, ...]
    current_trick: Trick
    mod_state: Any = None
    is_valid: bool = True
    error_message: Optional[str] = None


@dataclass(frozen=True)
class CardPlayedContext:
    game_state: GameState
    config: GameConfig
    player_id: str
    card: Card
    mod_state: Any = None


@dataclass(frozen=True)
class TrickCompleteContext:
    game_state: GameState
    config: GameConfig
    trick: Trick
    winner_id: str
    mod_state: Any = None


@dataclass(frozen=True)
class ScoreContext:
    game_state: GameState
    config: GameConfig
    team_id: TeamId
    bid: int
    tricks: int
    nil_bids: Tuple[PlayerBid, ...]
    calculated_score: int
    calculated_bags: int
    mod_state: Any = None


@dataclass(frozen=True)
class RoundEndContext:
    game_state: GameState
    config: GameConfig
    round_summary: RoundSummary
    mod_state: Any = None


# ---------------------------------------------------------------------------
# Rule mod interface
# ---------------------------------------------------------------------------


class RuleMod:
    """
    Base class for rule variants.

    Subclasses set the metadata attributes and override only the hooks they
    need; every default hook hands its context back untouched.
    """

    id: str = ""
    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    author: Optional[str] = None

    def initial_state(self) -> Any:
        """Private state stored under GameState.mod_states[self.id]."""
        return None

    def modify_config(self, config: GameConfig) -> GameConfig:
        return config

    def on_calculate_disabled_bids(
        self, context: CalculateDisabledBidsContext
    ) -> CalculateDisabledBidsContext:
        return context

    def on_validate_bid(self, context: BidValidationContext) -> BidValidationContext:
        return context

    def on_validate_play(self, context: PlayValidationContext) -> PlayValidationContext:
        return context

    def on_card_played(self, context: CardPlayedContext) -> CardPlayedContext:
        return context

    def on_trick_complete(self, context: TrickCompleteContext) -> TrickCompleteContext:
        return context

    def on_calculate_score(self, context: ScoreContext) -> ScoreContext:
        return context

    def on_round_end(self, context: RoundEndContext) -> Any:
        """Return the mod's new private state."""
        return context.mod_state

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


class HookPipeline:
    """
    Ordered list of rule mods. Hooks run left to right in registration
    order; validation stops at the first mod that rejects.
    """

    def __init__(self, mods: Iterable[RuleMod] = ()) -> None:
        self.mods: List[RuleMod] = []
        for mod in mods:
            self.add_mod(mod)

    def add_mod(self, mod: RuleMod) -> None:
        if not mod.id:
            raise ValueError(f"Rule mod {mod!r} has no id")
        if any(m.id == mod.id for m in self.mods):
            raise ValueError(f"Rule mod '{mod.id}' registered twice")
        self.mods.append(mod)

    def __len__(self) -> int:
        return len(self.mods)

    @property
    def mod_ids(self) -> List[str]:
        return [m.id for m in self.mods]

    def initial_mod_states(self) -> Dict[str, Any]:
        return {m.id: m.initial_state() for m in self.mods}

    def _state_for(self, mod: RuleMod, game_state: GameState) -> Any:
        if mod.id in game_state.mod_states:
            return game_state.mod_states[mod.id]
        return mod.initial_state()

    # -- config -------------------------------------------------------------

    def modify_config(self, config: GameConfig) -> GameConfig:
        for mod in self.mods:
            config = mod.modify_config(config)
        return config

    # -- bidding ------------------------------------------------------------

    def calculate_disabled_bids(
        self, context: CalculateDisabledBidsContext
    ) -> CalculateDisabledBidsContext:
        for mod in self.mods:
            context = replace(context, mod_state=self._state_for(mod, context.game_state))
            context = mod.on_calculate_disabled_bids(context)
        return context

    def disabled_bids(
        self, game_state: GameState, player_id: str, config: GameConfig
    ) -> Tuple[int, ...]:
        """Bid values the UI should grey out for `player_id`."""
        bids = game_state.current_round.bids if game_state.current_round else ()
        context = self.calculate_disabled_bids(
            CalculateDisabledBidsContext(
                game_state=game_state,
                config=config,
                player_id=player_id,
                current_bids=bids,
            )
        )
        return tuple(sorted(set(context.disabled_bids)))

    def validate_bid(self, context: BidValidationContext) -> BidValidationContext:
        for mod in self.mods:
            context = replace(context, mod_state=self._state_for(mod, context.game_state))
            context = mod.on_validate_bid(context)
            if not context.is_valid:
                break
        return context

    # -- card play ----------------------------------------------------------

    def validate_play(self, context: PlayValidationContext) -> PlayValidationContext:
        for mod in self.mods:
            context = replace(context, mod_state=self._state_for(mod, context.game_state))
            context = mod.on_validate_play(context)
            if not context.is_valid:
                break
        return context

    def card_played(self, context: CardPlayedContext) -> Dict[str, Any]:
        """Run observers; returns the updated mod_states mapping."""
        states = dict(context.game_state.mod_states)
        for mod in self.mods:
            result = mod.on_card_played(
                replace(context, mod_state=self._state_for(mod, context.game_state))
            )
            states[mod.id] = result.mod_state
        return states

    def trick_complete(self, context: TrickCompleteContext) -> Dict[str, Any]:
        states = dict(context.game_state.mod_states)
        for mod in self.mods:
            result = mod.on_trick_complete(
                replace(context, mod_state=self._state_for(mod, context.game_state))
            )
            states[mod.id] = result.mod_state
        return states

    # -- scoring ------------------------------------------------------------

    def calculate_score(self, context: ScoreContext) -> ScoreContext:
        for mod in self.mods:
            context = replace(context, mod_state=self._state_for(mod, context.game_state))
            context = mod.on_calculate_score(context)
        return context

    def round_end(self, context: RoundEndContext) -> Dict[str, Any]:
        states = dict(context.game_state.mod_states)
        for mod in self.mods:
            states[mod.id] = mod.on_round_end(
                replace(context, mod_state=self._state_for(mod, context.game_state))
            )
        return states


EMPTY_PIPELINE = HookPipeline()


def table_bid_total(bids: Sequence[PlayerBid]) -> int:
    """Sum of all non-nil bids on the table."""
    return sum(0 if b.is_any_nil else b.bid for b in bids)
