# spades_table/engine.py
from __future__ import annotations

import json
import logging
import random
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .actions import (
    ActionResult,
    CollectTrick,
    DealCards,
    DealHands,
    EndRound,
    GameAction,
    GameComplete,
    MakeBid,
    PlayCard,
    PlayerDisconnect,
    PlayerJoin,
    PlayerLeave,
    PlayerReady,
    PlayerReconnect,
    RoundComplete,
    StartGame,
    StartNextRound,
    action_to_dict,
)
from .agents.base import BidDecision, SpadesAgent
from .cards import Card, card_to_dict, has_card, remove_card_from_hand
from .config import GameConfig, create_game_config
from .errors import ErrorCode, GameInvariantError
from .game_log import RoundRecord
from .machine import get_disabled_bids, process_action
from .mods.base import EMPTY_PIPELINE, HookPipeline
from .rules import bid_ceiling, get_playable_cards
from .state import (
    MAX_BID,
    NUM_SEATS,
    GamePhase,
    GameState,
    TeamId,
    create_initial_game_state,
    to_client_state,
    tricks_won_by_player,
)
from .verbose_logger import FailureLogger, VerboseGameLogger

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 200


def _merge(first: ActionResult, *rest: ActionResult) -> ActionResult:
    """Fold a chain of accepted results into one, side effects in order."""
    effects = list(first.side_effects)
    last = first
    for result in rest:
        effects.extend(result.side_effects)
        last = result
    return replace(last, side_effects=tuple(effects))


class GameEngine:
    """
    Owns a single Spades room and drives it through `process_action`.

    The engine is the caller side of the state machine: it serializes
    dispatches, performs the trick/round auto-chaining after each play,
    keeps every seat's private hand, and can play a whole game with
    pluggable agents. No transport here; agents just implement the
    SpadesAgent protocol.
    """

    def __init__(
        self,
        agents: Optional[Sequence[SpadesAgent]] = None,
        player_names: Optional[List[str]] = None,
        rng_seed: Optional[int] = None,
        game_label: Optional[str] = None,
        config: Optional[GameConfig] = None,
        hooks: Optional[HookPipeline] = None,
        verbose_logger: Optional[VerboseGameLogger] = None,
        failure_logger: Optional[FailureLogger] = None,
    ) -> None:
        self.agents: List[SpadesAgent] = list(agents or [])
        if self.agents and len(self.agents) != NUM_SEATS:
            raise ValueError("Spades is played by exactly 4 players")

        if player_names is None:
            player_names = [f"Player {i}" for i in range(len(self.agents))]
        if self.agents and len(player_names) != len(self.agents):
            raise ValueError("player_names must match number of agents")
        self.player_names = list(player_names)

        self.rng = random.Random(rng_seed)
        self.game_label = game_label or "game"
        self.hooks = hooks or EMPTY_PIPELINE
        self.config = create_game_config(config, self.hooks)
        self.verbose_logger = verbose_logger
        self.failure_logger = failure_logger

        self.game_state: GameState = create_initial_game_state(
            self.game_label,
            winning_score=self.config.winning_score,
            mod_states=self.hooks.initial_mod_states(),
        )
        self.round_records: List[RoundRecord] = []
        self._hands: Dict[str, Tuple[Card, ...]] = {}
        # Reentrant so a play and its auto-chained follow-ups stay atomic.
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, action: GameAction) -> ActionResult:
        """Run one action through the state machine and keep the result."""
        with self._lock:
            before = self.game_state
            result = process_action(before, action, self.config, self.hooks)
            if result.valid:
                self.game_state = result.state
                self._apply_side_effects(before, result)
            self._log(before, action, result)
            return result

    def _apply_side_effects(self, before: GameState, result: ActionResult) -> None:
        winner: Optional[TeamId] = None
        for effect in result.side_effects:
            if isinstance(effect, GameComplete):
                winner = effect.winner

        for effect in result.side_effects:
            if isinstance(effect, DealHands):
                self._hands = dict(effect.hands)
            elif isinstance(effect, RoundComplete):
                record = RoundRecord(
                    round_number=effect.summary.round_number,
                    dealer_position=before.dealer_position,
                    summary=effect.summary,
                    scores=dict(result.state.scores),
                    winner=winner,
                )
                self.round_records.append(record)
                logger.info(
                    "Finished round %d for %s: team1 %+d (%d), team2 %+d (%d)",
                    record.round_number,
                    self.game_label,
                    effect.summary.team1.points,
                    record.scores[TeamId.TEAM1].score,
                    effect.summary.team2.points,
                    record.scores[TeamId.TEAM2].score,
                )
            elif isinstance(effect, GameComplete):
                logger.info(
                    "Finished game %s: %s wins", self.game_label, effect.winner.value
                )

    def _log(self, before: GameState, action: GameAction, result: ActionResult) -> None:
        round_number = (
            before.current_round.round_number if before.current_round else None
        )
        payload = json.dumps(action_to_dict(action), sort_keys=True)
        if result.valid:
            if self.verbose_logger is not None:
                self.verbose_logger.log_action(
                    game_id=self.game_label,
                    round_number=round_number,
                    phase=before.phase.value,
                    action_label=action.type.value,
                    payload=payload,
                    new_phase=result.state.phase.value,
                    side_effects=result.side_effects,
                )
        elif self.failure_logger is not None:
            self.failure_logger.log_rejection(
                game_id=self.game_label,
                round_number=round_number,
                phase=before.phase.value,
                action_label=action.type.value,
                error=result.error.value if result.error else "unknown",
                message=result.message,
                payload=payload,
            )

    # -------------------------------------------------------------------------
    # Room API
    # -------------------------------------------------------------------------

    def add_player(self, player_id: str, nickname: str) -> ActionResult:
        return self.dispatch(PlayerJoin(player_id=player_id, nickname=nickname))

    def remove_player(self, player_id: str) -> ActionResult:
        return self.dispatch(PlayerLeave(player_id=player_id))

    def set_player_ready(self, player_id: str) -> ActionResult:
        return self.dispatch(PlayerReady(player_id=player_id))

    def reconnect_player(self, player_id: str) -> ActionResult:
        return self.dispatch(PlayerReconnect(player_id=player_id))

    def disconnect_player(self, player_id: str) -> ActionResult:
        return self.dispatch(PlayerDisconnect(player_id=player_id))

    def _deal(self, seed: Optional[int]) -> ActionResult:
        if seed is None:
            seed = self.rng.randrange(2**32)
        return self.dispatch(DealCards(seed=seed))

    def start_game(self, seed: Optional[int] = None) -> ActionResult:
        """START_GAME followed immediately by the first deal."""
        with self._lock:
            started = self.dispatch(StartGame())
            if not started.valid:
                return started
            return _merge(started, self._deal(seed))

    def start_next_round(self, seed: Optional[int] = None) -> ActionResult:
        with self._lock:
            advanced = self.dispatch(StartNextRound())
            if not advanced.valid:
                return advanced
            self._hands = {}
            return _merge(advanced, self._deal(seed))

    def make_bid(
        self,
        player_id: str,
        bid: int,
        is_nil: bool = False,
        is_blind_nil: bool = False,
    ) -> ActionResult:
        return self.dispatch(
            MakeBid(
                player_id=player_id, bid=bid, is_nil=is_nil, is_blind_nil=is_blind_nil
            )
        )

    def play_card(self, player_id: str, card: Card) -> ActionResult:
        """
        Play a card and auto-chain the follow-ups: COLLECT_TRICK when the
        trick is complete, then END_ROUND when that was the 13th trick.
        Side effects come back concatenated in that order.
        """
        with self._lock:
            if player_id in self._hands and not has_card(self._hands[player_id], card):
                result = ActionResult(
                    state=self.game_state,
                    valid=False,
                    error=ErrorCode.CARD_NOT_IN_HAND,
                    message="Card not in hand",
                )
                self._log(self.game_state, PlayCard(player_id, card), result)
                return result

            played = self.dispatch(PlayCard(player_id=player_id, card=card))
            if not played.valid:
                return played
            self._hands[player_id] = tuple(
                remove_card_from_hand(self._hands.get(player_id, ()), card)
            )
            if played.state.phase != GamePhase.TRICK_END:
                return played

            collected = self.dispatch(CollectTrick())
            if not collected.valid:
                raise GameInvariantError(
                    f"Auto-collect failed after a complete trick: {collected.message}"
                )
            if collected.state.phase != GamePhase.ROUND_END:
                return _merge(played, collected)

            ended = self.dispatch(EndRound())
            if not ended.valid:
                raise GameInvariantError(
                    f"Auto end-round failed after the last trick: {ended.message}"
                )
            return _merge(played, collected, ended)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_player_hand(self, player_id: str) -> Tuple[Card, ...]:
        with self._lock:
            return self._hands.get(player_id, ())

    def is_player_turn(self, player_id: str) -> bool:
        with self._lock:
            player = self.game_state.find_player(player_id)
            return (
                player is not None
                and self.game_state.phase in (GamePhase.BIDDING, GamePhase.PLAYING)
                and player.position == self.game_state.current_player_position
            )

    def disabled_bids(self, player_id: str) -> Tuple[int, ...]:
        with self._lock:
            return get_disabled_bids(self.game_state, player_id, self.config, self.hooks)

    def client_state(self) -> Dict[str, Any]:
        with self._lock:
            return to_client_state(self.game_state)

    # -------------------------------------------------------------------------
    # Agent-driven play
    # -------------------------------------------------------------------------

    def play_game(self, max_rounds: int = DEFAULT_MAX_ROUNDS) -> GameState:
        """Seat the agents, play until a team wins, return the final state."""
        if len(self.agents) != NUM_SEATS:
            raise ValueError("play_game needs exactly 4 agents")

        seat_ids = [f"p{i}" for i in range(NUM_SEATS)]
        for pid, name in zip(seat_ids, self.player_names):
            self._expect(self.add_player(pid, name))
        for pid in seat_ids:
            self._expect(self.set_player_ready(pid))
        self._expect(self.start_game())

        rounds_played = 0
        while True:
            self._bidding_phase()
            self._trick_phase()
            rounds_played += 1
            if self.game_state.phase == GamePhase.GAME_END:
                break
            if rounds_played >= max_rounds:
                logger.warning(
                    "Stopping %s after %d rounds without a winner",
                    self.game_label,
                    rounds_played,
                )
                break
            self._expect(self.start_next_round())

        return self.game_state

    def _expect(self, result: ActionResult) -> ActionResult:
        if not result.valid:
            raise GameInvariantError(
                f"Scripted action rejected in {self.game_label}: "
                f"{result.error.value if result.error else None} {result.message}"
            )
        return result

    def _seat_agent(self) -> Tuple[str, SpadesAgent]:
        player = self.game_state.player_at(self.game_state.current_player_position)
        if player is None:
            raise GameInvariantError("Current seat is empty")
        return player.id, self.agents[player.position]

    def _bidding_phase(self) -> None:
        while self.game_state.phase == GamePhase.BIDDING:
            player_id, agent = self._seat_agent()
            obs = self._build_common_observation_base(player_id)
            obs.update(
                {
                    "phase": "bidding",
                    "disabled_bids": list(self.disabled_bids(player_id)),
                    "bid_ceiling": bid_ceiling(self.game_state, player_id),
                    "nil_allowed": self.config.allow_nil,
                    "blind_nil_allowed": self.config.allow_blind_nil,
                }
            )
            decision = agent.choose_bid(obs)
            if not isinstance(decision, BidDecision):
                raise ValueError("Agent returned a non-BidDecision bid")

            result = self.make_bid(
                player_id, decision.bid, decision.is_nil, decision.is_blind_nil
            )
            if not result.valid:
                self._fallback_bid(player_id, decision.bid)

    def _fallback_bid(self, player_id: str, wanted: int) -> None:
        """Try regular bids closest to the agent's choice until one sticks."""
        candidates = sorted(range(MAX_BID + 1), key=lambda b: (abs(b - wanted), b))
        for bid in candidates:
            if self.make_bid(player_id, bid).valid:
                logger.debug("Corrected bid of %s to %d", player_id, bid)
                return
        raise GameInvariantError(f"No acceptable bid for {player_id}")

    def _trick_phase(self) -> None:
        while self.game_state.phase == GamePhase.PLAYING:
            player_id, agent = self._seat_agent()
            hand = list(self.get_player_hand(player_id))
            playable = get_playable_cards(self.game_state, player_id, hand)
            legal_indices = [i for i, c in enumerate(hand) if c in playable]

            obs = self._build_common_observation_base(player_id)
            obs["phase"] = "play"
            obs["legal_move_indices"] = legal_indices

            move_index = agent.choose_card(obs)
            if move_index not in legal_indices:
                # If agent chooses illegal index, auto-correct to first legal.
                move_index = legal_indices[0]

            order = [move_index] + [i for i in legal_indices if i != move_index]
            for idx in order:
                if self.play_card(player_id, hand[idx]).valid:
                    break
            else:
                raise GameInvariantError(f"No playable card accepted for {player_id}")

    # -------------------------------------------------------------------------
    # Observation builders
    # -------------------------------------------------------------------------

    def _build_common_observation_base(self, player_id: str) -> Dict[str, Any]:
        state = self.game_state
        player = state.find_player(player_id)
        if player is None:
            raise GameInvariantError(f"Unknown player {player_id}")
        round_state = state.current_round
        return {
            "game": {
                "game_id": self.game_label,
                "round_number": round_state.round_number if round_state else None,
                "dealer_position": state.dealer_position,
                "winning_score": state.winning_score,
            },
            "player": {
                "id": player.id,
                "name": player.nickname,
                "position": player.position,
                "team": player.team.value,
            },
            "hand": [card_to_dict(c) for c in self.get_player_hand(player_id)],
            "scores": {
                team.value: {"score": s.score, "bags": s.bags}
                for team, s in state.scores.items()
            },
            "bids": [
                {
                    "player_id": b.player_id,
                    "bid": b.bid,
                    "is_nil": b.is_nil,
                    "is_blind_nil": b.is_blind_nil,
                }
                for b in (round_state.bids if round_state else ())
            ],
            "current_trick": {
                "plays": [
                    {"player_id": p.player_id, "card": card_to_dict(p.card)}
                    for p in round_state.current_trick.plays
                ]
                if round_state
                else [],
                "lead_suit": round_state.current_trick.lead_suit.value
                if round_state and round_state.current_trick.lead_suit
                else None,
            },
            "spades_broken": round_state.spades_broken if round_state else False,
            "tricks_won": tricks_won_by_player(state),
            "seating_order": [p.id for p in state.players],
        }
