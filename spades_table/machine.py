# spades_table/machine.py
from __future__ import annotations

import logging
import random
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

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
    SideEffect,
    StartGame,
    StartNextRound,
    TrickComplete,
)
from .cards import Suit, create_deck, deal_cards, has_card, remove_card_from_hand
from .config import DEFAULT_GAME_CONFIG, GameConfig
from .errors import ErrorCode, GameInvariantError
from .mods.base import (
    EMPTY_PIPELINE,
    BidValidationContext,
    CardPlayedContext,
    HookPipeline,
    PlayValidationContext,
    RoundEndContext,
    ScoreContext,
    TrickCompleteContext,
)
from .rules import (
    add_play_to_trick,
    create_bid,
    is_trick_complete,
    team_total_bid,
    validate_bid,
    validate_play,
)
from .scoring import (
    ScoreCalculation,
    calculate_round_score,
    check_game_end,
    count_player_tricks,
    create_round_summary,
    team_round_inputs,
    update_team_score,
)
from .state import (
    NUM_SEATS,
    TRICKS_PER_ROUND,
    GamePhase,
    GameState,
    Player,
    RoundState,
    TeamId,
    Trick,
    TrickPlay,
    create_round_state,
    team_for_position,
)

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: Dict[GamePhase, Tuple[GamePhase, ...]] = {
    GamePhase.WAITING: (GamePhase.READY,),
    GamePhase.READY: (GamePhase.DEALING,),
    GamePhase.DEALING: (GamePhase.BIDDING,),
    GamePhase.BIDDING: (GamePhase.PLAYING,),
    GamePhase.PLAYING: (GamePhase.TRICK_END, GamePhase.PLAYING),
    GamePhase.TRICK_END: (GamePhase.PLAYING, GamePhase.ROUND_END),
    GamePhase.ROUND_END: (GamePhase.DEALING, GamePhase.GAME_END),
    GamePhase.GAME_END: (),
}


def can_transition(from_phase: GamePhase, to_phase: GamePhase) -> bool:
    return to_phase in VALID_TRANSITIONS[from_phase]


def process_action(
    state: GameState,
    action: GameAction,
    config: GameConfig = DEFAULT_GAME_CONFIG,
    hooks: Optional[HookPipeline] = None,
    now: Optional[float] = None,
) -> ActionResult:
    """
    Apply one action to `state` and return the outcome.

    Rejected actions come back with valid=False, an ErrorCode and the very
    same `state` object. Accepted actions return a new GameState plus any
    side effects for the transport layer. `state` itself is never mutated.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return _reject(state, ErrorCode.UNKNOWN_ACTION, f"Unknown action {action!r}")

    ts = time.time() if now is None else now
    touched = replace(state, last_activity=max(state.last_activity, ts))
    result = handler(touched, action, config, hooks or EMPTY_PIPELINE)

    if not result.valid:
        logger.debug(
            "Rejected %s in %s: %s (%s)",
            action.type.value,
            state.id,
            result.error.value if result.error else None,
            result.message,
        )
        # Rejections never leak the touched copy.
        return replace(result, state=state)

    if result.state.phase != state.phase and not can_transition(
        state.phase, result.state.phase
    ):
        raise GameInvariantError(
            f"Illegal transition {state.phase.value} -> {result.state.phase.value}"
        )
    return result


def get_disabled_bids(
    state: GameState,
    player_id: str,
    config: GameConfig = DEFAULT_GAME_CONFIG,
    hooks: Optional[HookPipeline] = None,
) -> Tuple[int, ...]:
    """Bid values rule mods want greyed out for `player_id` right now."""
    return (hooks or EMPTY_PIPELINE).disabled_bids(state, player_id, config)


def _reject(state: GameState, error: ErrorCode, message: str) -> ActionResult:
    return ActionResult(state=state, valid=False, error=error, message=message)


def _accept(state: GameState, *side_effects: SideEffect) -> ActionResult:
    return ActionResult(state=state, valid=True, side_effects=tuple(side_effects))


def _phase_guard(
    state: GameState, expected: GamePhase, message: str
) -> Optional[ActionResult]:
    if state.phase != expected:
        return _reject(state, ErrorCode.PHASE_MISMATCH, message)
    return None


def _require_round(state: GameState) -> RoundState:
    if state.current_round is None:
        raise GameInvariantError(
            f"Game {state.id} is in phase {state.phase.value} without an active round"
        )
    return state.current_round


def _replace_player(state: GameState, player: Player) -> Tuple[Player, ...]:
    return tuple(player if p.id == player.id else p for p in state.players)


# ---------------------------------------------------------------------------
# Seating and connectivity
# ---------------------------------------------------------------------------


def _handle_player_join(
    state: GameState, action: PlayerJoin, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.WAITING, "Game already started")
    if rejected:
        return rejected
    if state.num_players >= NUM_SEATS:
        return _reject(state, ErrorCode.ROOM_FULL, "Game is full")
    if state.find_player(action.player_id) is not None:
        return _reject(
            state, ErrorCode.PLAYER_ALREADY_JOINED, "Player already in game"
        )

    position = state.num_players
    player = Player(
        id=action.player_id,
        nickname=action.nickname,
        position=position,
        team=team_for_position(position),
    )
    return _accept(replace(state, players=state.players + (player,)))


def _handle_player_leave(
    state: GameState, action: PlayerLeave, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    if state.find_player(action.player_id) is None:
        return _reject(state, ErrorCode.PLAYER_NOT_FOUND, "Player not found")

    if state.phase != GamePhase.WAITING:
        # Mid-game the seat is kept; the player just goes offline.
        return _set_connected(state, action.player_id, False)

    remaining = [p for p in state.players if p.id != action.player_id]
    reseated = tuple(
        replace(p, position=idx, team=team_for_position(idx))
        for idx, p in enumerate(remaining)
    )
    return _accept(replace(state, players=reseated))


def _handle_player_ready(
    state: GameState, action: PlayerReady, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.WAITING, "Cannot ready during game")
    if rejected:
        return rejected
    player = state.find_player(action.player_id)
    if player is None:
        return _reject(state, ErrorCode.PLAYER_NOT_FOUND, "Player not found")

    players = _replace_player(state, replace(player, ready=True))
    all_ready = len(players) == NUM_SEATS and all(p.ready for p in players)
    return _accept(
        replace(
            state,
            players=players,
            phase=GamePhase.READY if all_ready else GamePhase.WAITING,
        )
    )


def _set_connected(state: GameState, player_id: str, connected: bool) -> ActionResult:
    player = state.find_player(player_id)
    if player is None:
        return _reject(state, ErrorCode.PLAYER_NOT_FOUND, "Player not found")
    players = _replace_player(state, replace(player, connected=connected))
    return _accept(replace(state, players=players))


def _handle_player_reconnect(
    state: GameState, action: PlayerReconnect, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    return _set_connected(state, action.player_id, True)


def _handle_player_disconnect(
    state: GameState, action: PlayerDisconnect, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    return _set_connected(state, action.player_id, False)


# ---------------------------------------------------------------------------
# Game and round lifecycle
# ---------------------------------------------------------------------------


def _handle_start_game(
    state: GameState, action: StartGame, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.READY, "Not all players ready")
    if rejected:
        return rejected
    return _accept(replace(state, phase=GamePhase.DEALING))


def _handle_deal_cards(
    state: GameState, action: DealCards, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.DEALING, "Not in dealing phase")
    if rejected:
        return rejected

    rng = random.Random(action.seed) if action.seed is not None else None
    hands = deal_cards(create_deck(), NUM_SEATS, rng)
    players = tuple(
        replace(p, hand=tuple(hands[p.position])) for p in state.players
    )
    round_number = state.current_round.round_number + 1 if state.current_round else 1

    new_state = replace(
        state,
        phase=GamePhase.BIDDING,
        players=players,
        current_round=create_round_state(round_number),
        current_player_position=(state.dealer_position + 1) % NUM_SEATS,
    )
    return _accept(new_state, DealHands(hands={p.id: p.hand for p in players}))


def _handle_make_bid(
    state: GameState, action: MakeBid, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    if state.phase == GamePhase.BIDDING:
        _require_round(state)
    check = validate_bid(
        state, action.player_id, action.bid, action.is_nil, action.is_blind_nil, config
    )
    if not check.valid:
        return _reject(state, check.error, check.message)
    round_state = state.current_round

    mod_check = hooks.validate_bid(
        BidValidationContext(
            game_state=state,
            config=config,
            player_id=action.player_id,
            bid=action.bid,
            is_nil=action.is_nil,
            is_blind_nil=action.is_blind_nil,
            current_bids=round_state.bids,
        )
    )
    if not mod_check.is_valid:
        return _reject(
            state, ErrorCode.RULE_MOD_REJECTED, mod_check.error_message or "Bid rejected"
        )

    bid = create_bid(action.player_id, action.bid, action.is_nil, action.is_blind_nil)
    bids = round_state.bids + (bid,)
    done = len(bids) == NUM_SEATS
    scores = state.scores
    if done:
        scores = {
            team: replace(
                score,
                round_bid=team_total_bid(bids, [p.id for p in state.team_players(team)]),
            )
            for team, score in state.scores.items()
        }
    # The first trick is always led from the dealer's left.
    next_position = (
        (state.dealer_position + 1) % NUM_SEATS
        if done
        else (state.current_player_position + 1) % NUM_SEATS
    )
    return _accept(
        replace(
            state,
            phase=GamePhase.PLAYING if done else GamePhase.BIDDING,
            current_round=replace(round_state, bids=bids),
            current_player_position=next_position,
            scores=scores,
        )
    )


def _handle_play_card(
    state: GameState, action: PlayCard, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    if state.phase != GamePhase.PLAYING:
        return _reject(state, ErrorCode.PHASE_MISMATCH, "Not in playing phase")
    round_state = _require_round(state)
    player = state.find_player(action.player_id)
    if player is None:
        return _reject(state, ErrorCode.PLAYER_NOT_FOUND, "Player not found")
    if player.position == state.current_player_position and not has_card(
        player.hand, action.card
    ):
        return _reject(state, ErrorCode.CARD_NOT_IN_HAND, "Card not in hand")

    check = validate_play(state, action.player_id, action.card, player.hand)
    if not check.valid:
        return _reject(state, check.error, check.message)

    mod_check = hooks.validate_play(
        PlayValidationContext(
            game_state=state,
            config=config,
            player_id=action.player_id,
            card=action.card,
            hand=player.hand,
            current_trick=round_state.current_trick,
        )
    )
    if not mod_check.is_valid:
        return _reject(
            state, ErrorCode.RULE_MOD_REJECTED, mod_check.error_message or "Play rejected"
        )

    trick = add_play_to_trick(
        round_state.current_trick, TrickPlay(player_id=player.id, card=action.card)
    )
    complete = is_trick_complete(trick)
    new_round = replace(
        round_state,
        current_trick=trick,
        spades_broken=round_state.spades_broken or action.card.suit == Suit.SPADES,
    )
    new_state = replace(
        state,
        phase=GamePhase.TRICK_END if complete else GamePhase.PLAYING,
        players=_replace_player(
            state, replace(player, hand=remove_card_from_hand(player.hand, action.card))
        ),
        current_round=new_round,
        # Left as-is at trick end; COLLECT_TRICK hands the lead to the winner.
        current_player_position=state.current_player_position
        if complete
        else (state.current_player_position + 1) % NUM_SEATS,
    )

    new_state = replace(
        new_state,
        mod_states=hooks.card_played(
            CardPlayedContext(
                game_state=new_state,
                config=config,
                player_id=player.id,
                card=action.card,
            )
        ),
    )

    if not complete:
        return _accept(new_state)
    if trick.winner is None:
        raise GameInvariantError("Completed trick resolved without a winner")

    new_state = replace(
        new_state,
        mod_states=hooks.trick_complete(
            TrickCompleteContext(
                game_state=new_state,
                config=config,
                trick=trick,
                winner_id=trick.winner,
            )
        ),
    )
    return _accept(
        new_state,
        TrickComplete(winner_id=trick.winner, trick_number=len(round_state.tricks) + 1),
    )


def _handle_collect_trick(
    state: GameState, action: CollectTrick, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.TRICK_END, "Not in trick-end phase")
    if rejected:
        return rejected
    round_state = _require_round(state)

    completed = round_state.current_trick
    if completed.winner is None:
        raise GameInvariantError("Trick has no winner")
    winner = state.find_player(completed.winner)
    if winner is None:
        raise GameInvariantError(f"Trick winner {completed.winner} is not seated")

    tricks = round_state.tricks + (completed,)
    round_over = len(tricks) == TRICKS_PER_ROUND
    scores = dict(state.scores)
    scores[winner.team] = replace(
        scores[winner.team], round_tricks=scores[winner.team].round_tricks + 1
    )
    return _accept(
        replace(
            state,
            phase=GamePhase.ROUND_END if round_over else GamePhase.PLAYING,
            current_round=replace(round_state, tricks=tricks, current_trick=Trick()),
            current_player_position=winner.position,
            scores=scores,
        )
    )


def _score_teams(
    state: GameState,
    player_tricks: Dict[str, int],
    config: GameConfig,
    hooks: HookPipeline,
) -> Dict[TeamId, ScoreCalculation]:
    calculations: Dict[TeamId, ScoreCalculation] = {}
    for team in TeamId:
        regular_bid, team_tricks, nil_bids = team_round_inputs(state, team, player_tricks)
        calc = calculate_round_score(regular_bid, team_tricks, nil_bids, player_tricks)

        rewritten = hooks.calculate_score(
            ScoreContext(
                game_state=state,
                config=config,
                team_id=team,
                bid=regular_bid,
                tricks=team_tricks,
                nil_bids=tuple(nil_bids),
                calculated_score=calc.total_score,
                calculated_bags=calc.bags,
            )
        )
        if (
            rewritten.calculated_score != calc.total_score
            or rewritten.calculated_bags != calc.bags
        ):
            calc = replace(
                calc,
                total_score=rewritten.calculated_score,
                bags=rewritten.calculated_bags,
            )
        calculations[team] = calc
    return calculations


def _handle_end_round(
    state: GameState, action: EndRound, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.ROUND_END, "Not in round-end phase")
    if rejected:
        return rejected
    _require_round(state)

    player_tricks = count_player_tricks(state)
    calculations = _score_teams(state, player_tricks, config, hooks)
    summary = create_round_summary(state, player_tricks, config, calculations)

    scores = {
        team: update_team_score(state.scores[team], calculations[team], config)
        for team in TeamId
    }
    winner = check_game_end(scores, state.winning_score)

    mod_states = hooks.round_end(
        RoundEndContext(game_state=state, config=config, round_summary=summary)
    )

    side_effects: List[SideEffect] = [RoundComplete(summary=summary)]
    if winner is not None:
        side_effects.append(GameComplete(winner=winner))

    return _accept(
        replace(
            state,
            phase=GamePhase.GAME_END if winner is not None else GamePhase.ROUND_END,
            scores=scores,
            dealer_position=(state.dealer_position + 1) % NUM_SEATS,
            mod_states=mod_states,
        ),
        *side_effects,
    )


def _handle_start_next_round(
    state: GameState, action: StartNextRound, config: GameConfig, hooks: HookPipeline
) -> ActionResult:
    rejected = _phase_guard(state, GamePhase.ROUND_END, "Not in round-end phase")
    if rejected:
        return rejected

    scores = {
        team: replace(score, round_bid=0, round_tricks=0)
        for team, score in state.scores.items()
    }
    players = tuple(replace(p, hand=()) for p in state.players)
    return _accept(
        replace(state, phase=GamePhase.DEALING, players=players, scores=scores)
    )


_Handler = Callable[[GameState, GameAction, GameConfig, HookPipeline], ActionResult]

_HANDLERS: Dict[type, _Handler] = {
    PlayerJoin: _handle_player_join,
    PlayerLeave: _handle_player_leave,
    PlayerReady: _handle_player_ready,
    PlayerReconnect: _handle_player_reconnect,
    PlayerDisconnect: _handle_player_disconnect,
    StartGame: _handle_start_game,
    DealCards: _handle_deal_cards,
    MakeBid: _handle_make_bid,
    PlayCard: _handle_play_card,
    CollectTrick: _handle_collect_trick,
    EndRound: _handle_end_round,
    StartNextRound: _handle_start_next_round,
}
