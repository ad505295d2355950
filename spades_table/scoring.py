# spades_table/scoring.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .config import GameConfig
from .errors import GameInvariantError
from .state import GameState, PlayerBid, TeamId, TeamScore

NIL_VALUE = 100
BLIND_NIL_VALUE = 200


@dataclass(frozen=True)
class ScoreCalculation:
    base_score: int
    bags: int
    bag_penalty: int
    nil_bonus: int
    total_score: int


@dataclass(frozen=True)
class NilResult:
    player_id: str
    is_blind_nil: bool
    succeeded: bool
    points: int


@dataclass(frozen=True)
class TeamRoundResult:
    bid: int
    tricks: int
    points: int
    bags: int
    bag_penalty: bool
    nil_results: Tuple[NilResult, ...] = ()


@dataclass(frozen=True)
class RoundSummary:
    round_number: int
    team1: TeamRoundResult
    team2: TeamRoundResult

    def for_team(self, team: TeamId) -> TeamRoundResult:
        return self.team1 if team == TeamId.TEAM1 else self.team2


def _nil_points(bid: PlayerBid, tricks_taken: int) -> int:
    value = BLIND_NIL_VALUE if bid.is_blind_nil else NIL_VALUE
    return value if tricks_taken == 0 else -value


def calculate_round_score(
    team_bid: int,
    team_tricks: int,
    team_nil_bids: Iterable[PlayerBid],
    player_tricks: Mapping[str, int],
) -> ScoreCalculation:
    """
    Score one team's round.

    Each nil is all-or-nothing on that player's own tricks (+/-100, blind
    nil +/-200). The regular part scores bid*10 plus one point per bag
    when made, -bid*10 when set. A team where both players bid nil has no
    regular part.
    """
    nil_bids = list(team_nil_bids)
    nil_bonus = sum(
        _nil_points(nb, player_tricks.get(nb.player_id, 0)) for nb in nil_bids
    )

    base_score = 0
    bags = 0
    if team_bid == 0 and len(nil_bids) == 2:
        pass
    elif team_tricks >= team_bid:
        bags = team_tricks - team_bid
        base_score = team_bid * 10 + bags
    else:
        base_score = -team_bid * 10

    return ScoreCalculation(
        base_score=base_score,
        bags=bags,
        bag_penalty=0,
        nil_bonus=nil_bonus,
        total_score=base_score + nil_bonus,
    )


def update_team_score(
    current: TeamScore, calc: ScoreCalculation, config: GameConfig
) -> TeamScore:
    """Apply a round's result; bags past the threshold carry over."""
    new_bags = current.bags + calc.bags
    penalty = 0
    if new_bags >= config.bag_penalty_threshold:
        penalty = config.bag_penalty
        new_bags -= config.bag_penalty_threshold

    return replace(
        current,
        score=current.score + calc.total_score - penalty,
        bags=new_bags,
    )


def check_game_end(
    scores: Mapping[TeamId, TeamScore], winning_score: int
) -> Optional[TeamId]:
    """
    Winner once a team reaches `winning_score`. With both teams over, the
    higher score wins and an exact tie is a draw (None).
    """
    team1 = scores[TeamId.TEAM1].score
    team2 = scores[TeamId.TEAM2].score

    if team1 >= winning_score and team2 >= winning_score:
        if team1 > team2:
            return TeamId.TEAM1
        if team2 > team1:
            return TeamId.TEAM2
        return None
    if team1 >= winning_score:
        return TeamId.TEAM1
    if team2 >= winning_score:
        return TeamId.TEAM2
    return None


def count_player_tricks(state: GameState) -> Dict[str, int]:
    """Tricks won per player id in the current round."""
    counts = {p.id: 0 for p in state.players}
    if state.current_round is None:
        return counts
    for trick in state.current_round.tricks:
        if trick.winner is None:
            raise GameInvariantError("Archived trick has no winner")
        counts[trick.winner] = counts.get(trick.winner, 0) + 1
    return counts


def team_round_inputs(
    state: GameState, team: TeamId, player_tricks: Mapping[str, int]
) -> Tuple[int, int, List[PlayerBid]]:
    """(regular team bid, team tricks, nil bids) for one team's round."""
    if state.current_round is None:
        raise GameInvariantError("No active round to score")
    team_ids = [p.id for p in state.team_players(team)]
    team_bids = [b for b in state.current_round.bids if b.player_id in team_ids]
    nil_bids = [b for b in team_bids if b.is_any_nil]
    regular_bid = sum(b.bid for b in team_bids if not b.is_any_nil)
    team_tricks = sum(player_tricks.get(pid, 0) for pid in team_ids)
    return regular_bid, team_tricks, nil_bids


def create_round_summary(
    state: GameState,
    player_tricks: Mapping[str, int],
    config: GameConfig,
    calculations: Optional[Mapping[TeamId, ScoreCalculation]] = None,
) -> RoundSummary:
    """
    Display summary of the round in `state`, computed against the scores
    as they stood before the round was applied.

    `calculations` lets the caller pass score results already rewritten by
    rule mods; otherwise they are recomputed.
    """
    if state.current_round is None:
        raise GameInvariantError("No active round to summarize")

    results: Dict[TeamId, TeamRoundResult] = {}
    for team in TeamId:
        regular_bid, team_tricks, nil_bids = team_round_inputs(
            state, team, player_tricks
        )
        if calculations is not None and team in calculations:
            calc = calculations[team]
        else:
            calc = calculate_round_score(
                regular_bid, team_tricks, nil_bids, player_tricks
            )

        nil_results = tuple(
            NilResult(
                player_id=nb.player_id,
                is_blind_nil=nb.is_blind_nil,
                succeeded=player_tricks.get(nb.player_id, 0) == 0,
                points=_nil_points(nb, player_tricks.get(nb.player_id, 0)),
            )
            for nb in nil_bids
        )
        new_bags = state.scores[team].bags + calc.bags
        results[team] = TeamRoundResult(
            bid=regular_bid,
            tricks=team_tricks,
            points=calc.total_score,
            bags=calc.bags,
            bag_penalty=new_bags >= config.bag_penalty_threshold,
            nil_results=nil_results,
        )

    return RoundSummary(
        round_number=state.current_round.round_number,
        team1=results[TeamId.TEAM1],
        team2=results[TeamId.TEAM2],
    )
