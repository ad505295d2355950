# spades_table/state.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
import enum
import time

from .cards import Card, Suit, card_to_dict
from .config import DEFAULT_GAME_CONFIG

NUM_SEATS = 4
TRICKS_PER_ROUND = 13
MAX_BID = 13


class GamePhase(enum.Enum):
    WAITING = "waiting"
    READY = "ready"
    DEALING = "dealing"
    BIDDING = "bidding"
    PLAYING = "playing"
    TRICK_END = "trick-end"
    ROUND_END = "round-end"
    GAME_END = "game-end"


class TeamId(enum.Enum):
    TEAM1 = "team1"
    TEAM2 = "team2"


def team_for_position(position: int) -> TeamId:
    return TeamId.TEAM1 if position % 2 == 0 else TeamId.TEAM2


def partner_position(position: int) -> int:
    return (position + 2) % NUM_SEATS


def positions_for_team(team: TeamId) -> Tuple[int, int]:
    return (0, 2) if team == TeamId.TEAM1 else (1, 3)


@dataclass(frozen=True)
class Player:
    id: str
    nickname: str
    position: int
    team: TeamId
    hand: Tuple[Card, ...] = ()
    connected: bool = True
    ready: bool = False


@dataclass(frozen=True)
class PlayerBid:
    player_id: str
    bid: int
    is_nil: bool = False
    is_blind_nil: bool = False

    @property
    def is_any_nil(self) -> bool:
        return self.is_nil or self.is_blind_nil


@dataclass(frozen=True)
class TrickPlay:
    player_id: str
    card: Card


@dataclass(frozen=True)
class Trick:
    # plays in play order
    plays: Tuple[TrickPlay, ...] = ()
    # suit of the first play, fixed for the rest of the trick
    lead_suit: Optional[Suit] = None
    # set only once all four seats have played
    winner: Optional[str] = None


@dataclass(frozen=True)
class RoundState:
    round_number: int
    bids: Tuple[PlayerBid, ...] = ()
    tricks: Tuple[Trick, ...] = ()
    current_trick: Trick = field(default_factory=Trick)
    spades_broken: bool = False


@dataclass(frozen=True)
class TeamScore:
    team_id: TeamId
    score: int = 0
    bags: int = 0
    round_bid: int = 0
    round_tricks: int = 0


@dataclass(frozen=True)
class GameState:
    """
    Authoritative snapshot of one room.

    Never mutated: every transition builds a new instance with
    dataclasses.replace. `mod_states` holds each rule mod's private state
    keyed by mod id. `scores` and `mod_states` are read-only views, since
    snapshots share them; build a new dict and pass it to replace().
    """
    id: str
    phase: GamePhase = GamePhase.WAITING
    players: Tuple[Player, ...] = ()
    scores: Mapping[TeamId, TeamScore] = field(
        default_factory=lambda: {team: TeamScore(team) for team in TeamId}
    )
    current_round: Optional[RoundState] = None
    dealer_position: int = 0
    current_player_position: int = 1
    winning_score: int = DEFAULT_GAME_CONFIG.winning_score
    created_at: float = 0.0
    last_activity: float = 0.0
    mod_states: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scores", MappingProxyType(dict(self.scores)))
        object.__setattr__(self, "mod_states", MappingProxyType(dict(self.mod_states)))

    @property
    def num_players(self) -> int:
        return len(self.players)

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def player_at(self, position: int) -> Optional[Player]:
        for p in self.players:
            if p.position == position:
                return p
        return None

    def team_players(self, team: TeamId) -> Tuple[Player, ...]:
        return tuple(p for p in self.players if p.team == team)


def create_initial_game_state(
    game_id: str,
    winning_score: int = DEFAULT_GAME_CONFIG.winning_score,
    mod_states: Optional[Dict[str, Any]] = None,
    now: Optional[float] = None,
) -> GameState:
    """Empty room in the waiting phase."""
    ts = time.time() if now is None else now
    return GameState(
        id=game_id,
        winning_score=winning_score,
        created_at=ts,
        last_activity=ts,
        mod_states=dict(mod_states or {}),
    )


def create_round_state(round_number: int) -> RoundState:
    return RoundState(round_number=round_number)


# ---------------------------------------------------------------------------
# Plain-value projections
# ---------------------------------------------------------------------------


def _trick_to_dict(trick: Trick) -> Dict[str, Any]:
    return {
        "plays": [
            {"player_id": play.player_id, "card": card_to_dict(play.card)}
            for play in trick.plays
        ],
        "lead_suit": trick.lead_suit.value if trick.lead_suit else None,
        "winner": trick.winner,
    }


def _bid_to_dict(bid: PlayerBid) -> Dict[str, Any]:
    return {
        "player_id": bid.player_id,
        "bid": bid.bid,
        "is_nil": bid.is_nil,
        "is_blind_nil": bid.is_blind_nil,
    }


def _score_to_dict(score: TeamScore) -> Dict[str, Any]:
    return {
        "team_id": score.team_id.value,
        "score": score.score,
        "bags": score.bags,
        "round_bid": score.round_bid,
        "round_tricks": score.round_tricks,
    }


def _mod_state_to_value(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


def tricks_won_by_player(state: GameState) -> Dict[str, int]:
    counts = {p.id: 0 for p in state.players}
    if state.current_round is not None:
        for trick in state.current_round.tricks:
            if trick.winner is not None:
                counts[trick.winner] = counts.get(trick.winner, 0) + 1
    return counts


def state_to_dict(state: GameState) -> Dict[str, Any]:
    """Full server-side state as plain JSON-compatible values."""
    round_state = state.current_round
    return {
        "id": state.id,
        "phase": state.phase.value,
        "players": [
            {
                "id": p.id,
                "nickname": p.nickname,
                "position": p.position,
                "team": p.team.value,
                "hand": [card_to_dict(c) for c in p.hand],
                "connected": p.connected,
                "ready": p.ready,
            }
            for p in state.players
        ],
        "scores": {
            team.value: _score_to_dict(score)
            for team, score in state.scores.items()
        },
        "current_round": None
        if round_state is None
        else {
            "round_number": round_state.round_number,
            "bids": [_bid_to_dict(b) for b in round_state.bids],
            "tricks": [_trick_to_dict(t) for t in round_state.tricks],
            "current_trick": _trick_to_dict(round_state.current_trick),
            "spades_broken": round_state.spades_broken,
        },
        "dealer_position": state.dealer_position,
        "current_player_position": state.current_player_position,
        "winning_score": state.winning_score,
        "created_at": state.created_at,
        "last_activity": state.last_activity,
        "mod_states": {
            mod_id: _mod_state_to_value(value)
            for mod_id, value in state.mod_states.items()
        },
    }


def to_client_state(state: GameState) -> Dict[str, Any]:
    """
    Broadcast view of the room: hands are replaced by card counts and
    completed tricks by per-player trick totals.
    """
    round_state = state.current_round
    return {
        "id": state.id,
        "phase": state.phase.value,
        "players": [
            {
                "id": p.id,
                "nickname": p.nickname,
                "position": p.position,
                "team": p.team.value,
                "card_count": len(p.hand),
                "connected": p.connected,
                "ready": p.ready,
            }
            for p in state.players
        ],
        "scores": {
            team.value: _score_to_dict(score)
            for team, score in state.scores.items()
        },
        "current_round": None
        if round_state is None
        else {
            "round_number": round_state.round_number,
            "bids": [_bid_to_dict(b) for b in round_state.bids],
            "current_trick": {
                "plays": _trick_to_dict(round_state.current_trick)["plays"],
                "lead_suit": round_state.current_trick.lead_suit.value
                if round_state.current_trick.lead_suit
                else None,
            },
            "tricks_won": tricks_won_by_player(state),
            "spades_broken": round_state.spades_broken,
        },
        "dealer_position": state.dealer_position,
        "current_player_position": state.current_player_position,
    }
