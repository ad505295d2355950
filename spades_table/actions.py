# spades_table/actions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, Union
import enum

from .cards import Card, card_to_dict, dict_to_card, parse_card
from .errors import ErrorCode
from .scoring import RoundSummary
from .state import GameState, TeamId


class ActionType(enum.Enum):
    PLAYER_JOIN = "PLAYER_JOIN"
    PLAYER_LEAVE = "PLAYER_LEAVE"
    PLAYER_READY = "PLAYER_READY"
    PLAYER_RECONNECT = "PLAYER_RECONNECT"
    PLAYER_DISCONNECT = "PLAYER_DISCONNECT"
    START_GAME = "START_GAME"
    DEAL_CARDS = "DEAL_CARDS"
    MAKE_BID = "MAKE_BID"
    PLAY_CARD = "PLAY_CARD"
    COLLECT_TRICK = "COLLECT_TRICK"
    END_ROUND = "END_ROUND"
    START_NEXT_ROUND = "START_NEXT_ROUND"


@dataclass(frozen=True)
class PlayerJoin:
    type: ClassVar[ActionType] = ActionType.PLAYER_JOIN
    player_id: str
    nickname: str


@dataclass(frozen=True)
class PlayerLeave:
    type: ClassVar[ActionType] = ActionType.PLAYER_LEAVE
    player_id: str


@dataclass(frozen=True)
class PlayerReady:
    type: ClassVar[ActionType] = ActionType.PLAYER_READY
    player_id: str


@dataclass(frozen=True)
class PlayerReconnect:
    type: ClassVar[ActionType] = ActionType.PLAYER_RECONNECT
    player_id: str


@dataclass(frozen=True)
class PlayerDisconnect:
    type: ClassVar[ActionType] = ActionType.PLAYER_DISCONNECT
    player_id: str


@dataclass(frozen=True)
class StartGame:
    type: ClassVar[ActionType] = ActionType.START_GAME


@dataclass(frozen=True)
class DealCards:
    type: ClassVar[ActionType] = ActionType.DEAL_CARDS
    # Shuffle seed; None draws a fresh shuffle.
    seed: Optional[int] = None


@dataclass(frozen=True)
class MakeBid:
    type: ClassVar[ActionType] = ActionType.MAKE_BID
    player_id: str
    bid: int
    is_nil: bool = False
    is_blind_nil: bool = False


@dataclass(frozen=True)
class PlayCard:
    type: ClassVar[ActionType] = ActionType.PLAY_CARD
    player_id: str
    card: Card


@dataclass(frozen=True)
class CollectTrick:
    type: ClassVar[ActionType] = ActionType.COLLECT_TRICK


@dataclass(frozen=True)
class EndRound:
    type: ClassVar[ActionType] = ActionType.END_ROUND


@dataclass(frozen=True)
class StartNextRound:
    type: ClassVar[ActionType] = ActionType.START_NEXT_ROUND


GameAction = Union[
    PlayerJoin,
    PlayerLeave,
    PlayerReady,
    PlayerReconnect,
    PlayerDisconnect,
    StartGame,
    DealCards,
    MakeBid,
    PlayCard,
    CollectTrick,
    EndRound,
    StartNextRound,
]

ACTION_CLASSES: Dict[ActionType, Type[Any]] = {
    cls.type: cls
    for cls in (
        PlayerJoin,
        PlayerLeave,
        PlayerReady,
        PlayerReconnect,
        PlayerDisconnect,
        StartGame,
        DealCards,
        MakeBid,
        PlayCard,
        CollectTrick,
        EndRound,
        StartNextRound,
    )
}


# ---------------------------------------------------------------------------
# Side effects for the transport layer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DealHands:
    """Private hands to push to each seat; never part of the broadcast."""
    hands: Dict[str, Tuple[Card, ...]]


@dataclass(frozen=True)
class TrickComplete:
    winner_id: str
    trick_number: int


@dataclass(frozen=True)
class RoundComplete:
    summary: RoundSummary


@dataclass(frozen=True)
class GameComplete:
    winner: TeamId


SideEffect = Union[DealHands, TrickComplete, RoundComplete, GameComplete]


@dataclass(frozen=True)
class ActionResult:
    state: GameState
    valid: bool
    error: Optional[ErrorCode] = None
    message: Optional[str] = None
    side_effects: Tuple[SideEffect, ...] = ()


# ---------------------------------------------------------------------------
# Wire codecs
# ---------------------------------------------------------------------------


def action_to_dict(action: GameAction) -> Dict[str, Any]:
    """Convert an action to a JSON-serializable dict with a 'type' tag."""
    data: Dict[str, Any] = {"type": action.type.value}
    for name, value in vars(action).items():
        data[name] = card_to_dict(value) if isinstance(value, Card) else value
    return data


# Expected wire types per action field. A bool never counts as an int.
_FIELD_TYPES: Dict[str, Tuple[type, ...]] = {
    "player_id": (str,),
    "nickname": (str,),
    "bid": (int,),
    "is_nil": (bool,),
    "is_blind_nil": (bool,),
    "seed": (int, type(None)),
}


def _check_field(action_type: ActionType, name: str, value: Any) -> None:
    expected = _FIELD_TYPES.get(name)
    if expected is None:
        return
    if isinstance(value, bool) and bool not in expected:
        ok = False
    else:
        ok = isinstance(value, expected)
    if not ok:
        raise ValueError(
            f"Field '{name}' of {action_type.value} has bad value {value!r}"
        )


def _decode_card(value: Any) -> Card:
    if isinstance(value, dict):
        return dict_to_card(value)
    if isinstance(value, str):
        return parse_card(value)
    raise ValueError(f"Card must be a dict or text, got {value!r}")


def dict_to_action(data: Dict[str, Any]) -> GameAction:
    """Inverse of action_to_dict; raises ValueError on malformed input."""
    if not isinstance(data, dict):
        raise ValueError(f"Action must be a dict, got {data!r}")
    try:
        action_type = ActionType(data["type"])
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown or missing action type in {data!r}") from exc

    fields = {k: v for k, v in data.items() if k != "type"}
    for name, value in fields.items():
        _check_field(action_type, name, value)
    if action_type == ActionType.PLAY_CARD and "card" in fields:
        fields["card"] = _decode_card(fields["card"])
    try:
        return ACTION_CLASSES[action_type](**fields)
    except TypeError as exc:
        raise ValueError(f"Bad fields for {action_type.value}: {exc}") from exc
