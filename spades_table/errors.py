# spades_table/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import enum


class ErrorCode(str, enum.Enum):
    """Reason codes for rejected player actions."""

    PHASE_MISMATCH = "PhaseMismatch"
    PLAYER_NOT_FOUND = "PlayerNotFound"
    PLAYER_ALREADY_JOINED = "PlayerAlreadyJoined"
    NOT_YOUR_TURN = "NotYourTurn"
    ALREADY_ACTED = "AlreadyActed"
    CARD_NOT_IN_HAND = "CardNotInHand"
    MUST_FOLLOW_SUIT = "MustFollowSuit"
    SPADES_NOT_BROKEN = "SpadesNotBroken"
    INVALID_BID_VALUE = "InvalidBidValue"
    NIL_NOT_ALLOWED = "NilNotAllowed"
    BLIND_NIL_NOT_ALLOWED = "BlindNilNotAllowed"
    ROOM_FULL = "RoomFull"
    NO_ACTIVE_ROUND = "NoActiveRound"
    NO_TRICK_WINNER = "NoTrickWinner"
    RULE_MOD_REJECTED = "RuleModRejected"
    UNKNOWN_ACTION = "UnknownAction"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[ErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: ErrorCode, message: str) -> "ValidationResult":
        return cls(valid=False, error=error, message=message)


class GameInvariantError(RuntimeError):
    """
    Raised when a caller breaks the phase-gating contract, e.g. collecting
    a trick that has no winner. Player mistakes never raise this.
    """
