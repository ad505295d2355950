# spades_table/verbose_logger.py
from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import List, Optional, Sequence

from .actions import SideEffect


def _header(
    game_id: Optional[str],
    round_number: Optional[int],
    phase: Optional[str],
    action_label: str,
) -> str:
    parts = [f"Action: {action_label}"]
    if game_id is not None:
        parts.append(f"Game: {game_id}")
    if round_number is not None:
        parts.append(f"Round: {round_number}")
    if phase is not None:
        parts.append(f"Phase: {phase}")
    return " | ".join(parts)


class _TextLog:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._entries: List[str] = []
        self._lock = Lock()

    def _append(self, lines: Sequence[str]) -> None:
        entry = "\n".join(lines).strip()
        with self._lock:
            self._entries.append(entry)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def flush(self) -> None:
        with self._lock:
            if not self._entries:
                return
            to_write = "\n\n".join(self._entries)
            self._entries.clear()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(to_write + "\n\n")


class VerboseGameLogger(_TextLog):
    """Accumulates detailed, action-by-action logs for Spades games."""

    def log_action(
        self,
        *,
        game_id: Optional[str],
        round_number: Optional[int],
        phase: Optional[str],
        action_label: str,
        payload: str,
        new_phase: Optional[str] = None,
        side_effects: Sequence[SideEffect] = (),
    ) -> None:
        lines = [
            f"=== {_header(game_id, round_number, phase, action_label)} ===",
            "Payload:",
            payload.strip(),
        ]
        if new_phase is not None and new_phase != phase:
            lines.extend(["", f"Phase -> {new_phase}"])
        if side_effects:
            lines.extend(["", "Side effects:"])
            lines.extend(f"  {effect!r}" for effect in side_effects)
        self._append(lines)


class FailureLogger(_TextLog):
    """Captures only rejected actions so they are recorded separately."""

    def log_rejection(
        self,
        *,
        game_id: Optional[str],
        round_number: Optional[int],
        phase: Optional[str],
        action_label: str,
        error: str,
        message: Optional[str] = None,
        payload: Optional[str] = None,
    ) -> None:
        lines = [
            f"=== {_header(game_id, round_number, phase, action_label)} ===",
            f"Error: {error}",
        ]
        if message:
            lines.extend(["", f"Message: {message}"])
        if payload:
            lines.extend(["", "Payload:", payload.strip()])
        self._append(lines)
