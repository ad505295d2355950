# spades_table/game_log.py
from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .scoring import RoundSummary
from .state import TeamId, TeamScore

FIELDNAMES = [
    "game_id",
    "round_number",
    "dealer_position",
    "team",
    "bid",
    "tricks",
    "points",
    "bags",
    "bag_penalty",
    "nil_bids",
    "nil_made",
    "total_score",
    "total_bags",
    "winner",
]


@dataclass(frozen=True)
class RoundRecord:
    """One scored round plus the team totals right after it was applied."""
    round_number: int
    dealer_position: int
    summary: RoundSummary
    scores: Dict[TeamId, TeamScore]
    winner: Optional[TeamId] = None


def build_round_score_rows(
    records: Sequence[RoundRecord],
    game_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Build a list of rows summarizing per-round team scores for CSV export.

    Each row corresponds to (round, team) and has keys in FIELDNAMES. The
    `winner` column is only filled on the rows of the deciding round.
    """
    rows: List[Dict[str, Any]] = []
    for record in records:
        for team in TeamId:
            result = record.summary.for_team(team)
            total = record.scores[team]
            rows.append(
                {
                    "game_id": game_id,
                    "round_number": record.round_number,
                    "dealer_position": record.dealer_position,
                    "team": team.value,
                    "bid": result.bid,
                    "tricks": result.tricks,
                    "points": result.points,
                    "bags": result.bags,
                    "bag_penalty": result.bag_penalty,
                    "nil_bids": len(result.nil_results),
                    "nil_made": sum(1 for n in result.nil_results if n.succeeded),
                    "total_score": total.score,
                    "total_bags": total.bags,
                    "winner": record.winner.value if record.winner else None,
                }
            )
    return rows


def write_round_scores_csv(
    records: Sequence[RoundRecord],
    path,
    game_id: Optional[str] = None,
) -> None:
    """
    Write per-round scores to a CSV file.

    `path` can be a string or any path-like object accepted by `open`.
    """
    rows = build_round_score_rows(records, game_id=game_id)
    write_rows_csv(rows, path)


def write_rows_csv(rows: Sequence[Dict[str, Any]], path) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
        writer.writeheader()
        for row in rows:
            writer.writerow({field: row.get(field) for field in FIELDNAMES})
