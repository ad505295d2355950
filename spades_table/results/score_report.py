# spades_table/results/score_report.py
from __future__ import annotations

import argparse
from typing import List, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

REQUIRED_COLUMNS = [
    "game_id",
    "round_number",
    "team",
    "bid",
    "tricks",
    "points",
    "bag_penalty",
    "total_score",
    "winner",
]


def load_scores(csv_path) -> pd.DataFrame:
    df = pd.read_csv(csv_path)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{csv_path} is missing columns: {', '.join(missing)}")
    # csv round-trips booleans as strings when a column has blanks
    df["bag_penalty"] = df["bag_penalty"].astype(str).str.lower() == "true"
    return df


def team_summary(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-team aggregates over every round in the log:
    win rate, mean points per round, bag-penalty rate and set rate
    (rounds where the team took fewer tricks than it bid).
    """
    games = df["game_id"].nunique()
    winners = (
        df.dropna(subset=["winner"])
          .drop_duplicates("game_id")["winner"]
          .value_counts()
    )

    df = df.assign(set=df["tricks"] < df["bid"])
    summary = (
        df.groupby("team")
          .agg(
              rounds=("points", "size"),
              mean_points=("points", "mean"),
              bag_penalty_rate=("bag_penalty", "mean"),
              set_rate=("set", "mean"),
          )
    )
    summary["wins"] = winners.reindex(summary.index).fillna(0).astype(int)
    summary["win_rate"] = summary["wins"] / games if games else np.nan
    return summary.reset_index()


def cumulative_progression(df: pd.DataFrame) -> pd.DataFrame:
    """Mean total score per team after each round, with a 95% CI."""
    stats = (
        df.groupby(["team", "round_number"])["total_score"]
          .agg(["mean", "std", "count"])
          .reset_index()
    )
    # 95% confidence interval: mean +/- 1.96 * (std / sqrt(n))
    stats["se"] = stats["std"].fillna(0) / np.sqrt(stats["count"])
    stats["ci95"] = 1.96 * stats["se"]
    return stats


def plot_progression(df: pd.DataFrame, out_path) -> None:
    stats = cumulative_progression(df)

    fig, ax = plt.subplots(figsize=(10, 6))
    for team in sorted(stats["team"].unique()):
        sub = stats[stats["team"] == team].sort_values("round_number")
        ax.errorbar(
            sub["round_number"],
            sub["mean"],
            yerr=sub["ci95"],
            marker="o",
            capsize=3,
            label=team,
        )

    ax.set_xlabel("Round")
    ax.set_ylabel("Mean total score across games")
    ax.set_title("Cumulative team score by round (95% CI)")
    ax.grid(True)
    ax.legend()
    fig.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Summarize a Spades score CSV.")
    parser.add_argument("csv", help="CSV written by spades_table.cli")
    parser.add_argument("--plot", default=None, help="Optional PNG path for a plot.")
    args = parser.parse_args(argv)

    df = load_scores(args.csv)
    summary = team_summary(df)
    with pd.option_context("display.float_format", "{:.3f}".format):
        print(summary.to_string(index=False))

    if args.plot:
        plot_progression(df, args.plot)
        print(f"Saved plot to {args.plot}")


if __name__ == "__main__":
    main()
