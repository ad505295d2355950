# spades_table/cli.py
from __future__ import annotations

import argparse
import asyncio
import logging
import random
from collections import Counter
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .agents import RandomSpadesAgent
from .config import config_from_env
from .engine import GameEngine
from .errors import GameInvariantError
from .game_log import build_round_score_rows, write_rows_csv
from .mods import mod_registry
from .paths import ensure_results_dir, resolve_results_path
from .state import GamePhase
from .verbose_logger import FailureLogger, VerboseGameLogger

DEFAULT_PARALLEL_GAMES = 4


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Simulate Spades games between seeded random agents and log "
            "per-round team scores to a CSV file."
        )
    )

    parser.add_argument(
        "--games",
        type=int,
        default=1,
        help="Number of full games to play (default: 1).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Base random seed for shuffles, agents and rule mods.",
    )
    parser.add_argument(
        "--csv",
        type=str,
        default="spades_scores.csv",
        help="Path to the output CSV file (default: spades_scores.csv).",
    )
    parser.add_argument(
        "--winning-score",
        type=int,
        default=None,
        help="Points needed to win; overrides SPADES_WINNING_SCORE.",
    )
    parser.add_argument(
        "--mods",
        nargs="*",
        default=[],
        help=(
            "Rule mods to enable, in hook order. Available: "
            + ", ".join(mod_registry.available())
        ),
    )
    parser.add_argument(
        "--parallel-games",
        type=int,
        default=DEFAULT_PARALLEL_GAMES,
        help="Max number of games to play concurrently (default: %(default)s).",
    )
    parser.add_argument(
        "--max-rounds",
        type=int,
        default=200,
        help="Abandon a game that has no winner after this many rounds.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ...). Default: INFO.",
    )
    parser.add_argument(
        "--verbose-log",
        type=str,
        default=None,
        help="Optional path for a detailed action-by-action log file.",
    )
    parser.add_argument(
        "--failure-log",
        type=str,
        default=None,
        help="Optional path to capture only rejected actions.",
    )

    return parser.parse_args(argv)


def _play_single_game(
    game_index: int,
    *,
    args: argparse.Namespace,
    verbose_logger: Optional[VerboseGameLogger],
    failure_logger: Optional[FailureLogger],
) -> Tuple[List[Dict[str, Any]], Optional[str], str]:
    """Run one game synchronously (meant for thread execution)."""
    game_id = f"game-{game_index}"
    game_seed = args.seed + game_index

    config = config_from_env()
    if args.winning_score is not None:
        config = replace(config, winning_score=args.winning_score)

    mod_rng = random.Random(game_seed * 7919)
    hooks = mod_registry.build_pipeline(args.mods, rng=mod_rng)

    agents = [
        RandomSpadesAgent(rng=random.Random(args.seed + game_index * 1000 + i))
        for i in range(4)
    ]
    player_names = [f"Random {i}" for i in range(4)]

    engine = GameEngine(
        agents=agents,
        player_names=player_names,
        rng_seed=game_seed,
        game_label=game_id,
        config=config,
        hooks=hooks,
        verbose_logger=verbose_logger,
        failure_logger=failure_logger,
    )

    game_state = engine.play_game(max_rounds=args.max_rounds)
    winner = None
    if game_state.phase == GamePhase.GAME_END and engine.round_records:
        last = engine.round_records[-1].winner
        winner = last.value if last else None

    rows = build_round_score_rows(engine.round_records, game_id=game_id)
    return rows, winner, game_id


async def _play_single_game_async(
    game_index: int,
    *,
    args: argparse.Namespace,
    verbose_logger: Optional[VerboseGameLogger],
    failure_logger: Optional[FailureLogger],
) -> Tuple[List[Dict[str, Any]], Optional[str], str]:
    return await asyncio.to_thread(
        _play_single_game,
        game_index,
        args=args,
        verbose_logger=verbose_logger,
        failure_logger=failure_logger,
    )


async def async_main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    ensure_results_dir()

    csv_path = resolve_results_path(args.csv)
    verbose_path = (
        resolve_results_path(args.verbose_log) if args.verbose_log else None
    )
    failure_path = (
        resolve_results_path(args.failure_log) if args.failure_log else None
    )

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    unknown = [m for m in args.mods if m not in mod_registry.available()]
    if unknown:
        raise SystemExit(
            f"Unknown rule mod(s): {', '.join(unknown)}. "
            f"Available: {', '.join(mod_registry.available())}"
        )

    logging.info("Games to play: %d", args.games)
    logging.info("Rule mods: %s", ", ".join(args.mods) or "none")
    logging.info("Output CSV: %s", csv_path)
    if verbose_path:
        logging.info("Verbose log: %s", verbose_path)
    if failure_path:
        logging.info("Failure log: %s", failure_path)

    parallel_games = max(1, min(args.parallel_games, args.games))
    logging.info("Running up to %d game(s) concurrently", parallel_games)

    verbose_logger = VerboseGameLogger(verbose_path) if verbose_path else None
    failure_logger = FailureLogger(failure_path) if failure_path else None

    all_rows: List[Dict[str, Any]] = []
    wins: Counter = Counter()
    games_played = 0
    errors = 0

    for batch_start in range(0, args.games, parallel_games):
        batch_end = min(batch_start + parallel_games, args.games)
        batch_indices = list(range(batch_start, batch_end))
        logging.info(
            "Starting games %s",
            ", ".join(str(i + 1) for i in batch_indices),
        )
        tasks = [
            asyncio.create_task(
                _play_single_game_async(
                    game_index=game_index,
                    args=args,
                    verbose_logger=verbose_logger,
                    failure_logger=failure_logger,
                )
            )
            for game_index in batch_indices
        ]

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, GameInvariantError):
                logging.error("Game aborted on a broken invariant: %s", result)
                errors += 1
                continue
            if isinstance(result, Exception):
                logging.error("Game task failed: %s", result)
                errors += 1
                continue

            rows, winner, game_id = result
            all_rows.extend(rows)
            games_played += 1
            wins[winner or "none"] += 1
            logging.info("Finished %s (winner: %s)", game_id, winner or "none")

    write_rows_csv(all_rows, csv_path)

    logging.info(
        "Finished %d/%d games (%d failed); wrote %d rows to %s",
        games_played,
        args.games,
        errors,
        len(all_rows),
        csv_path,
    )
    logging.info(
        "Wins: %s",
        ", ".join(f"{team}={count}" for team, count in sorted(wins.items())),
    )

    if verbose_logger:
        verbose_logger.flush()
    if failure_logger:
        failure_logger.flush()


def main(argv: List[str] | None = None) -> None:
    asyncio.run(async_main(argv))


if __name__ == "__main__":
    main()

'''
python3 -m spades_table.cli --games 20 --seed 1 --csv spades_20_games.csv

python3 -m spades_table.cli \
  --games 200 \
  --parallel-games 8 \
  --mods anti-eleven bid-ceiling \
  --csv spades_anti11_200.csv \
  --failure-log spades_anti11_200_rejections.log \
  --seed 3
'''
