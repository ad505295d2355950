# spades_table/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Mapping, Optional

from dotenv import load_dotenv

if TYPE_CHECKING:
    from .mods.base import HookPipeline

logger = logging.getLogger(__name__)

# Load environment variables from a .env file if present.
load_dotenv()

ENV_PREFIX = "SPADES_"
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class GameConfig:
    """Per-game rule settings. Fixed once a game has been created."""
    winning_score: int = 500
    allow_nil: bool = True
    allow_blind_nil: bool = True
    bag_penalty_threshold: int = 10
    bag_penalty: int = 100

    def validate(self) -> "GameConfig":
        if self.winning_score <= 0:
            raise ValueError("winning_score must be positive")
        if self.bag_penalty_threshold < 1:
            raise ValueError("bag_penalty_threshold must be at least 1")
        if self.bag_penalty < 0:
            raise ValueError("bag_penalty must not be negative")
        return self


DEFAULT_GAME_CONFIG = GameConfig()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from exc


def config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    base: GameConfig = DEFAULT_GAME_CONFIG,
) -> GameConfig:
    """
    Build a GameConfig from SPADES_* environment variables.

    Unset variables keep the value from `base`. Reads os.environ (after
    .env loading) unless `environ` is given.
    """
    env = os.environ if environ is None else environ
    overrides = {}

    for field_name, parser in (
        ("winning_score", _parse_int),
        ("allow_nil", _parse_bool),
        ("allow_blind_nil", _parse_bool),
        ("bag_penalty_threshold", _parse_int),
        ("bag_penalty", _parse_int),
    ):
        key = ENV_PREFIX + field_name.upper()
        raw = env.get(key)
        if raw is None or raw == "":
            continue
        overrides[field_name] = parser(key, raw)

    return replace(base, **overrides).validate()


def create_game_config(
    base: Optional[GameConfig] = None,
    hooks: Optional["HookPipeline"] = None,
) -> GameConfig:
    """
    Validate a config and let registered rule mods adjust it.

    Call once per game, at creation time.
    """
    config = (base or DEFAULT_GAME_CONFIG).validate()
    if hooks is not None:
        adjusted = hooks.modify_config(config)
        if adjusted != config:
            logger.debug("Rule mods adjusted game config: %s", adjusted)
        config = adjusted.validate()
    return config
