# spades_table/agents/__init__.py
from .base import BidDecision, SpadesAgent
from .random_agent import RandomSpadesAgent

__all__ = [
    "BidDecision",
    "SpadesAgent",
    "RandomSpadesAgent",
]
