"""Game logic for the slot machine."""

from .slots import Outcome, PayoutTable, outcome, solvency_cap

__all__ = [
    "Outcome",
    "PayoutTable",
    "outcome",
    "solvency_cap",
]
