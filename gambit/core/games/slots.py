from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from gambit.core.exceptions import OutcomeOutOfBounds
from gambit.core.reels import (
    BITS_30,
    MAJOR_SYMBOLS,
    MINOR_SYMBOLS,
    NUM_SYMBOLS,
    reel_tables,
    sample,
)

SLICE_BITS = 30
REEL_COUNT = 3

# A single payout never exceeds 1/64 of the pool
SOLVENCY_SHIFT = 6


@dataclass(frozen=True)
class Outcome:
    """Symbols shown by the three reels plus the entropy left unconsumed."""

    left: int
    center: int
    right: int
    remaining_entropy: int

    @property
    def symbols(self) -> Tuple[int, int, int]:
        return self.left, self.center, self.right

    def to_dict(self) -> dict:
        return {
            "left": self.left,
            "center": self.center,
            "right": self.right,
            # Decimal string: the remainder can be wider than a JSON number
            "remaining_entropy": str(self.remaining_entropy),
        }


def outcome(entropy: int, boosted: bool) -> Outcome:
    """
    Resolve a wide entropy value into three reel symbols.

    Slices are taken least-significant first: bits 0-29 drive the left
    reel, 30-59 the center and 60-89 the right. The same table set (boosted
    or not) is used for all three reels.
    """
    if entropy < 0:
        raise ValueError("entropy must be a non-negative integer")

    symbols = []
    for table in reel_tables(boosted):
        symbols.append(sample(table, entropy & BITS_30))
        entropy >>= SLICE_BITS

    left, center, right = symbols
    return Outcome(left, center, right, entropy)


def solvency_cap(pool_balance: int) -> int:
    """Largest amount one payout may take from a pool of this size."""
    return max(pool_balance, 0) >> SOLVENCY_SHIFT


class PayoutTable:
    """
    Maps a symbol triple to a payout in multiples of the spin price.

    Only the outer reels and the center are compared; the null symbol
    never pays. Three identical major symbols win the jackpot, which is
    the full solvency cap.
    """

    DEFAULT_MULTIPLIERS = {
        "minor_triple": 50,
        "minor_outer_pair": 10,
        "major_outer_pair": 20,
        "major_distinct": 100,
    }

    def __init__(self, multipliers: Optional[Dict[str, int]] = None):
        self.multipliers = dict(self.DEFAULT_MULTIPLIERS)
        if multipliers:
            unknown = set(multipliers) - set(self.DEFAULT_MULTIPLIERS)
            if unknown:
                raise ValueError(f"Unknown payout patterns: {sorted(unknown)}")
            self.multipliers.update(multipliers)

    @staticmethod
    def _check_symbols(*symbols: int):
        for symbol in symbols:
            if not 0 <= symbol < NUM_SYMBOLS:
                raise OutcomeOutOfBounds(f"symbol {symbol} is not on the reels")

    def classify(self, left: int, center: int, right: int) -> str:
        """Name the winning pattern of a triple, or "none"."""
        self._check_symbols(left, center, right)

        if left in MINOR_SYMBOLS and center in MINOR_SYMBOLS and right in MINOR_SYMBOLS:
            if left == center == right:
                return "minor_triple"
            if left == right:
                return "minor_outer_pair"
            return "none"

        if left in MAJOR_SYMBOLS and center in MAJOR_SYMBOLS and right in MAJOR_SYMBOLS:
            if left == center == right:
                return "jackpot"
            if len({left, center, right}) == REEL_COUNT:
                return "major_distinct"
            return "none"

        if left in MAJOR_SYMBOLS and left == right and center in MINOR_SYMBOLS:
            return "major_outer_pair"

        return "none"

    def table_value(self, left: int, center: int, right: int, cost_to_spin: int, pool_balance: int) -> int:
        """Unclamped payout for a triple."""
        pattern = self.classify(left, center, right)
        if pattern == "none":
            return 0
        if pattern == "jackpot":
            return solvency_cap(pool_balance)
        return self.multipliers[pattern] * cost_to_spin

    def payout(self, left: int, center: int, right: int, cost_to_spin: int, pool_balance: int) -> int:
        """Payout for a triple, clamped to the pool's solvency cap."""
        return min(
            self.table_value(left, center, right, cost_to_spin, pool_balance),
            solvency_cap(pool_balance),
        )
