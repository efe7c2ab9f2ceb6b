"""
Weighted reels for the three-reel slot machine.

Each reel is a cumulative distribution over TOTAL_MASS = 2**30 - 1. A 30-bit
entropy slice lands on the first symbol whose threshold exceeds it, so the
whole 30-bit domain is covered exactly once.

Symbols:
    0       null symbol (never pays)
    1..15   minor symbols
    16..18  major symbols

The improved ("boosted") reels take mass off the null symbol and give it to
the major symbols.
"""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

from gambit.core.exceptions import OutcomeOutOfBounds

BITS_30 = (1 << 30) - 1
TOTAL_MASS = BITS_30
NUM_SYMBOLS = 19

NULL_SYMBOL = 0
MINOR_SYMBOLS = range(1, 16)
MAJOR_SYMBOLS = range(16, 19)


@dataclass(frozen=True)
class DistributionTable:
    """
    Cumulative thresholds for one reel, built from integer symbol weights.

    threshold[i] = TOTAL_MASS * (w[0] + ... + w[i]) // sum(w)

    Integer running sums keep the last threshold at TOTAL_MASS exactly.
    """

    name: str
    weights: Tuple[int, ...]
    thresholds: Tuple[int, ...] = field(init=False, repr=False)

    def __post_init__(self):
        if len(self.weights) != NUM_SYMBOLS:
            raise ValueError(
                f"{self.name}: expected {NUM_SYMBOLS} weights, got {len(self.weights)}"
            )
        if any(w < 0 for w in self.weights):
            raise ValueError(f"{self.name}: weights must not be negative")
        weight_sum = sum(self.weights)
        if weight_sum == 0:
            raise ValueError(f"{self.name}: weights must not all be zero")

        thresholds = []
        running = 0
        for weight in self.weights:
            running += weight
            thresholds.append(TOTAL_MASS * running // weight_sum)
        object.__setattr__(self, "thresholds", tuple(thresholds))

    def __getitem__(self, index: int) -> int:
        return self.thresholds[index]

    def __len__(self) -> int:
        return len(self.thresholds)

    def __iter__(self):
        return iter(self.thresholds)

    def mass(self, symbol: int) -> int:
        """Probability mass of one symbol, in units of 1 / TOTAL_MASS."""
        lower = self.thresholds[symbol - 1] if symbol > 0 else 0
        return self.thresholds[symbol] - lower

    def probability(self, symbol: int) -> float:
        return self.mass(symbol) / TOTAL_MASS

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "total_mass": TOTAL_MASS,
            "weights": list(self.weights),
            "thresholds": list(self.thresholds),
            "probabilities": [self.probability(symbol) for symbol in range(len(self))],
        }


def _reel(name: str, null: int, minor: int, majors: Tuple[int, int, int]) -> DistributionTable:
    return DistributionTable(name, (null,) + (minor,) * len(MINOR_SYMBOLS) + majors)


# Weights are out of 64 per reel
UNMODIFIED_LEFT_REEL = _reel("UnmodifiedLeftReel", 4, 3, (5, 5, 5))
UNMODIFIED_CENTER_REEL = _reel("UnmodifiedCenterReel", 1, 3, (6, 6, 6))
UNMODIFIED_RIGHT_REEL = _reel("UnmodifiedRightReel", 3, 3, (6, 5, 5))

IMPROVED_LEFT_REEL = _reel("ImprovedLeftReel", 1, 3, (6, 6, 6))
IMPROVED_CENTER_REEL = _reel("ImprovedCenterReel", 0, 3, (7, 6, 6))
IMPROVED_RIGHT_REEL = _reel("ImprovedRightReel", 1, 3, (6, 6, 6))

REELS: Dict[str, DistributionTable] = {
    table.name: table
    for table in (
        UNMODIFIED_LEFT_REEL,
        UNMODIFIED_CENTER_REEL,
        UNMODIFIED_RIGHT_REEL,
        IMPROVED_LEFT_REEL,
        IMPROVED_CENTER_REEL,
        IMPROVED_RIGHT_REEL,
    )
}


def reel_tables(boosted: bool) -> Tuple[DistributionTable, DistributionTable, DistributionTable]:
    """(left, center, right) tables for one spin."""
    if boosted:
        return IMPROVED_LEFT_REEL, IMPROVED_CENTER_REEL, IMPROVED_RIGHT_REEL
    return UNMODIFIED_LEFT_REEL, UNMODIFIED_CENTER_REEL, UNMODIFIED_RIGHT_REEL


def sample(table: Sequence[int], entropy_slice: int) -> int:
    """
    Inverse-CDF lookup: the smallest index i with slice < table[i]. The
    last bucket is closed at the top, so a slice equal to TOTAL_MASS still
    lands on a symbol.

    Raises:
        OutcomeOutOfBounds: if the slice lies beyond the last threshold,
            which only a malformed table allows.
    """
    entropy_slice &= BITS_30
    index = bisect_right(table, entropy_slice)
    if index == len(table) and entropy_slice == table[-1]:
        index = bisect_left(table, entropy_slice)
    if index >= len(table):
        raise OutcomeOutOfBounds(
            f"slice {entropy_slice} is not covered by a table ending at {table[-1]}"
        )
    return index


def sample_unmodified_left_reel(entropy: int) -> int:
    return sample(UNMODIFIED_LEFT_REEL, entropy)


def sample_unmodified_center_reel(entropy: int) -> int:
    return sample(UNMODIFIED_CENTER_REEL, entropy)


def sample_unmodified_right_reel(entropy: int) -> int:
    return sample(UNMODIFIED_RIGHT_REEL, entropy)


def sample_improved_left_reel(entropy: int) -> int:
    return sample(IMPROVED_LEFT_REEL, entropy)


def sample_improved_center_reel(entropy: int) -> int:
    return sample(IMPROVED_CENTER_REEL, entropy)


def sample_improved_right_reel(entropy: int) -> int:
    return sample(IMPROVED_RIGHT_REEL, entropy)


SAMPLERS = {
    UNMODIFIED_LEFT_REEL.name: sample_unmodified_left_reel,
    UNMODIFIED_CENTER_REEL.name: sample_unmodified_center_reel,
    UNMODIFIED_RIGHT_REEL.name: sample_unmodified_right_reel,
    IMPROVED_LEFT_REEL.name: sample_improved_left_reel,
    IMPROVED_CENTER_REEL.name: sample_improved_center_reel,
    IMPROVED_RIGHT_REEL.name: sample_improved_right_reel,
}
