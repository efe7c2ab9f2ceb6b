"""
Outcome resolver and payout table tests.
"""

import itertools

import pytest

from conftest import COST_TO_SPIN, KNOWN_ENTROPY, entropy_for_symbols
from gambit.core.exceptions import OutcomeOutOfBounds
from gambit.core.games import Outcome, PayoutTable, outcome, solvency_cap

LARGE_POOL = 10**12


# ==================== Outcome Resolver ====================

def test_known_entropy_resolves_to_two_two_two():
    result = outcome(KNOWN_ENTROPY, boosted=False)
    assert result.symbols == (2, 2, 2)
    assert result.remaining_entropy == 0


def test_known_entropy_on_improved_reels():
    result = outcome(KNOWN_ENTROPY, boosted=True)
    assert result.symbols == (3, 2, 3)
    assert result.remaining_entropy == 0


def test_outcome_is_deterministic():
    entropy = int("f3" * 32, 16)
    for boosted in (False, True):
        assert outcome(entropy, boosted) == outcome(entropy, boosted)


def test_remaining_entropy_is_bits_past_third_slice():
    high = 0xDEADBEEF
    result = outcome((high << 90) | KNOWN_ENTROPY, boosted=False)
    assert result.symbols == (2, 2, 2)
    assert result.remaining_entropy == high


def test_slices_feed_left_reel_first():
    result = outcome(entropy_for_symbols(16, 5, 0), boosted=False)
    assert result == Outcome(16, 5, 0, 0)


def test_zero_entropy():
    assert outcome(0, boosted=False).symbols == (0, 0, 0)
    # The improved center reel has no null symbol
    assert outcome(0, boosted=True).symbols == (0, 1, 0)


def test_negative_entropy_rejected():
    with pytest.raises(ValueError):
        outcome(-1, boosted=False)


def test_outcome_to_dict_keeps_wide_remainder_exact():
    remainder = 1 << 200
    data = outcome(remainder << 90, boosted=False).to_dict()
    assert data["remaining_entropy"] == str(remainder)


# ==================== Payout Table ====================

@pytest.mark.parametrize(
    "symbols,pattern",
    [
        ((2, 2, 2), "minor_triple"),
        ((15, 15, 15), "minor_triple"),
        ((3, 2, 3), "minor_outer_pair"),
        ((16, 2, 16), "major_outer_pair"),
        ((16, 17, 18), "major_distinct"),
        ((18, 16, 17), "major_distinct"),
        ((17, 17, 17), "jackpot"),
        ((0, 0, 0), "none"),
        ((2, 0, 2), "none"),
        ((16, 0, 16), "none"),
        ((2, 3, 4), "none"),
        ((16, 16, 17), "none"),
        ((16, 17, 16), "none"),
        ((2, 16, 2), "none"),
    ],
)
def test_classify(symbols, pattern):
    assert PayoutTable().classify(*symbols) == pattern


def test_table_values_scale_with_spin_price():
    table = PayoutTable()
    kwargs = {"cost_to_spin": COST_TO_SPIN, "pool_balance": LARGE_POOL}
    assert table.payout(2, 2, 2, **kwargs) == 50 * COST_TO_SPIN
    assert table.payout(3, 2, 3, **kwargs) == 10 * COST_TO_SPIN
    assert table.payout(16, 2, 16, **kwargs) == 20 * COST_TO_SPIN
    assert table.payout(16, 17, 18, **kwargs) == 100 * COST_TO_SPIN
    assert table.payout(1, 2, 3, **kwargs) == 0


def test_jackpot_is_the_solvency_cap():
    table = PayoutTable()
    assert table.payout(18, 18, 18, cost_to_spin=COST_TO_SPIN, pool_balance=LARGE_POOL) == LARGE_POOL >> 6


def test_small_pool_clamps_payout():
    table = PayoutTable()
    assert table.table_value(2, 2, 2, COST_TO_SPIN, COST_TO_SPIN) == 50 * COST_TO_SPIN
    assert table.payout(2, 2, 2, cost_to_spin=COST_TO_SPIN, pool_balance=COST_TO_SPIN) == COST_TO_SPIN >> 6


def test_payout_never_exceeds_sixty_fourth_of_pool():
    table = PayoutTable()
    symbols = (0, 1, 2, 8, 15, 16, 17, 18)
    pools = (0, 1, 63, 64, 65, COST_TO_SPIN, 64 * 50 * COST_TO_SPIN, LARGE_POOL)
    for (left, center, right), pool in itertools.product(
        itertools.product(symbols, repeat=3), pools
    ):
        amount = table.payout(left, center, right, cost_to_spin=COST_TO_SPIN, pool_balance=pool)
        assert 0 <= amount <= pool >> 6


def test_empty_pool_pays_nothing():
    assert solvency_cap(0) == 0
    assert PayoutTable().payout(2, 2, 2, cost_to_spin=COST_TO_SPIN, pool_balance=0) == 0


def test_symbol_off_the_reels_signals_out_of_bounds():
    with pytest.raises(OutcomeOutOfBounds):
        PayoutTable().classify(19, 2, 2)
    with pytest.raises(OutcomeOutOfBounds):
        PayoutTable().classify(2, -1, 2)


def test_custom_multipliers():
    table = PayoutTable({"minor_triple": 5})
    assert table.payout(2, 2, 2, cost_to_spin=COST_TO_SPIN, pool_balance=LARGE_POOL) == 5 * COST_TO_SPIN
    assert table.payout(3, 2, 3, cost_to_spin=COST_TO_SPIN, pool_balance=LARGE_POOL) == 10 * COST_TO_SPIN


def test_unknown_multiplier_rejected():
    with pytest.raises(ValueError):
        PayoutTable({"four_of_a_kind": 1000})
