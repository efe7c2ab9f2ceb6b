"""
Daily / weekly streak tests. Each day with a spin right after the previous
one extends the daily streak; each week with a spin right after the previous
one extends the weekly streak. Extensions mint bonus credits.
"""

from datetime import datetime, timedelta

import pytest
import pytz

from conftest import COST_TO_RESPIN, COST_TO_SPIN
from gambit.config import StreakConfig
from gambit.core.exceptions import InsufficientBonusCredits
from gambit.core.gambit import DegenGambit, advance_streak


def spin(machine, player):
    return machine.spin(player, False, COST_TO_SPIN)


def test_advance_streak():
    assert advance_streak(0, 0, 100) == (100, 1, False)
    assert advance_streak(100, 1, 100) == (100, 1, False)
    assert advance_streak(100, 1, 101) == (101, 2, True)
    assert advance_streak(101, 2, 103) == (103, 1, False)


def test_first_spin_starts_streaks_without_reward(machine, alice):
    receipt = spin(machine, alice)
    assert receipt.daily_streak == 1
    assert receipt.weekly_streak == 1
    assert receipt.credits_minted == 0
    assert machine.bonus.balance_of(alice) == 0


def test_next_day_extends_daily_streak(machine, alice, wall_clock):
    spin(machine, alice)
    wall_clock.now += timedelta(days=1)
    machine.mine()

    receipt = spin(machine, alice)

    assert receipt.daily_streak == 2
    assert receipt.credits_minted == 1
    assert machine.bonus.balance_of(alice) == 1
    events = machine.db.get_events(player=alice, kind="daily_streak")
    assert [e["amount"] for e in events] == [2]


def test_same_day_spin_changes_nothing(machine, alice, wall_clock):
    spin(machine, alice)
    wall_clock.now += timedelta(hours=6)
    machine.mine()

    receipt = spin(machine, alice)

    assert receipt.daily_streak == 1
    assert receipt.credits_minted == 0


def test_missed_day_resets_daily_streak(machine, alice, wall_clock):
    for _ in range(3):
        spin(machine, alice)
        wall_clock.now += timedelta(days=1)
        machine.mine()
    assert machine.session(alice).daily_streak_length == 3

    wall_clock.now += timedelta(days=1)
    receipt = spin(machine, alice)

    assert receipt.daily_streak == 1
    assert receipt.credits_minted == 0
    assert machine.bonus.balance_of(alice) == 2


def test_next_week_extends_weekly_streak(machine, alice, wall_clock):
    # 2026-01-05 is a Monday; one week later the daily streak has lapsed
    spin(machine, alice)
    wall_clock.now += timedelta(days=7)

    receipt = spin(machine, alice)

    assert receipt.weekly_streak == 2
    assert receipt.daily_streak == 1
    assert receipt.credits_minted == 5
    assert machine.bonus.balance_of(alice) == 5


def test_sunday_to_monday_extends_both(machine, alice, wall_clock):
    wall_clock.now = pytz.UTC.localize(datetime(2026, 1, 11, 23, 0))
    spin(machine, alice)
    wall_clock.now += timedelta(hours=2)

    receipt = spin(machine, alice)

    assert receipt.daily_streak == 2
    assert receipt.weekly_streak == 2
    assert receipt.credits_minted == 6


def test_streak_days_follow_configured_timezone(db, clock, entropy, wall_clock):
    machine = DegenGambit(
        db,
        clock,
        entropy,
        blocks_to_act=20,
        cost_to_spin=COST_TO_SPIN,
        cost_to_respin=COST_TO_RESPIN,
        streaks=StreakConfig(timezone="America/New_York"),
        now=wall_clock,
    )
    machine.treasury.deposit("dana", 1_000_000)

    # 15:00 UTC and 03:00 UTC next day are both Jan 5 in New York
    wall_clock.now = pytz.UTC.localize(datetime(2026, 1, 5, 15, 0))
    spin(machine, "dana")
    wall_clock.now = pytz.UTC.localize(datetime(2026, 1, 6, 3, 0))
    receipt = spin(machine, "dana")

    assert receipt.daily_streak == 1
    assert receipt.credits_minted == 0


def test_disabled_streaks_mint_nothing(db, clock, entropy, wall_clock):
    machine = DegenGambit(
        db,
        clock,
        entropy,
        blocks_to_act=20,
        cost_to_spin=COST_TO_SPIN,
        cost_to_respin=COST_TO_RESPIN,
        streaks=StreakConfig(enabled=False),
        now=wall_clock,
    )
    machine.treasury.deposit("erin", 1_000_000)

    spin(machine, "erin")
    wall_clock.now += timedelta(days=1)
    receipt = spin(machine, "erin")

    assert receipt.daily_streak == 0
    assert receipt.credits_minted == 0
    assert machine.bonus.balance_of("erin") == 0


def test_rejected_spin_keeps_streak(machine, alice, wall_clock):
    spin(machine, alice)
    wall_clock.now += timedelta(days=1)

    # Boosted without a credit: rejected, and the streak is not extended
    with pytest.raises(InsufficientBonusCredits):
        machine.spin(alice, True, COST_TO_SPIN)

    assert machine.session(alice).daily_streak_length == 1
    assert machine.bonus.balance_of(alice) == 0
