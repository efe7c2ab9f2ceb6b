import os
import sys
from datetime import datetime

# Configure the app before anything imports gambit.config
os.environ["DB_PATH"] = ":memory:"
os.environ["PRODUCE_BLOCKS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["LOG_LEVEL"] = "WARNING"

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
import pytz

from gambit.config import StreakConfig
from gambit.core.chain import BlockClock
from gambit.core.database import Database
from gambit.core.entropy import FixedEntropy
from gambit.core.gambit import DegenGambit
from gambit.core.reels import reel_tables

# Entropy that resolves to (2, 2, 2) on the unmodified reels
KNOWN_ENTROPY = 143946520351854296877309383

BLOCKS_TO_ACT = 20
COST_TO_SPIN = 100_000
COST_TO_RESPIN = 70_000


def entropy_for_symbols(left: int, center: int, right: int, boosted: bool = False) -> int:
    """Smallest entropy value that lands each reel on the requested symbol."""
    value = 0
    for position, (table, symbol) in enumerate(zip(reel_tables(boosted), (left, center, right))):
        entropy_slice = table[symbol - 1] if symbol > 0 else 0
        value |= entropy_slice << (30 * position)
    return value


class Clock:
    """Settable wall clock for streak tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def clock():
    return BlockClock()


@pytest.fixture
def entropy():
    return FixedEntropy(KNOWN_ENTROPY)


@pytest.fixture
def wall_clock():
    return Clock(pytz.UTC.localize(datetime(2026, 1, 5, 12, 0)))


@pytest.fixture
def machine(db, clock, entropy, wall_clock):
    return DegenGambit(
        db,
        clock,
        entropy,
        blocks_to_act=BLOCKS_TO_ACT,
        cost_to_spin=COST_TO_SPIN,
        cost_to_respin=COST_TO_RESPIN,
        streaks=StreakConfig(),
        now=wall_clock,
    )


@pytest.fixture
def alice(machine):
    """A player with a funded wallet."""
    machine.treasury.deposit("alice", 10_000_000)
    return "alice"
