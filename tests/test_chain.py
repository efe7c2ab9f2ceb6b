"""
Block clock, entropy supplier and block producer tests.
"""

import pytest

from gambit.core.chain import SEED_HISTORY, BlockClock
from gambit.core.entropy import BlockSeedEntropy, FixedEntropy
from gambit.core.scheduler import BlockProducer


def test_clock_starts_at_block_one():
    assert BlockClock().current_block == 1


def test_mine_advances_height():
    clock = BlockClock()
    assert clock.mine() == 2
    assert clock.mine(5) == 7
    assert clock.current_block == 7


def test_mine_needs_positive_count():
    with pytest.raises(ValueError):
        BlockClock().mine(0)


def test_mine_reports_height():
    heights = []
    clock = BlockClock(10, on_mine=heights.append)
    clock.mine()
    clock.mine(3)
    assert heights == [11, 14]


def test_old_seeds_are_forgotten():
    clock = BlockClock()
    first = clock.seed()
    assert clock.seed(1) == first

    clock.mine(SEED_HISTORY)
    with pytest.raises(LookupError):
        clock.seed(1)
    assert len(clock.seed()) == 32


def test_block_entropy_stable_within_block():
    clock = BlockClock()
    source = BlockSeedEntropy(clock)
    assert source.entropy_for("alice") == source.entropy_for("alice")
    assert 0 <= source.entropy_for("alice") < 1 << 256


def test_block_entropy_differs_per_player_and_block():
    clock = BlockClock()
    source = BlockSeedEntropy(clock)
    first = source.entropy_for("alice")
    assert source.entropy_for("bob") != first

    clock.mine()
    assert source.entropy_for("alice") != first


def test_fixed_entropy_overrides():
    source = FixedEntropy(7, overrides={"bob": 9})
    assert source.entropy_for("alice") == 7
    assert source.entropy_for("bob") == 9

    with pytest.raises(ValueError):
        FixedEntropy(-1)


def test_producer_mines_one_block(machine):
    producer = BlockProducer(machine, interval_seconds=60)
    assert producer.produce_block() == 2
    assert machine.clock.current_block == 2


def test_producer_persists_height(db):
    from gambit.config import AppConfig
    from gambit.core.gambit import DegenGambit

    machine = DegenGambit.from_settings(AppConfig(), database=db)
    BlockProducer(machine, interval_seconds=60).produce_block()
    assert db.get_block_height() == 2

    # A restarted machine resumes from the stored height
    restarted = DegenGambit.from_settings(AppConfig(), database=db)
    assert restarted.clock.current_block == 2


def test_producer_start_and_shutdown(machine):
    producer = BlockProducer(machine, interval_seconds=3600)
    producer.start()
    try:
        assert producer.running
    finally:
        producer.shutdown()
    assert not producer.running


def test_producer_rejects_bad_interval(machine):
    with pytest.raises(ValueError):
        BlockProducer(machine, interval_seconds=0)
