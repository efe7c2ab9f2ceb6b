"""
Logical block clock.

Blocks are the only notion of time the slot machine understands: spin
prices and acceptance deadlines are counted in blocks. Every block carries
a random seed drawn when the block is produced; entropy sources derive
per-player values from it.
"""

import secrets
import threading
from collections import OrderedDict
from typing import Callable, Optional

from gambit.core.logger import get_logger

logger = get_logger("chain")

SEED_BYTES = 32
# Seeds older than this are forgotten
SEED_HISTORY = 256


class BlockClock:
    """Monotonic block height with a seed per block."""

    def __init__(self, height: int = 1, on_mine: Optional[Callable[[int], None]] = None):
        if height < 0:
            raise ValueError("block height must not be negative")
        self._lock = threading.Lock()
        self._height = height
        self._on_mine = on_mine
        self._seeds: "OrderedDict[int, bytes]" = OrderedDict()
        self._seeds[height] = secrets.token_bytes(SEED_BYTES)

    @property
    def current_block(self) -> int:
        return self._height

    def seed(self, block: int = None) -> bytes:
        """Seed of a recent block (the current one by default)."""
        with self._lock:
            block = self._height if block is None else block
            try:
                return self._seeds[block]
            except KeyError:
                raise LookupError(f"no seed kept for block {block}") from None

    def mine(self, blocks: int = 1) -> int:
        """Produce `blocks` new blocks and return the new height."""
        if blocks < 1:
            raise ValueError("must mine at least one block")

        with self._lock:
            for _ in range(blocks):
                self._height += 1
                self._seeds[self._height] = secrets.token_bytes(SEED_BYTES)
            while len(self._seeds) > SEED_HISTORY:
                self._seeds.popitem(last=False)
            height = self._height

        if self._on_mine:
            self._on_mine(height)
        logger.debug("Mined blocks", extra={"blocks": blocks, "height": height})
        return height
